"""BlockGrid command-line interface."""

from __future__ import annotations

import argparse
import dataclasses
import logging
from typing import List, Optional

from .config import PRESETS, GenerationConfig
from .io import load_config, save_json


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="BlockGrid puzzle topology generator")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log stage details")
    sub = parser.add_subparsers(dest="command", required=True)

    lattice = sub.add_parser("lattice", help="Build a triangular lattice and print its stats")
    _add_area_arguments(lattice)
    lattice.add_argument("--out", dest="output_path", help="Write the lattice as JSON")

    generate = sub.add_parser("generate", help="Generate a puzzle topology")
    generate.add_argument("--config", dest="config_path", help="JSON config document")
    generate.add_argument("--preset", choices=sorted(PRESETS))
    _add_area_arguments(generate)
    generate.add_argument("--merge-probability", type=float)
    generate.add_argument("--strategy", choices=["flood_fill", "pairwise"])
    generate.add_argument("--seed", type=int)
    generate.add_argument("--out", dest="output_path", help="Write the topology as JSON")
    generate.add_argument("--diagnose", action="store_true")
    generate.add_argument("--diagnose-json", dest="diagnose_json")

    check = sub.add_parser("check-config", help="Validate a JSON config document")
    check.add_argument("--in", dest="input_path", required=True)

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.command == "lattice":
        _cmd_lattice(args)

    elif args.command == "generate":
        _cmd_generate(args)

    elif args.command == "check-config":
        try:
            config = load_config(args.input_path)
        except ValueError as exc:
            print(exc)
            raise SystemExit(1)
        print(f"OK {config.strategy} seed={config.seed}")


def _add_area_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--width", type=float)
    parser.add_argument("--height", type=float)
    parser.add_argument("--spacing", type=float)
    parser.add_argument("--border", choices=["rectangle", "ellipse"])


def _config_from_args(args) -> GenerationConfig:
    if getattr(args, "config_path", None):
        config = load_config(args.config_path)
    elif getattr(args, "preset", None):
        config = PRESETS[args.preset]
    else:
        config = GenerationConfig()

    overrides = {}
    for name in ("width", "height", "spacing", "merge_probability", "strategy", "seed"):
        value = getattr(args, name, None)
        if value is not None:
            overrides[name] = value
    if args.border:
        overrides["border"] = {"shape": args.border}
    return dataclasses.replace(config, **overrides)


def _cmd_lattice(args) -> None:
    from .diagnostics import lattice_stats
    from .lattice import build_lattice

    config = _config_from_args(args)
    lattice = build_lattice(config.width, config.height, config.spacing, config.build_boundary())
    stats = lattice_stats(lattice)
    for name, value in dataclasses.asdict(stats).items():
        print(f"{name}: {value}")
    if args.output_path:
        save_json(lattice.to_dict(), args.output_path)
        print(f"Saved {args.output_path}")


def _cmd_generate(args) -> None:
    from .diagnostics import diagnostics_report
    from .pipeline import generate_topology

    try:
        config = _config_from_args(args)
    except ValueError as exc:
        print(exc)
        raise SystemExit(1)

    result = generate_topology(config)
    counts = result.counts()
    print(
        f"{counts['pieces']} pieces from {counts['clusters']} clusters "
        f"({config.strategy}, seed={config.seed})"
    )

    if args.diagnose or args.diagnose_json:
        report = diagnostics_report(result.lattice, result.partition, result.topology)
        report["elapsed"] = dict(result.elapsed)
        report["counts"] = counts
        if args.diagnose:
            _print_report(report)
        if args.diagnose_json:
            save_json(report, args.diagnose_json)

    if args.output_path:
        save_json(result.topology.to_dict(), args.output_path)
        print(f"Saved {args.output_path}")


def _print_report(report: dict) -> None:
    for section in ("lattice", "partition", "topology", "counts"):
        values = report.get(section)
        if not values:
            continue
        print(f"[{section}]")
        for key, value in values.items():
            if isinstance(value, float):
                value = f"{value:.4f}"
            print(f"  {key}: {value}")
