"""Tests for the ``blockgrid`` command-line interface."""

from __future__ import annotations

import json

import pytest

from blockgrid.cli import build_parser, main


def test_parser_requires_command():
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


def test_lattice_prints_stats(capsys):
    main(["lattice", "--width", "300", "--height", "200", "--spacing", "60"])
    out = capsys.readouterr().out
    assert "active_triangles:" in out
    assert "boundary_edges:" in out


def test_generate_writes_topology(tmp_path, capsys):
    out_path = tmp_path / "topology.json"
    main([
        "generate", "--preset", "triangles",
        "--width", "300", "--height", "200",
        "--out", str(out_path),
    ])
    out = capsys.readouterr().out
    assert "pieces from" in out
    payload = json.loads(out_path.read_text())
    assert payload["pieces"]
    assert payload["metadata"]["dropped_pieces"] == 0


def test_generate_diagnose_json(tmp_path, capsys):
    report_path = tmp_path / "report.json"
    main(["generate", "--seed", "3", "--diagnose", "--diagnose-json", str(report_path)])
    out = capsys.readouterr().out
    assert "[topology]" in out
    report = json.loads(report_path.read_text())
    assert set(report["elapsed"]) == {"lattice", "regions", "trace", "clip", "assemble"}
    assert report["topology"]["errors"] == []


def test_check_config_ok(tmp_path, capsys):
    path = tmp_path / "cfg.json"
    path.write_text(json.dumps({"preset": "diamonds", "seed": 7}))
    main(["check-config", "--in", str(path)])
    assert capsys.readouterr().out.strip() == "OK pairwise seed=7"


def test_check_config_invalid(tmp_path, capsys):
    path = tmp_path / "cfg.json"
    path.write_text(json.dumps({"strategy": "spiral"}))
    with pytest.raises(SystemExit) as exc:
        main(["check-config", "--in", str(path)])
    assert exc.value.code == 1
    assert "strategy" in capsys.readouterr().out
