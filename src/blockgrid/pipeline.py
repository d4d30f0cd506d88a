"""Generation pipeline — lattice to puzzle topology in one call.

Runs the five stages in order, each consuming the previous stage's
artefacts and never mutating them:

``lattice`` → ``regions`` → ``trace`` → ``clip`` → ``assemble``

Usage
-----
>>> from blockgrid.config import ORGANIC_BLOCKS
>>> from blockgrid.pipeline import generate_topology
>>> result = generate_topology(ORGANIC_BLOCKS)
>>> result.topology
PuzzleTopology(pieces=..., vertices=..., edges=...)
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from .clipping import clip_polygons
from .config import GenerationConfig
from .lattice import Lattice, build_lattice
from .models import ClippedPolygon, PolygonLoop
from .random_source import Mulberry32, RandomSource
from .regions import Partition, grow_regions
from .topology import PuzzleTopology, assemble_topology
from .tracing import trace_polygons

logger = logging.getLogger(__name__)

Hook = Callable[[str, int, int], None]
"""Signature for before/after hooks: ``(stage_name, stage_index, total_stages)``."""


@dataclass
class StepResult:
    """Artefacts produced by one stage."""

    artefacts: Dict[str, Any] = field(default_factory=dict)


@dataclass
class PipelineResult:
    """Aggregate result of one generation run.

    Attributes
    ----------
    config : GenerationConfig
    step_results : dict[str, StepResult]
        Mapping of ``stage name → StepResult``.
    elapsed : dict[str, float]
        Mapping of ``stage name → seconds`` wall-clock time per stage.
    """

    config: GenerationConfig
    step_results: Dict[str, StepResult] = field(default_factory=dict)
    elapsed: Dict[str, float] = field(default_factory=dict)

    def artefact(self, step_name: str, key: str) -> Any:
        """Raises ``KeyError`` if the stage or key is not present."""
        return self.step_results[step_name].artefacts[key]

    @property
    def lattice(self) -> Lattice:
        return self.artefact("lattice", "lattice")

    @property
    def partition(self) -> Partition:
        return self.artefact("regions", "partition")

    @property
    def polygons(self) -> List[PolygonLoop]:
        return self.artefact("trace", "polygons")

    @property
    def clipped(self) -> List[ClippedPolygon]:
        return self.artefact("clip", "polygons")

    @property
    def topology(self) -> PuzzleTopology:
        return self.artefact("assemble", "topology")

    def counts(self) -> Dict[str, int]:
        """Dropped / skipped counts gathered across stages."""
        return {
            "clusters": len(self.partition.clusters),
            "degenerate_outlines": self.artefact("trace", "skipped"),
            "outside_border": self.artefact("clip", "dropped"),
            "dropped_pieces": self.topology.metadata.get("dropped_pieces", 0),
            "pieces": len(self.topology.pieces),
        }


STAGES: Tuple[str, ...] = ("lattice", "regions", "trace", "clip", "assemble")


def generate_topology(
    config: Optional[GenerationConfig] = None,
    *,
    random: Optional[RandomSource] = None,
    before: Optional[Hook] = None,
    after: Optional[Hook] = None,
) -> PipelineResult:
    """Run every stage for *config*.

    Parameters
    ----------
    config : GenerationConfig, optional
        Defaults to ``GenerationConfig()``.
    random : RandomSource, optional
        Source for the region grower.  Defaults to
        ``Mulberry32(config.seed)``.
    before, after : Hook, optional
        Called around each stage with ``(name, index, total)``.
    """
    config = config or GenerationConfig()
    source = random if random is not None else Mulberry32(config.seed)
    boundary = config.build_boundary()
    result = PipelineResult(config=config)

    def run_lattice() -> StepResult:
        lattice = build_lattice(config.width, config.height, config.spacing, boundary)
        return StepResult({"lattice": lattice})

    def run_regions() -> StepResult:
        partition = grow_regions(
            result.lattice, config.merge_probability, source, config.strategy,
        )
        return StepResult({"partition": partition})

    def run_trace() -> StepResult:
        polygons = trace_polygons(result.lattice, result.partition)
        skipped = len(result.partition.clusters) - len(polygons)
        return StepResult({"polygons": polygons, "skipped": skipped})

    def run_clip() -> StepResult:
        clipped, dropped = clip_polygons(result.polygons, boundary)
        return StepResult({"polygons": clipped, "dropped": dropped})

    def run_assemble() -> StepResult:
        topology = assemble_topology(result.clipped, tolerance=config.tolerance)
        return StepResult({"topology": topology})

    runners = {
        "lattice": run_lattice,
        "regions": run_regions,
        "trace": run_trace,
        "clip": run_clip,
        "assemble": run_assemble,
    }

    total = len(STAGES)
    for idx, name in enumerate(STAGES):
        if before:
            before(name, idx, total)

        t0 = time.perf_counter()
        result.step_results[name] = runners[name]()
        result.elapsed[name] = time.perf_counter() - t0

        if after:
            after(name, idx, total)

    logger.info(
        "Generated %d pieces (%s, seed=%d) in %.3fs",
        len(result.topology.pieces),
        config.strategy,
        config.seed,
        sum(result.elapsed.values()),
    )
    return result
