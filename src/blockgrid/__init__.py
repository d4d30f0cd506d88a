"""BlockGrid — blocky puzzle-piece topology from a triangular lattice.

Public API is organised into layers:

- **Core** — models, geometry, random sources, borders
- **Stages** — lattice, region growing, tracing, clipping, assembly
- **Pipeline** — configuration, presets, the one-call generator, I/O
- **Diagnostics** — metrics and consistency reports
"""

# ── Core ────────────────────────────────────────────────────────────
from .models import (
    LatticeVertex,
    LatticeEdge,
    LatticeTriangle,
    Cluster,
    Pair,
    PolygonLoop,
    ClippedPolygon,
)
from .geometry import signed_area
from .random_source import Mulberry32, RandomSource, clamp01, shuffle_in_place
from .boundary import (
    Boundary,
    PathCommand,
    flatten_boundary,
    is_point_in_boundary,
)

# ── Stages ──────────────────────────────────────────────────────────
from .lattice import Lattice, build_lattice
from .regions import (
    Partition,
    PartitionValidation,
    REGION_GROWERS,
    UNASSIGNED,
    cluster_adjacency,
    cluster_triangles,
    grow_regions,
    pair_triangles,
    validate_partition,
)
from .tracing import trace_cluster, trace_polygons
from .clipping import clip_polygon_against_boundary, clip_polygons
from .topology import (
    HalfEdge,
    Piece,
    PuzzleEdge,
    PuzzleTopology,
    TopoVertex,
    assemble_topology,
    create_piece_from_polygon,
    link_and_create_edges,
)

# ── Pipeline ────────────────────────────────────────────────────────
from .config import (
    GenerationConfig,
    PRESETS,
    ORGANIC_BLOCKS,
    LARGE_BLOCKS,
    DIAMONDS,
    TRIANGLES,
    config_from_dict,
)
from .pipeline import PipelineResult, StepResult, generate_topology
from .io import load_config, save_config, save_json

# ── Diagnostics ─────────────────────────────────────────────────────
from .diagnostics import (
    lattice_stats,
    partition_stats,
    has_self_crossings,
    diagnostics_report,
)

__all__ = [
    # Core
    "LatticeVertex",
    "LatticeEdge",
    "LatticeTriangle",
    "Cluster",
    "Pair",
    "PolygonLoop",
    "ClippedPolygon",
    "signed_area",
    "Mulberry32",
    "RandomSource",
    "clamp01",
    "shuffle_in_place",
    "Boundary",
    "PathCommand",
    "flatten_boundary",
    "is_point_in_boundary",
    # Stages
    "Lattice",
    "build_lattice",
    "Partition",
    "PartitionValidation",
    "REGION_GROWERS",
    "UNASSIGNED",
    "cluster_adjacency",
    "cluster_triangles",
    "grow_regions",
    "pair_triangles",
    "validate_partition",
    "trace_cluster",
    "trace_polygons",
    "clip_polygon_against_boundary",
    "clip_polygons",
    "HalfEdge",
    "Piece",
    "PuzzleEdge",
    "PuzzleTopology",
    "TopoVertex",
    "assemble_topology",
    "create_piece_from_polygon",
    "link_and_create_edges",
    # Pipeline
    "GenerationConfig",
    "PRESETS",
    "ORGANIC_BLOCKS",
    "LARGE_BLOCKS",
    "DIAMONDS",
    "TRIANGLES",
    "config_from_dict",
    "PipelineResult",
    "StepResult",
    "generate_topology",
    "load_config",
    "save_config",
    "save_json",
    # Diagnostics
    "lattice_stats",
    "partition_stats",
    "has_self_crossings",
    "diagnostics_report",
]
