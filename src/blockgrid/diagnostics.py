from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from .geometry import segments_intersect, signed_area
from .lattice import Lattice
from .models import Point
from .regions import Partition
from .topology import PuzzleTopology


@dataclass(frozen=True)
class LatticeStats:
    vertices: int
    edges: int
    triangles: int
    active_vertices: int
    active_triangles: int
    boundary_edges: int


@dataclass(frozen=True)
class PartitionStats:
    clusters: int
    assigned_triangles: int
    min_size: int
    max_size: int
    mean_size: float
    paired_diamonds: int
    singles: int
    removed_edges: int


def lattice_stats(lattice: Lattice) -> LatticeStats:
    return LatticeStats(
        vertices=len(lattice.vertices),
        edges=len(lattice.edges),
        triangles=len(lattice.triangles),
        active_vertices=len(lattice.active_vertex_ids()),
        active_triangles=len(lattice.active_triangle_ids()),
        boundary_edges=len(lattice.boundary_edges()),
    )


def partition_stats(partition: Partition) -> PartitionStats:
    sizes = partition.sizes()
    diamonds = sum(1 for p in partition.pairs if not p.is_single)
    return PartitionStats(
        clusters=len(sizes),
        assigned_triangles=sum(sizes),
        min_size=min(sizes) if sizes else 0,
        max_size=max(sizes) if sizes else 0,
        mean_size=(sum(sizes) / len(sizes)) if sizes else 0.0,
        paired_diamonds=diamonds,
        singles=len(partition.pairs) - diamonds,
        removed_edges=len(partition.removed_edge_ids),
    )


def check_adjacency_symmetry(lattice: Lattice) -> List[str]:
    """Triangle pairs where adjacency is listed in one direction only."""
    errors = []
    for tri in lattice.triangles:
        for nid in tri.neighbor_ids:
            if tri.id not in lattice.triangles[nid].neighbor_ids:
                errors.append(f"Triangle {tri.id} -> {nid} is not mirrored")
    return errors


def has_self_crossings(points: Sequence[Point]) -> bool:
    """True when two non-adjacent segments of a closed ring intersect."""
    ring = list(points)
    if len(ring) > 1 and ring[0] == ring[-1]:
        ring.pop()
    n = len(ring)
    if n < 4:
        return False
    for i in range(n):
        a1, a2 = ring[i], ring[(i + 1) % n]
        for j in range(i + 2, n):
            if i == 0 and j == n - 1:
                continue
            b1, b2 = ring[j], ring[(j + 1) % n]
            # Pinched outlines revisit a vertex; touching there is allowed.
            if a1 in (b1, b2) or a2 in (b1, b2):
                continue
            if segments_intersect(a1, a2, b1, b2):
                return True
    return False


def min_piece_signed_area(topology: PuzzleTopology) -> float:
    areas = [signed_area(topology.piece_ring_points(p.id)) for p in topology.pieces]
    return min(areas) if areas else 0.0


def diagnostics_report(
    lattice: Lattice,
    partition: Optional[Partition] = None,
    topology: Optional[PuzzleTopology] = None,
) -> Dict[str, object]:
    """Build a structured diagnostics report suitable for JSON export."""
    report: Dict[str, object] = {
        "lattice": lattice_stats(lattice).__dict__,
        "lattice_errors": lattice.validate() + check_adjacency_symmetry(lattice),
    }
    if partition is not None:
        report["partition"] = partition_stats(partition).__dict__
    if topology is not None:
        report["topology"] = {
            "pieces": len(topology.pieces),
            "vertices": len(topology.vertices),
            "edges": len(topology.edges),
            "border_edges": len(topology.border_edges()),
            "min_piece_signed_area": min_piece_signed_area(topology),
            "self_crossing_pieces": [
                p.id for p in topology.pieces
                if has_self_crossings(topology.piece_ring_points(p.id))
            ],
            "errors": topology.validate(),
            **topology.metadata,
        }
    return report
