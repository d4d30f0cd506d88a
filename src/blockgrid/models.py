from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Tuple

Point = Tuple[float, float]


@dataclass(frozen=True)
class LatticeVertex:
    id: int
    row: int
    column: int
    position: Point
    inside_boundary: bool = False


@dataclass(frozen=True)
class LatticeEdge:
    """Undirected lattice edge.

    *vertex_ids* is stored as ``(min_id, max_id)`` so each undirected edge
    exists exactly once.  *triangle_ids* holds the one or two triangles that
    reference it.
    """

    id: int
    vertex_ids: tuple[int, int]
    triangle_ids: tuple[int, ...] = field(default_factory=tuple)
    touches_boundary: bool = False


@dataclass(frozen=True)
class LatticeTriangle:
    id: int
    vertex_ids: tuple[int, int, int]
    edge_ids: tuple[int, int, int]
    centroid: Point
    neighbor_ids: tuple[int, ...] = field(default_factory=tuple)
    inside_boundary: bool = False

    def directed_edges(self) -> list[tuple[int, int]]:
        """Vertex pairs in winding order (interior on the left)."""
        a, b, c = self.vertex_ids
        return [(a, b), (b, c), (c, a)]


@dataclass(frozen=True)
class Cluster:
    """A connected block of lattice triangles destined to become one piece."""

    id: int
    triangle_ids: tuple[int, ...]
    edge_ids: tuple[int, ...] = field(default_factory=tuple)

    @property
    def size(self) -> int:
        return len(self.triangle_ids)


@dataclass(frozen=True)
class Pair:
    """Two-triangle diamond (or a leftover singleton) from pairwise merging."""

    id: int
    triangle_ids: tuple[int, ...]
    shared_edge_id: Optional[int] = None

    @property
    def is_single(self) -> bool:
        return len(self.triangle_ids) == 1


@dataclass(frozen=True)
class PolygonLoop:
    """Traced outline of one cluster.

    *points* is a closed ring (first point repeated at the end), wound
    clockwise in screen space (y grows downward), which is a positive
    shoelace area.  *vertex_ids* are the lattice vertices of the open ring.
    *holes* are closed rings with the opposite winding.
    """

    cluster_id: int
    points: tuple[Point, ...]
    vertex_ids: tuple[int, ...]
    site: Point
    holes: tuple[tuple[Point, ...], ...] = field(default_factory=tuple)

    @property
    def vertex_count(self) -> int:
        return max(len(self.points) - 1, 0)


@dataclass(frozen=True)
class ClippedPolygon:
    """A traced loop after clipping against the puzzle border.

    *cut_segments* lists the ring segments that the clip introduced; they
    lie on the border and become outer border edges.
    """

    cluster_id: int
    exterior: tuple[Point, ...]
    site: Point
    holes: tuple[tuple[Point, ...], ...] = field(default_factory=tuple)
    truncated: bool = False
    cut_segments: tuple[tuple[Point, Point], ...] = field(default_factory=tuple)

    @classmethod
    def from_loop(cls, loop: PolygonLoop) -> "ClippedPolygon":
        return cls(
            cluster_id=loop.cluster_id,
            exterior=loop.points,
            site=loop.site,
            holes=loop.holes,
        )
