"""Triangular lattice construction.

The lattice is an arena: vertices, edges and triangles live in lists and
refer to each other by integer id (the list index).  Rows of vertices are
``spacing * sin(60°)`` apart and odd rows shift by half a spacing, so every
triangle is equilateral.  Building the lattice consumes no randomness.
"""

from __future__ import annotations

import json
import logging
import math
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

from .boundary import Boundary, PathCommand
from .geometry import triangle_centroid
from .models import LatticeEdge, LatticeTriangle, LatticeVertex

logger = logging.getLogger(__name__)

#: Ratio between vertical and horizontal spacing of an equilateral lattice.
TRIANGULAR_VERTICAL_RATIO = math.sin(math.pi / 3)

#: Smallest spacing the builder accepts; smaller values are clamped.
MIN_SPACING = 4.0


class Lattice:
    """Immutable triangular mesh covering the generation area."""

    VERSION = "1.0"

    def __init__(
        self,
        vertices: Sequence[LatticeVertex],
        edges: Sequence[LatticeEdge],
        triangles: Sequence[LatticeTriangle],
        horizontal_spacing: float,
        vertical_spacing: float,
        row_count: int,
        column_count: int,
        boundary: Optional[Boundary] = None,
    ) -> None:
        self.vertices: tuple[LatticeVertex, ...] = tuple(vertices)
        self.edges: tuple[LatticeEdge, ...] = tuple(edges)
        self.triangles: tuple[LatticeTriangle, ...] = tuple(triangles)
        self.horizontal_spacing = horizontal_spacing
        self.vertical_spacing = vertical_spacing
        self.row_count = row_count
        self.column_count = column_count
        self.boundary = boundary
        self._edge_index: Dict[Tuple[int, int], int] = {
            e.vertex_ids: e.id for e in self.edges
        }

    # ── lookups ─────────────────────────────────────────────────────

    def edge_between(self, a: int, b: int) -> Optional[LatticeEdge]:
        """Return the edge joining vertices *a* and *b*, if any."""
        eid = self._edge_index.get(edge_key(a, b))
        return None if eid is None else self.edges[eid]

    def active_triangle_ids(self) -> List[int]:
        """Ids of triangles whose centroid lies inside the boundary."""
        return [t.id for t in self.triangles if t.inside_boundary]

    def active_vertex_ids(self) -> List[int]:
        return [v.id for v in self.vertices if v.inside_boundary]

    def boundary_edges(self) -> List[LatticeEdge]:
        return [e for e in self.edges if e.touches_boundary]

    def position(self, vertex_id: int) -> Tuple[float, float]:
        return self.vertices[vertex_id].position

    # ── validation ──────────────────────────────────────────────────

    def validate(self) -> List[str]:
        """Return structural errors (empty when the lattice is consistent)."""
        errors: List[str] = []
        n_vertices = len(self.vertices)
        n_triangles = len(self.triangles)

        for index, vertex in enumerate(self.vertices):
            if vertex.id != index:
                errors.append(f"Vertex at index {index} has id {vertex.id}")

        for index, edge in enumerate(self.edges):
            if edge.id != index:
                errors.append(f"Edge at index {index} has id {edge.id}")
            a, b = edge.vertex_ids
            if not a < b:
                errors.append(f"Edge {edge.id} vertex pair {edge.vertex_ids} is not canonical")
            for vid in edge.vertex_ids:
                if not 0 <= vid < n_vertices:
                    errors.append(f"Edge {edge.id} references missing vertex {vid}")
            if not 1 <= len(edge.triangle_ids) <= 2:
                errors.append(
                    f"Edge {edge.id} has {len(edge.triangle_ids)} triangles (expected 1 or 2)"
                )
            for tid in edge.triangle_ids:
                if not 0 <= tid < n_triangles:
                    errors.append(f"Edge {edge.id} references missing triangle {tid}")

        for index, tri in enumerate(self.triangles):
            if tri.id != index:
                errors.append(f"Triangle at index {index} has id {tri.id}")
            for eid in tri.edge_ids:
                if not 0 <= eid < len(self.edges):
                    errors.append(f"Triangle {tri.id} references missing edge {eid}")
                elif tri.id not in self.edges[eid].triangle_ids:
                    errors.append(
                        f"Triangle {tri.id} edge {eid} does not reference triangle"
                    )
            for nid in tri.neighbor_ids:
                if not 0 <= nid < n_triangles:
                    errors.append(f"Triangle {tri.id} references missing neighbor {nid}")
                elif tri.id not in self.triangles[nid].neighbor_ids:
                    errors.append(f"Triangle {tri.id} lists {nid} but not vice versa")

        return errors

    # ── serialisation ───────────────────────────────────────────────

    def to_dict(self) -> dict:
        return {
            "version": self.VERSION,
            "horizontal_spacing": self.horizontal_spacing,
            "vertical_spacing": self.vertical_spacing,
            "row_count": self.row_count,
            "column_count": self.column_count,
            "vertices": [
                {
                    "id": v.id,
                    "row": v.row,
                    "column": v.column,
                    "position": list(v.position),
                    "inside": v.inside_boundary,
                }
                for v in self.vertices
            ],
            "edges": [
                {
                    "id": e.id,
                    "vertices": list(e.vertex_ids),
                    "triangles": list(e.triangle_ids),
                    "touches_boundary": e.touches_boundary,
                }
                for e in self.edges
            ],
            "triangles": [
                {
                    "id": t.id,
                    "vertices": list(t.vertex_ids),
                    "edges": list(t.edge_ids),
                    "centroid": list(t.centroid),
                    "neighbors": list(t.neighbor_ids),
                    "inside": t.inside_boundary,
                }
                for t in self.triangles
            ],
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, sort_keys=True)

    def __repr__(self) -> str:
        return (
            f"Lattice(rows={self.row_count}, columns={self.column_count}, "
            f"vertices={len(self.vertices)}, edges={len(self.edges)}, "
            f"triangles={len(self.triangles)})"
        )


def edge_key(a: int, b: int) -> Tuple[int, int]:
    """Canonical undirected key for the vertex pair ``(a, b)``."""
    return (a, b) if a < b else (b, a)


# ═══════════════════════════════════════════════════════════════════
# Builder
# ═══════════════════════════════════════════════════════════════════

def build_lattice(
    width: float,
    height: float,
    spacing: float,
    boundary: Union[Boundary, Iterable[PathCommand], None] = None,
) -> Lattice:
    """Build a triangular lattice covering ``width`` × ``height``.

    One spacing unit of overscan is added on every side so cells that
    straddle the border are represented.  *boundary* defaults to the
    rectangle of the area; vertices and triangles are flagged by testing
    their position / centroid against it.
    """
    width = _clamp_extent(width, "width")
    height = _clamp_extent(height, "height")
    if boundary is None:
        boundary = Boundary.rectangle(width, height)
    elif not isinstance(boundary, Boundary):
        boundary = Boundary(boundary)

    spacing = _clamp_spacing(spacing)
    horizontal = spacing
    vertical = spacing * TRIANGULAR_VERTICAL_RATIO

    start_x = -horizontal
    start_y = -vertical
    column_limit = max(2, math.ceil((width + horizontal * 2) / horizontal))
    row_limit = max(2, math.ceil((height + vertical * 2) / vertical))

    vertices: List[LatticeVertex] = []
    index_by_coord: Dict[Tuple[int, int], int] = {}
    for row in range(row_limit + 1):
        y = start_y + row * vertical
        offset_x = 0.0 if row % 2 == 0 else horizontal / 2
        for column in range(column_limit + 1):
            position = (start_x + column * horizontal + offset_x, y)
            vid = len(vertices)
            vertices.append(LatticeVertex(
                id=vid,
                row=row,
                column=column,
                position=position,
                inside_boundary=boundary.contains(position),
            ))
            index_by_coord[(row, column)] = vid

    # Edge records keyed canonically: key -> [edge_id, [triangle ids]]
    edge_records: Dict[Tuple[int, int], List] = {}
    tri_vertices: List[Tuple[int, int, int]] = []
    tri_edges: List[Tuple[int, int, int]] = []

    def add_triangle(a: Tuple[int, int], b: Tuple[int, int], c: Tuple[int, int]) -> None:
        ids = (index_by_coord[a], index_by_coord[b], index_by_coord[c])
        tid = len(tri_vertices)
        edge_ids: List[int] = []
        for start, end in ((ids[0], ids[1]), (ids[1], ids[2]), (ids[2], ids[0])):
            key = edge_key(start, end)
            record = edge_records.get(key)
            if record is None:
                record = [len(edge_records), []]
                edge_records[key] = record
            record[1].append(tid)
            edge_ids.append(record[0])
        tri_vertices.append(ids)
        tri_edges.append((edge_ids[0], edge_ids[1], edge_ids[2]))

    # Split orientation alternates with row parity so diagonals line up.
    for row in range(row_limit):
        for column in range(column_limit):
            if row % 2 == 0:
                add_triangle((row, column), (row, column + 1), (row + 1, column))
                add_triangle((row, column + 1), (row + 1, column + 1), (row + 1, column))
            else:
                add_triangle((row, column), (row + 1, column + 1), (row + 1, column))
                add_triangle((row, column), (row, column + 1), (row + 1, column + 1))

    centroids = [
        triangle_centroid(*(vertices[v].position for v in ids)) for ids in tri_vertices
    ]
    inside = [boundary.contains(c) for c in centroids]

    edges: List[LatticeEdge] = []
    for key, (eid, tids) in edge_records.items():
        assert eid == len(edges), f"edge id {eid} out of creation order"
        assert 1 <= len(tids) <= 2, f"edge {key} has {len(tids)} triangles"
        edges.append(LatticeEdge(
            id=eid,
            vertex_ids=key,
            triangle_ids=tuple(tids),
            touches_boundary=len(tids) < 2 or any(not inside[t] for t in tids),
        ))

    triangles: List[LatticeTriangle] = []
    for tid, ids in enumerate(tri_vertices):
        neighbors = set()
        for eid in tri_edges[tid]:
            for other in edges[eid].triangle_ids:
                assert 0 <= other < len(tri_vertices), f"edge {eid} cites triangle {other}"
                if other != tid:
                    neighbors.add(other)
        triangles.append(LatticeTriangle(
            id=tid,
            vertex_ids=ids,
            edge_ids=tri_edges[tid],
            centroid=centroids[tid],
            neighbor_ids=tuple(sorted(neighbors)),
            inside_boundary=inside[tid],
        ))

    lattice = Lattice(
        vertices,
        edges,
        triangles,
        horizontal_spacing=horizontal,
        vertical_spacing=vertical,
        row_count=row_limit + 1,
        column_count=column_limit + 1,
        boundary=boundary,
    )
    logger.debug(
        "Built %r with %d active triangles",
        lattice,
        sum(inside),
    )
    return lattice


def _clamp_spacing(spacing: float) -> float:
    value = float(spacing)
    if not math.isfinite(value) or value <= 0:
        logger.warning("Lattice spacing %r clamped to %s", spacing, MIN_SPACING)
        return MIN_SPACING
    if value < MIN_SPACING:
        logger.debug("Lattice spacing %s raised to floor %s", value, MIN_SPACING)
        return MIN_SPACING
    return value


def _clamp_extent(value: float, name: str) -> float:
    value = float(value)
    if not math.isfinite(value) or value < 0:
        logger.warning("Lattice %s %r clamped to 0", name, value)
        return 0.0
    return value
