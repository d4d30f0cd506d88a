"""Topology assembly — pieces, shared vertices, shared edges, half-edges.

The assembler turns clipped outlines into a puzzle topology:

1. ring points closer than *tolerance* collapse into one shared vertex
   (KD-tree lookup, first-seen order);
2. T-junctions, where a vertex of one ring lies on a segment of another,
   are split so both sides walk the same vertex run;
3. each outline becomes a :class:`Piece`;
4. directed ring segments are grouped by their undirected vertex pair into
   :class:`PuzzleEdge` records, with paired half-edges linked as twins.

Everything is addressed by integer id, the list index of the record.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple

import numpy as np

from .geometry import point_segment_distance
from .models import ClippedPolygon, Point

logger = logging.getLogger(__name__)

EdgeKey = Tuple[int, int]


# ═══════════════════════════════════════════════════════════════════
# Records
# ═══════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class TopoVertex:
    id: int
    position: Point


@dataclass(frozen=True)
class HalfEdge:
    """One piece's directed view of a shared edge."""

    id: int
    edge_id: int
    piece_id: int
    origin: int
    target: int
    twin: Optional[int] = None


@dataclass(frozen=True)
class PuzzleEdge:
    id: int
    vertex_ids: tuple[int, int]
    half_edge_ids: tuple[int, ...]
    piece_ids: tuple[int, ...]
    is_border: bool = False


@dataclass(frozen=True)
class Piece:
    """A puzzle piece: one ring of shared vertices plus optional holes."""

    id: int
    cluster_id: int
    site: Point
    vertex_ids: tuple[int, ...]
    hole_vertex_ids: tuple[tuple[int, ...], ...] = field(default_factory=tuple)
    half_edge_ids: tuple[int, ...] = field(default_factory=tuple)
    neighbor_ids: tuple[int, ...] = field(default_factory=tuple)

    def rings(self) -> List[tuple[int, ...]]:
        return [self.vertex_ids, *self.hole_vertex_ids]


class PuzzleTopology:
    """Assembled puzzle: vertices, pieces, edges and half-edges."""

    def __init__(
        self,
        vertices: Sequence[TopoVertex],
        pieces: Sequence[Piece],
        edges: Sequence[PuzzleEdge],
        half_edges: Sequence[HalfEdge],
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.vertices: tuple[TopoVertex, ...] = tuple(vertices)
        self.pieces: tuple[Piece, ...] = tuple(pieces)
        self.edges: tuple[PuzzleEdge, ...] = tuple(edges)
        self.half_edges: tuple[HalfEdge, ...] = tuple(half_edges)
        self.metadata: Dict[str, Any] = dict(metadata or {})

    # ── queries ─────────────────────────────────────────────────────

    def border_edges(self) -> List[PuzzleEdge]:
        return [e for e in self.edges if e.is_border]

    def piece_adjacency(self) -> Dict[int, List[int]]:
        """Return ``{piece_id: sorted neighbour ids}``."""
        return {p.id: list(p.neighbor_ids) for p in self.pieces}

    def piece_ring_points(self, piece_id: int) -> List[Point]:
        return [self.vertices[v].position for v in self.pieces[piece_id].vertex_ids]

    # ── validation ──────────────────────────────────────────────────

    def validate(self) -> List[str]:
        """Return structural errors (empty when consistent)."""
        errors: List[str] = []

        for he in self.half_edges:
            edge = self.edges[he.edge_id]
            if tuple(sorted((he.origin, he.target))) != edge.vertex_ids:
                errors.append(f"Half-edge {he.id} does not match edge {edge.id}")
            if he.twin is not None:
                twin = self.half_edges[he.twin]
                if twin.twin != he.id:
                    errors.append(f"Half-edge {he.id} twin {twin.id} is not mutual")
                if (twin.origin, twin.target) != (he.target, he.origin):
                    errors.append(f"Half-edge {he.id} and twin {twin.id} are not reversed")

        for edge in self.edges:
            if not 1 <= len(edge.half_edge_ids) <= 2:
                errors.append(f"Edge {edge.id} has {len(edge.half_edge_ids)} half-edges")
            if not edge.is_border and len(edge.piece_ids) != 2:
                errors.append(f"Interior edge {edge.id} has pieces {edge.piece_ids}")

        for piece in self.pieces:
            if len(set(piece.vertex_ids)) < 3:
                errors.append(f"Piece {piece.id} has fewer than 3 distinct vertices")
            for nid in piece.neighbor_ids:
                if piece.id not in self.pieces[nid].neighbor_ids:
                    errors.append(f"Piece {piece.id} lists {nid} but not vice versa")
            targets = {self.half_edges[h].target for h in piece.half_edge_ids}
            origins = {self.half_edges[h].origin for h in piece.half_edge_ids}
            if targets != origins:
                errors.append(f"Piece {piece.id} half-edges do not form closed rings")

        return errors

    # ── serialisation ───────────────────────────────────────────────

    def to_dict(self) -> dict:
        return {
            "metadata": dict(self.metadata),
            "vertices": [
                {"id": v.id, "position": list(v.position)} for v in self.vertices
            ],
            "pieces": [
                {
                    "id": p.id,
                    "cluster": p.cluster_id,
                    "site": list(p.site),
                    "vertices": list(p.vertex_ids),
                    "holes": [list(h) for h in p.hole_vertex_ids],
                    "neighbors": list(p.neighbor_ids),
                }
                for p in self.pieces
            ],
            "edges": [
                {
                    "id": e.id,
                    "vertices": list(e.vertex_ids),
                    "pieces": list(e.piece_ids),
                    "border": e.is_border,
                }
                for e in self.edges
            ],
            "half_edges": [
                {
                    "id": h.id,
                    "edge": h.edge_id,
                    "piece": h.piece_id,
                    "origin": h.origin,
                    "target": h.target,
                    "twin": h.twin,
                }
                for h in self.half_edges
            ],
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, sort_keys=True)

    def __repr__(self) -> str:
        return (
            f"PuzzleTopology(pieces={len(self.pieces)}, vertices={len(self.vertices)}, "
            f"edges={len(self.edges)})"
        )


# ═══════════════════════════════════════════════════════════════════
# Piece construction and edge linking
# ═══════════════════════════════════════════════════════════════════

def create_piece_from_polygon(
    piece_id: int,
    cluster_id: int,
    ring: Sequence[int],
    site: Point,
    holes: Iterable[Sequence[int]] = (),
) -> Optional[Piece]:
    """Build a :class:`Piece` from vertex-id rings.

    Consecutive duplicates (including a repeated closing vertex) are
    collapsed.  Returns ``None`` when the outer ring has fewer than three
    distinct vertices; degenerate holes are dropped.
    """
    outer = collapse_ring(ring)
    if len(set(outer)) < 3:
        return None
    kept_holes = []
    for hole in holes:
        collapsed = collapse_ring(hole)
        if len(set(collapsed)) >= 3:
            kept_holes.append(tuple(collapsed))
    return Piece(
        id=piece_id,
        cluster_id=cluster_id,
        site=site,
        vertex_ids=tuple(outer),
        hole_vertex_ids=tuple(kept_holes),
    )


def link_and_create_edges(
    pieces: Sequence[Piece],
    border_keys: Iterable[EdgeKey] = (),
) -> Tuple[List[PuzzleEdge], List[HalfEdge]]:
    """Create shared edges and half-edges for *pieces*.

    Every directed ring segment becomes a half-edge.  Half-edges are
    grouped by undirected vertex pair; each group is one
    :class:`PuzzleEdge`.  Two half-edges in a group are twins.  An edge is
    a border edge when only one piece walks it or its key is listed in
    *border_keys*.
    """
    forced_border = set(border_keys)
    raw: List[Tuple[int, int, int]] = []
    groups: Dict[EdgeKey, List[int]] = {}

    for piece in pieces:
        for ring in piece.rings():
            n = len(ring)
            for i in range(n):
                a, b = ring[i], ring[(i + 1) % n]
                hid = len(raw)
                raw.append((piece.id, a, b))
                groups.setdefault(_key(a, b), []).append(hid)

    edge_of: List[int] = [0] * len(raw)
    twin_of: List[Optional[int]] = [None] * len(raw)
    edges: List[PuzzleEdge] = []

    for key, hids in groups.items():
        eid = len(edges)
        for hid in hids:
            edge_of[hid] = eid
        if len(hids) == 2:
            twin_of[hids[0]], twin_of[hids[1]] = hids[1], hids[0]
        elif len(hids) > 2:
            logger.warning("Edge %s is walked by %d half-edges", key, len(hids))
        piece_ids = tuple(sorted({raw[h][0] for h in hids}))
        edges.append(PuzzleEdge(
            id=eid,
            vertex_ids=key,
            half_edge_ids=tuple(hids),
            piece_ids=piece_ids,
            is_border=len(piece_ids) == 1 or key in forced_border,
        ))

    half_edges = [
        HalfEdge(
            id=hid,
            edge_id=edge_of[hid],
            piece_id=piece_id,
            origin=a,
            target=b,
            twin=twin_of[hid],
        )
        for hid, (piece_id, a, b) in enumerate(raw)
    ]
    return edges, half_edges


# ═══════════════════════════════════════════════════════════════════
# Assembler
# ═══════════════════════════════════════════════════════════════════

def assemble_topology(
    polygons: Sequence[ClippedPolygon],
    tolerance: float = 1e-6,
) -> PuzzleTopology:
    """Assemble clipped outlines into a :class:`PuzzleTopology`.

    Parameters
    ----------
    polygons : sequence of ClippedPolygon
    tolerance : float
        Snap distance for merging vertices and detecting T-junctions.

    Returns
    -------
    PuzzleTopology
        ``metadata`` records ``dropped_pieces``, ``merged_vertices``,
        ``t_junctions`` and the ``tolerance`` used.
    """
    tolerance = max(float(tolerance), 0.0)

    rings_by_polygon: List[List[List[Point]]] = []
    flat: List[Point] = []
    for poly in polygons:
        rings = [_open(poly.exterior)] + [_open(h) for h in poly.holes]
        rings_by_polygon.append(rings)
        for ring in rings:
            flat.extend(ring)

    positions, index_of = _dedupe_points(flat, tolerance)
    merged = len(flat) - len(positions)

    # Re-express rings as vertex ids.
    cursor = 0
    id_rings: List[List[List[int]]] = []
    for rings in rings_by_polygon:
        converted = []
        for ring in rings:
            converted.append(collapse_ring(index_of[cursor:cursor + len(ring)]))
            cursor += len(ring)
        id_rings.append(converted)

    cut_keys: Set[EdgeKey] = set()
    if polygons:
        tree = _kdtree(positions)
        for poly in polygons:
            for a, b in poly.cut_segments:
                ia = _nearest(tree, a, tolerance)
                ib = _nearest(tree, b, tolerance)
                if ia is not None and ib is not None and ia != ib:
                    cut_keys.add(_key(ia, ib))
    else:
        tree = None

    splits = 0
    if tree is not None:
        for converted in id_rings:
            for index, ring in enumerate(converted):
                converted[index], added, inherited = _split_t_junctions(
                    ring, positions, tree, tolerance, cut_keys,
                )
                splits += added
                cut_keys.update(inherited)

    pieces: List[Piece] = []
    dropped = 0
    for poly, converted in zip(polygons, id_rings):
        piece = create_piece_from_polygon(
            len(pieces), poly.cluster_id, converted[0], poly.site, converted[1:],
        )
        if piece is None:
            dropped += 1
            logger.debug("Dropping degenerate piece for cluster %d", poly.cluster_id)
            continue
        pieces.append(piece)

    edges, half_edges = link_and_create_edges(pieces, cut_keys)

    half_by_piece: Dict[int, List[int]] = {p.id: [] for p in pieces}
    neighbours: Dict[int, Set[int]] = {p.id: set() for p in pieces}
    for he in half_edges:
        half_by_piece[he.piece_id].append(he.id)
    for edge in edges:
        for pid in edge.piece_ids:
            neighbours[pid].update(o for o in edge.piece_ids if o != pid)
    pieces = [
        replace(
            p,
            half_edge_ids=tuple(half_by_piece[p.id]),
            neighbor_ids=tuple(sorted(neighbours[p.id])),
        )
        for p in pieces
    ]

    vertices = [TopoVertex(id=i, position=pos) for i, pos in enumerate(positions)]
    if dropped:
        logger.info("Dropped %d degenerate pieces during assembly", dropped)
    topology = PuzzleTopology(
        vertices,
        pieces,
        edges,
        half_edges,
        metadata={
            "dropped_pieces": dropped,
            "merged_vertices": merged,
            "t_junctions": splits,
            "tolerance": tolerance,
        },
    )
    logger.debug("Assembled %r", topology)
    return topology


def collapse_ring(ring: Sequence[int]) -> List[int]:
    """Remove consecutive duplicate ids, including across the wrap."""
    out: List[int] = []
    for vid in ring:
        if not out or out[-1] != vid:
            out.append(vid)
    while len(out) > 1 and out[0] == out[-1]:
        out.pop()
    return out


# ═══════════════════════════════════════════════════════════════════
# Private helpers
# ═══════════════════════════════════════════════════════════════════

def _key(a: int, b: int) -> EdgeKey:
    return (a, b) if a < b else (b, a)


def _open(ring: Sequence[Point]) -> List[Point]:
    pts = list(ring)
    if len(pts) > 1 and pts[0] == pts[-1]:
        pts.pop()
    return pts


def _kdtree(points: Sequence[Point]):
    from scipy.spatial import cKDTree

    return cKDTree(np.asarray(points, dtype=float).reshape(-1, 2))


def _dedupe_points(
    points: Sequence[Point],
    tolerance: float,
) -> Tuple[List[Point], List[int]]:
    """Cluster points within *tolerance*; ids follow first appearance."""
    if not points:
        return [], []
    coords = np.asarray(points, dtype=float)
    tree = _kdtree(points)
    index_of = [-1] * len(points)
    positions: List[Point] = []
    for i in range(len(points)):
        if index_of[i] != -1:
            continue
        vid = len(positions)
        positions.append((float(coords[i, 0]), float(coords[i, 1])))
        for j in tree.query_ball_point(coords[i], tolerance):
            if index_of[j] == -1:
                index_of[j] = vid
    return positions, index_of


def _nearest(tree, point: Point, tolerance: float) -> Optional[int]:
    dist, idx = tree.query(np.asarray(point, dtype=float))
    if dist > tolerance:
        return None
    return int(idx)


def _split_t_junctions(
    ring: List[int],
    positions: Sequence[Point],
    tree,
    tolerance: float,
    cut_keys: Set[EdgeKey],
) -> Tuple[List[int], int, Set[EdgeKey]]:
    """Insert vertices lying on ring segments.

    Sub-segments of a clipped segment stay clipped; their keys are
    returned so the caller can mark them as border edges.
    """
    out: List[int] = []
    added = 0
    inherited: Set[EdgeKey] = set()
    n = len(ring)
    for i in range(n):
        a, b = ring[i], ring[(i + 1) % n]
        out.append(a)
        pa, pb = positions[a], positions[b]
        mid = ((pa[0] + pb[0]) / 2, (pa[1] + pb[1]) / 2)
        radius = float(np.hypot(pb[0] - pa[0], pb[1] - pa[1])) / 2 + tolerance
        on_segment: List[Tuple[float, int]] = []
        for vid in tree.query_ball_point(np.asarray(mid), radius):
            if vid in (a, b):
                continue
            dist, t = point_segment_distance(positions[vid], pa, pb)
            if dist <= tolerance and 0.0 < t < 1.0:
                on_segment.append((t, vid))
        if not on_segment:
            continue
        on_segment.sort()
        chain = [a] + [vid for _, vid in on_segment] + [b]
        out.extend(chain[1:-1])
        added += len(on_segment)
        if _key(a, b) in cut_keys:
            inherited.update(_key(u, v) for u, v in zip(chain, chain[1:]))
    return collapse_ring(out), added, inherited
