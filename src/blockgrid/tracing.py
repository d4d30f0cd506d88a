"""Boundary tracing — one closed outline per cluster.

The perimeter of a cluster is the set of lattice edges with exactly one
incident member triangle.  Each perimeter edge is directed the way its
member triangle winds, so the cluster interior always lies to the left and
every traced outer ring has a positive shoelace area.

Functions
---------
- :func:`trace_cluster` — outline, holes and site for one cluster
- :func:`trace_polygons` — :func:`trace_cluster` over a whole partition
- :func:`vertex_owners` — which clusters touch each lattice vertex
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence, Set, Tuple

from .boundary import is_point_in_boundary
from .geometry import close_ring, is_collinear, mean_point, signed_area, turn_angle
from .lattice import Lattice
from .models import Cluster, Point, PolygonLoop
from .regions import UNASSIGNED, Partition

logger = logging.getLogger(__name__)

#: Sine tolerance used when dropping collinear ring vertices.
COLLINEAR_TOLERANCE = 1e-9

# A vertex deep inside the lattice is shared by six triangles.
_FULL_FAN = 6


def vertex_owners(lattice: Lattice, partition: Partition) -> List[Set[int]]:
    """Owners of every lattice vertex.

    Owners are the cluster ids of the incident triangles, with
    :data:`~blockgrid.regions.UNASSIGNED` standing for triangles outside the
    border and for the missing fan of vertices on the lattice rim.
    """
    owners: List[Set[int]] = [set() for _ in lattice.vertices]
    fan: List[int] = [0] * len(lattice.vertices)
    for tri in lattice.triangles:
        cid = partition.triangle_to_cluster[tri.id]
        for vid in tri.vertex_ids:
            owners[vid].add(cid)
            fan[vid] += 1
    for vid, count in enumerate(fan):
        if count < _FULL_FAN:
            owners[vid].add(UNASSIGNED)
    return owners


def trace_polygons(lattice: Lattice, partition: Partition) -> List[PolygonLoop]:
    """Trace every cluster of *partition*; degenerate outlines are skipped."""
    owners = vertex_owners(lattice, partition)
    junctions = {vid for vid, o in enumerate(owners) if len(o) >= 3}

    loops: List[PolygonLoop] = []
    skipped = 0
    for cluster in partition.clusters:
        loop = trace_cluster(lattice, cluster, junctions)
        if loop is None:
            skipped += 1
            continue
        loops.append(loop)

    if skipped:
        logger.info("Skipped %d degenerate cluster outlines", skipped)
    logger.debug("Traced %d outlines from %d clusters", len(loops), len(partition.clusters))
    return loops


def trace_cluster(
    lattice: Lattice,
    cluster: Cluster,
    junctions: Optional[Set[int]] = None,
) -> Optional[PolygonLoop]:
    """Trace the outline of a single *cluster*.

    Parameters
    ----------
    lattice : Lattice
    cluster : Cluster
    junctions : set[int], optional
        Vertex ids that must survive simplification even when collinear.
        :func:`trace_polygons` passes the vertices touched by three or
        more owners so adjacent outlines keep identical shared runs.

    Returns
    -------
    PolygonLoop or None
        ``None`` when the cluster has no members or its outer ring has
        fewer than three vertices after simplification.
    """
    if not cluster.triangle_ids:
        return None
    keep = junctions or set()

    rings = _walk_perimeter(lattice, _perimeter_edges(lattice, cluster))
    if not rings:
        return None

    positions = [v.position for v in lattice.vertices]
    areas = [signed_area([positions[v] for v in ring]) for ring in rings]
    outer_index = max(range(len(rings)), key=lambda i: areas[i])

    outer = _simplify(rings[outer_index], positions, keep)
    if len(outer) < 3:
        logger.debug("Cluster %d outline collapsed to %d vertices", cluster.id, len(outer))
        return None

    holes: List[Tuple[Point, ...]] = []
    for index, ring in enumerate(rings):
        if index == outer_index:
            continue
        if areas[index] >= 0:
            logger.warning(
                "Cluster %d has a second positive ring (area %.3f); ignoring it",
                cluster.id, areas[index],
            )
            continue
        simplified = _simplify(ring, positions, keep)
        if len(simplified) >= 3:
            holes.append(close_ring([positions[v] for v in simplified]))

    points = close_ring([positions[v] for v in outer])
    return PolygonLoop(
        cluster_id=cluster.id,
        points=points,
        vertex_ids=tuple(outer),
        site=_cluster_site(lattice, cluster, points, holes),
        holes=tuple(holes),
    )


# ═══════════════════════════════════════════════════════════════════
# Private helpers
# ═══════════════════════════════════════════════════════════════════

def _perimeter_edges(lattice: Lattice, cluster: Cluster) -> List[Tuple[int, int]]:
    members = set(cluster.triangle_ids)
    directed: List[Tuple[int, int]] = []
    for tid in cluster.triangle_ids:
        tri = lattice.triangles[tid]
        for (a, b), eid in zip(tri.directed_edges(), tri.edge_ids):
            inside = sum(1 for t in lattice.edges[eid].triangle_ids if t in members)
            if inside == 1:
                directed.append((a, b))
    return directed


def _walk_perimeter(
    lattice: Lattice,
    directed: Sequence[Tuple[int, int]],
) -> List[List[int]]:
    """Split directed perimeter edges into closed vertex rings.

    Walks start from the lowest vertex with a single outgoing edge.  Where
    several unused edges leave a vertex, the walk takes the sharpest
    clockwise turn, which joins loops that touch at a single vertex.
    """
    outgoing: Dict[int, List[int]] = {}
    for a, b in directed:
        outgoing.setdefault(a, []).append(b)
    for targets in outgoing.values():
        targets.sort()

    positions = [v.position for v in lattice.vertices]
    rings: List[List[int]] = []

    while outgoing:
        singles = [v for v, t in outgoing.items() if len(t) == 1]
        start = min(singles) if singles else min(outgoing)

        ring = [start]
        prev: Optional[int] = None
        current = start
        while current in outgoing:
            targets = outgoing[current]
            if prev is None or len(targets) == 1:
                nxt = targets[0]
            else:
                nxt = min(
                    targets,
                    key=lambda t: turn_angle(positions[prev], positions[current], positions[t]),
                )
            targets.remove(nxt)
            if not targets:
                del outgoing[current]
            prev, current = current, nxt
            ring.append(current)

        assert current == start, f"perimeter walk from {start} stranded at {current}"
        ring.pop()
        rings.append(ring)

    return rings


def _simplify(ring: List[int], positions: Sequence[Point], keep: Set[int]) -> List[int]:
    """Drop collinear ring vertices that are not junctions.

    Pinch vertices, visited twice by the walk, are always kept.
    """
    seen: Set[int] = set()
    keep = set(keep)
    for vid in ring:
        if vid in seen:
            keep.add(vid)
        seen.add(vid)

    out = list(ring)
    changed = True
    while changed and len(out) > 3:
        changed = False
        for i in range(len(out)):
            n = len(out)
            vid = out[i]
            if vid in keep:
                continue
            prev_pos = positions[out[i - 1]]
            next_pos = positions[out[(i + 1) % n]]
            if is_collinear(prev_pos, positions[vid], next_pos, COLLINEAR_TOLERANCE):
                del out[i]
                changed = True
                break
    return out


def _cluster_site(
    lattice: Lattice,
    cluster: Cluster,
    ring: Sequence[Point],
    holes: Sequence[Sequence[Point]] = (),
) -> Point:
    centroids = [lattice.triangles[tid].centroid for tid in cluster.triangle_ids]
    site = mean_point(centroids)
    fallback = centroids[0]
    if site is None:
        return fallback
    if lattice.boundary is not None and not lattice.boundary.contains(site):
        return fallback
    # Even-odd over outline and holes, so a site inside a hole is outside.
    loops = [list(ring[:-1])] + [list(h[:-1]) for h in holes]
    if not is_point_in_boundary(site, loops):
        return fallback
    return site
