"""Clip traced outlines against the true puzzle border.

Traced outlines follow lattice edges, so pieces near the border poke out
past it.  Each outline is intersected with the border area with shapely;
outlines that already lie inside are passed through untouched, outlines
fully outside are dropped, and the segments created by the cut are
recorded so the assembler can mark them as border edges.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Tuple

from shapely.geometry import GeometryCollection, MultiPolygon, Point as ShapelyPoint, Polygon
from shapely.geometry.base import BaseGeometry
from shapely.geometry.polygon import orient
from shapely.validation import make_valid

from .boundary import Boundary
from .models import ClippedPolygon, Point, PolygonLoop

logger = logging.getLogger(__name__)

#: Parts smaller than this (square units) are discarded as slivers.
MIN_PART_AREA = 1e-6

#: Distance below which a clipped segment counts as lying on the original ring.
ON_RING_TOLERANCE = 1e-6


def loop_to_shapely(loop: PolygonLoop) -> BaseGeometry:
    """Polygon for *loop*, repaired with ``make_valid`` if needed."""
    poly = Polygon(loop.points, holes=list(loop.holes))
    if not poly.is_valid:
        poly = make_valid(poly)
    return poly


def clip_polygon_against_boundary(
    loop: PolygonLoop,
    boundary: Boundary,
) -> List[ClippedPolygon]:
    """Intersect *loop* with *boundary*.

    Returns
    -------
    list[ClippedPolygon]
        Empty when the loop lies fully outside.  A loop fully inside comes
        back as a single, unmodified polygon.  A loop split by a concave
        border yields one entry per surviving part, all sharing the
        cluster id.
    """
    area = boundary.to_shapely()
    shape = loop_to_shapely(loop)

    if area.covers(shape):
        return [ClippedPolygon.from_loop(loop)]

    clipped = shape.intersection(area)
    parts = [p for p in _polygon_parts(clipped) if p.area > MIN_PART_AREA]
    if not parts:
        return []

    original_edges = shape.boundary
    result: List[ClippedPolygon] = []
    for part in parts:
        part = orient(part, sign=1.0)
        exterior = _coords(part.exterior.coords)
        holes = tuple(_coords(ring.coords) for ring in part.interiors)
        cuts: List[Tuple[Point, Point]] = []
        for ring in (exterior,) + holes:
            cuts.extend(_cut_segments(ring, original_edges))

        site = loop.site
        if not part.contains(ShapelyPoint(site)):
            rep = part.representative_point()
            site = (rep.x, rep.y)

        result.append(ClippedPolygon(
            cluster_id=loop.cluster_id,
            exterior=exterior,
            site=site,
            holes=holes,
            truncated=True,
            cut_segments=tuple(cuts),
        ))
    return result


def clip_polygons(
    loops: Iterable[PolygonLoop],
    boundary: Boundary,
) -> Tuple[List[ClippedPolygon], int]:
    """Clip every loop; returns ``(polygons, dropped_count)``."""
    polygons: List[ClippedPolygon] = []
    dropped = 0
    truncated = 0
    for loop in loops:
        parts = clip_polygon_against_boundary(loop, boundary)
        if not parts:
            dropped += 1
            continue
        truncated += sum(1 for p in parts if p.truncated)
        polygons.extend(parts)
    if dropped:
        logger.info("Dropped %d outlines lying outside the border", dropped)
    logger.debug("Clipping kept %d polygons, %d truncated", len(polygons), truncated)
    return polygons, dropped


# ── helpers ─────────────────────────────────────────────────────────

def _polygon_parts(geom: BaseGeometry) -> List[Polygon]:
    if geom.is_empty:
        return []
    if isinstance(geom, Polygon):
        return [geom]
    if isinstance(geom, (MultiPolygon, GeometryCollection)):
        parts: List[Polygon] = []
        for sub in geom.geoms:
            parts.extend(_polygon_parts(sub))
        return parts
    # Points and lines left over from touching geometry carry no area.
    return []


def _coords(coords: Iterable[Tuple[float, ...]]) -> Tuple[Point, ...]:
    return tuple((float(c[0]), float(c[1])) for c in coords)


def _cut_segments(
    ring: Tuple[Point, ...],
    original_edges: BaseGeometry,
) -> List[Tuple[Point, Point]]:
    cuts: List[Tuple[Point, Point]] = []
    for a, b in zip(ring, ring[1:]):
        mid = ShapelyPoint((a[0] + b[0]) / 2, (a[1] + b[1]) / 2)
        if original_edges.distance(mid) > ON_RING_TOLERANCE:
            cuts.append((a, b))
    return cuts
