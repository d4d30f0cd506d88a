"""Geometry helper functions used across the package."""

from __future__ import annotations

import math
from typing import Iterable, List, Optional, Sequence

from .models import Point


def signed_area(points: Sequence[Point]) -> float:
    """Signed area of a ring via the shoelace formula.

    The ring may be open or closed.  Positive means clockwise in screen
    space (y down), counter-clockwise in y-up coordinates.
    """
    pts = open_ring(points)
    n = len(pts)
    if n < 3:
        return 0.0
    area = 0.0
    for i in range(n):
        x1, y1 = pts[i]
        x2, y2 = pts[(i + 1) % n]
        area += x1 * y2 - x2 * y1
    return area / 2.0


def mean_point(points: Iterable[Point]) -> Optional[Point]:
    """Arithmetic mean of *points*, or ``None`` for an empty input."""
    xs: List[float] = []
    ys: List[float] = []
    for x, y in points:
        xs.append(x)
        ys.append(y)
    if not xs:
        return None
    return (sum(xs) / len(xs), sum(ys) / len(ys))


def triangle_centroid(a: Point, b: Point, c: Point) -> Point:
    return ((a[0] + b[0] + c[0]) / 3, (a[1] + b[1] + c[1]) / 3)


def distance(a: Point, b: Point) -> float:
    return math.hypot(b[0] - a[0], b[1] - a[1])


def cross(o: Point, a: Point, b: Point) -> float:
    """Z component of ``(a - o) x (b - o)``."""
    return (a[0] - o[0]) * (b[1] - o[1]) - (a[1] - o[1]) * (b[0] - o[0])


def turn_angle(prev: Point, current: Point, nxt: Point) -> float:
    """Counter-clockwise (y-up) turn at *current* in radians, in (-pi, pi]."""
    dx1 = current[0] - prev[0]
    dy1 = current[1] - prev[1]
    dx2 = nxt[0] - current[0]
    dy2 = nxt[1] - current[1]
    return math.atan2(dx1 * dy2 - dy1 * dx2, dx1 * dx2 + dy1 * dy2)


def is_collinear(prev: Point, current: Point, nxt: Point, tolerance: float = 1e-9) -> bool:
    """True when *current* continues straight on from *prev* to *nxt*.

    Uses the sine of the turn angle so the test is scale independent.
    Backtracking spikes are not treated as collinear.
    """
    dx1 = current[0] - prev[0]
    dy1 = current[1] - prev[1]
    dx2 = nxt[0] - current[0]
    dy2 = nxt[1] - current[1]
    len1 = math.hypot(dx1, dy1)
    len2 = math.hypot(dx2, dy2)
    if len1 < 1e-12 or len2 < 1e-12:
        return False
    sin_a = (dx1 * dy2 - dy1 * dx2) / (len1 * len2)
    dot = dx1 * dx2 + dy1 * dy2
    return abs(sin_a) <= tolerance and dot > 0


def point_segment_distance(p: Point, a: Point, b: Point) -> tuple[float, float]:
    """Return ``(distance, t)`` from *p* to segment *ab*.

    *t* is the clamped projection parameter along the segment.
    """
    dx = b[0] - a[0]
    dy = b[1] - a[1]
    length_sq = dx * dx + dy * dy
    if length_sq < 1e-24:
        return distance(p, a), 0.0
    t = ((p[0] - a[0]) * dx + (p[1] - a[1]) * dy) / length_sq
    t = max(0.0, min(1.0, t))
    proj = (a[0] + t * dx, a[1] + t * dy)
    return distance(p, proj), t


def segments_intersect(p1: Point, p2: Point, q1: Point, q2: Point) -> bool:
    """Proper or touching intersection test for two segments."""
    def orient(a: Point, b: Point, c: Point) -> float:
        return cross(a, b, c)

    def on_segment(a: Point, b: Point, c: Point) -> bool:
        return (
            min(a[0], b[0]) - 1e-12 <= c[0] <= max(a[0], b[0]) + 1e-12
            and min(a[1], b[1]) - 1e-12 <= c[1] <= max(a[1], b[1]) + 1e-12
        )

    o1 = orient(p1, p2, q1)
    o2 = orient(p1, p2, q2)
    o3 = orient(q1, q2, p1)
    o4 = orient(q1, q2, p2)

    if o1 * o2 < 0 and o3 * o4 < 0:
        return True
    if abs(o1) < 1e-12 and on_segment(p1, p2, q1):
        return True
    if abs(o2) < 1e-12 and on_segment(p1, p2, q2):
        return True
    if abs(o3) < 1e-12 and on_segment(q1, q2, p1):
        return True
    if abs(o4) < 1e-12 and on_segment(q1, q2, p2):
        return True
    return False


def close_ring(points: Sequence[Point]) -> tuple[Point, ...]:
    """Return *points* as a closed ring (first point repeated at the end)."""
    pts = open_ring(points)
    if not pts:
        return ()
    return tuple(pts) + (pts[0],)


def open_ring(points: Sequence[Point]) -> List[Point]:
    pts = list(points)
    if len(pts) > 1 and pts[0] == pts[-1]:
        pts.pop()
    return pts
