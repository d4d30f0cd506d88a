"""Puzzle border descriptions, flattening and containment tests.

A border is a list of :class:`PathCommand` entries using the SVG path
vocabulary (``M``, ``L``, ``Q``, ``C``, ``Z``).  Curves are flattened into
straight-line loops before any containment or clipping test; containment
uses the even-odd rule so nested loops punch holes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import reduce
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from shapely.geometry import Polygon
from shapely.geometry.base import BaseGeometry

from .models import Point

logger = logging.getLogger(__name__)

# Cubic Bezier control-point factor for a quarter ellipse.
_KAPPA = 0.5522847498307936

_ARITY = {"M": 1, "L": 1, "Q": 2, "C": 3, "Z": 0}


@dataclass(frozen=True)
class PathCommand:
    op: str
    points: tuple[Point, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if self.op not in _ARITY:
            raise ValueError(f"Unknown path command {self.op!r}")
        if len(self.points) != _ARITY[self.op]:
            raise ValueError(
                f"Path command {self.op!r} takes {_ARITY[self.op]} points, "
                f"got {len(self.points)}"
            )


def move_to(x: float, y: float) -> PathCommand:
    return PathCommand("M", ((x, y),))


def line_to(x: float, y: float) -> PathCommand:
    return PathCommand("L", ((x, y),))


def quad_to(cx: float, cy: float, x: float, y: float) -> PathCommand:
    return PathCommand("Q", ((cx, cy), (x, y)))


def cubic_to(
    c1x: float, c1y: float, c2x: float, c2y: float, x: float, y: float,
) -> PathCommand:
    return PathCommand("C", ((c1x, c1y), (c2x, c2y), (x, y)))


def close_path() -> PathCommand:
    return PathCommand("Z")


# ═══════════════════════════════════════════════════════════════════
# Flattening and containment
# ═══════════════════════════════════════════════════════════════════

def flatten_boundary(
    commands: Iterable[PathCommand],
    curve_segments: int = 16,
) -> List[List[Point]]:
    """Convert path commands into open straight-line loops.

    Each ``M`` starts a new loop; ``Q`` and ``C`` curves are sampled into
    *curve_segments* chords.  Loops with fewer than three distinct points
    are discarded.
    """
    segments = max(1, int(curve_segments))
    loops: List[List[Point]] = []
    current: List[Point] = []
    pen: Optional[Point] = None

    def finish() -> None:
        loop = _dedupe_ring(current)
        if len(loop) >= 3:
            loops.append(loop)
        elif loop:
            logger.debug("Dropping degenerate border loop with %d points", len(loop))

    for cmd in commands:
        if cmd.op == "M":
            finish()
            current = [cmd.points[0]]
            pen = cmd.points[0]
        elif cmd.op == "Z":
            finish()
            current = []
        else:
            if pen is None:
                raise ValueError(f"Path command {cmd.op!r} before any move-to")
            if not current:
                current = [pen]
            if cmd.op == "L":
                current.append(cmd.points[0])
            elif cmd.op == "Q":
                current.extend(_sample_quadratic(pen, cmd.points[0], cmd.points[1], segments))
            else:
                current.extend(
                    _sample_cubic(pen, cmd.points[0], cmd.points[1], cmd.points[2], segments)
                )
            pen = cmd.points[-1]
    finish()
    return loops


def is_point_in_boundary(
    point: Point,
    boundary: Union["Boundary", Sequence[Sequence[Point]]],
) -> bool:
    """Even-odd ray-cast containment test against flattened loops."""
    loops = boundary.loops if isinstance(boundary, Boundary) else boundary
    x, y = point
    inside = False
    for loop in loops:
        n = len(loop)
        j = n - 1
        for i in range(n):
            xi, yi = loop[i]
            xj, yj = loop[j]
            if (yi > y) != (yj > y):
                x_cross = (xj - xi) * (y - yi) / (yj - yi) + xi
                if x < x_cross:
                    inside = not inside
            j = i
    return inside


# ═══════════════════════════════════════════════════════════════════
# Boundary container
# ═══════════════════════════════════════════════════════════════════

class Boundary:
    """A puzzle border: path commands plus their flattened loops."""

    def __init__(
        self,
        commands: Iterable[PathCommand],
        curve_segments: int = 16,
        kind: str = "path",
    ) -> None:
        self.commands: tuple[PathCommand, ...] = tuple(commands)
        self.curve_segments = curve_segments
        self.kind = kind
        self.loops: tuple[tuple[Point, ...], ...] = tuple(
            tuple(loop) for loop in flatten_boundary(self.commands, curve_segments)
        )
        self._shape: Optional[BaseGeometry] = None

    # ── constructors ────────────────────────────────────────────────

    @classmethod
    def rectangle(cls, width: float, height: float, x: float = 0.0, y: float = 0.0) -> "Boundary":
        commands = [
            move_to(x, y),
            line_to(x + width, y),
            line_to(x + width, y + height),
            line_to(x, y + height),
            close_path(),
        ]
        return cls(commands, kind="rectangle")

    @classmethod
    def ellipse(
        cls,
        cx: float,
        cy: float,
        rx: float,
        ry: float,
        curve_segments: int = 16,
    ) -> "Boundary":
        kx = rx * _KAPPA
        ky = ry * _KAPPA
        commands = [
            move_to(cx + rx, cy),
            cubic_to(cx + rx, cy + ky, cx + kx, cy + ry, cx, cy + ry),
            cubic_to(cx - kx, cy + ry, cx - rx, cy + ky, cx - rx, cy),
            cubic_to(cx - rx, cy - ky, cx - kx, cy - ry, cx, cy - ry),
            cubic_to(cx + kx, cy - ry, cx + rx, cy - ky, cx + rx, cy),
            close_path(),
        ]
        return cls(commands, curve_segments=curve_segments, kind="ellipse")

    @classmethod
    def polygon(cls, points: Sequence[Point]) -> "Boundary":
        if len(points) < 3:
            raise ValueError("A polygon border needs at least 3 points")
        commands = [move_to(*points[0])]
        commands.extend(line_to(*p) for p in points[1:])
        commands.append(close_path())
        return cls(commands, kind="polygon")

    # ── queries ─────────────────────────────────────────────────────

    def contains(self, point: Point) -> bool:
        return is_point_in_boundary(point, self)

    @property
    def is_empty(self) -> bool:
        return not self.loops

    @property
    def bounds(self) -> Tuple[float, float, float, float]:
        """``(min_x, min_y, max_x, max_y)`` of the flattened loops."""
        xs = [p[0] for loop in self.loops for p in loop]
        ys = [p[1] for loop in self.loops for p in loop]
        if not xs:
            return (0.0, 0.0, 0.0, 0.0)
        return (min(xs), min(ys), max(xs), max(ys))

    def to_shapely(self) -> BaseGeometry:
        """Even-odd area of the loops as a shapely geometry (cached)."""
        if self._shape is None:
            polys = []
            for loop in self.loops:
                poly = Polygon(loop)
                if not poly.is_valid:
                    poly = poly.buffer(0)
                polys.append(poly)
            if polys:
                self._shape = reduce(lambda a, b: a.symmetric_difference(b), polys)
            else:
                self._shape = Polygon()
        return self._shape

    # ── serialisation ───────────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        return {
            "shape": "path",
            "curve_segments": self.curve_segments,
            "commands": [
                {"op": c.op, "points": [list(p) for p in c.points]}
                for c in self.commands
            ],
        }

    @classmethod
    def from_dict(
        cls,
        payload: Dict[str, Any],
        width: float = 0.0,
        height: float = 0.0,
    ) -> "Boundary":
        """Build a border from a config mapping.

        ``{"shape": "rectangle"}`` and ``{"shape": "ellipse"}`` default to
        the puzzle area (*width* × *height*); ``"polygon"`` takes
        ``points``; ``"path"`` takes raw ``commands``.
        """
        shape = payload.get("shape", "rectangle")
        if shape == "rectangle":
            return cls.rectangle(
                payload.get("width", width),
                payload.get("height", height),
                payload.get("x", 0.0),
                payload.get("y", 0.0),
            )
        if shape == "ellipse":
            rx = payload.get("rx", width / 2)
            ry = payload.get("ry", height / 2)
            return cls.ellipse(
                payload.get("cx", width / 2),
                payload.get("cy", height / 2),
                rx,
                ry,
                curve_segments=payload.get("curve_segments", 16),
            )
        if shape == "polygon":
            return cls.polygon([tuple(p) for p in payload["points"]])
        if shape == "path":
            commands = [
                PathCommand(c["op"], tuple(tuple(p) for p in c.get("points", [])))
                for c in payload["commands"]
            ]
            return cls(commands, curve_segments=payload.get("curve_segments", 16))
        raise ValueError(f"Unknown border shape {shape!r}")

    def __repr__(self) -> str:
        return f"Boundary(kind={self.kind!r}, loops={len(self.loops)})"


# ═══════════════════════════════════════════════════════════════════
# Private helpers
# ═══════════════════════════════════════════════════════════════════

def _sample_quadratic(p0: Point, p1: Point, p2: Point, segments: int) -> List[Point]:
    out: List[Point] = []
    for i in range(1, segments + 1):
        t = i / segments
        u = 1.0 - t
        out.append((
            u * u * p0[0] + 2 * u * t * p1[0] + t * t * p2[0],
            u * u * p0[1] + 2 * u * t * p1[1] + t * t * p2[1],
        ))
    return out


def _sample_cubic(p0: Point, p1: Point, p2: Point, p3: Point, segments: int) -> List[Point]:
    out: List[Point] = []
    for i in range(1, segments + 1):
        t = i / segments
        u = 1.0 - t
        a = u * u * u
        b = 3 * u * u * t
        c = 3 * u * t * t
        d = t * t * t
        out.append((
            a * p0[0] + b * p1[0] + c * p2[0] + d * p3[0],
            a * p0[1] + b * p1[1] + c * p2[1] + d * p3[1],
        ))
    return out


def _dedupe_ring(points: Sequence[Point]) -> List[Point]:
    """Drop consecutive duplicates and a repeated closing point."""
    out: List[Point] = []
    for p in points:
        if not out or out[-1] != p:
            out.append(p)
    if len(out) > 1 and out[0] == out[-1]:
        out.pop()
    return out
