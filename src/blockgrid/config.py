"""Generation parameters and named presets.

:class:`GenerationConfig` gathers everything one run needs.  Config
documents (JSON files, CLI input) are checked against
:data:`CONFIG_SCHEMA` with ``jsonschema`` before being turned into a
config; out-of-range numbers that pass the schema are clamped later by the
stage that uses them.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional

import jsonschema

from .boundary import Boundary


@dataclass(frozen=True)
class GenerationConfig:
    """All tuneable parameters for one puzzle topology.

    Attributes
    ----------
    width, height : float
        Size of the puzzle area.
    spacing : float
        Lattice spacing (roughly the piece size).  Clamped to at least 4.
    merge_probability : float
        Chance that a flood-fill step absorbs a neighbouring triangle.
        Clamped to ``[0, 1]``.  Ignored by the pairwise strategy.
    strategy : str
        ``"flood_fill"`` or ``"pairwise"``.
    seed : int
        Seed for the default :class:`~blockgrid.random_source.Mulberry32`.
    border : dict, optional
        Border description for :meth:`Boundary.from_dict`; ``None`` means
        the rectangle of the area.
    curve_segments : int
        Chords per curve when flattening the border.
    tolerance : float
        Vertex snap distance used by the assembler.
    """

    width: float = 900.0
    height: float = 600.0
    spacing: float = 120.0
    merge_probability: float = 0.5
    strategy: str = "flood_fill"
    seed: int = 1
    border: Optional[Dict[str, Any]] = field(default=None, hash=False, compare=True)
    curve_segments: int = 16
    tolerance: float = 1e-6

    def build_boundary(self) -> Boundary:
        if self.border is None:
            return Boundary.rectangle(self.width, self.height)
        payload = dict(self.border)
        payload.setdefault("curve_segments", self.curve_segments)
        return Boundary.from_dict(payload, self.width, self.height)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# ═══════════════════════════════════════════════════════════════════
# Preset configs
# ═══════════════════════════════════════════════════════════════════

# Mixed block sizes, the default look.
ORGANIC_BLOCKS = GenerationConfig(
    spacing=120.0,
    merge_probability=0.5,
    strategy="flood_fill",
)

LARGE_BLOCKS = GenerationConfig(
    spacing=90.0,
    merge_probability=0.8,
    strategy="flood_fill",
)

# Two-triangle diamonds with the odd single triangle.
DIAMONDS = GenerationConfig(
    spacing=120.0,
    merge_probability=1.0,
    strategy="pairwise",
)

TRIANGLES = GenerationConfig(
    spacing=120.0,
    merge_probability=0.0,
    strategy="flood_fill",
)

PRESETS: Dict[str, GenerationConfig] = {
    "organic": ORGANIC_BLOCKS,
    "large": LARGE_BLOCKS,
    "diamonds": DIAMONDS,
    "triangles": TRIANGLES,
}


# ═══════════════════════════════════════════════════════════════════
# Schema validation
# ═══════════════════════════════════════════════════════════════════

_POINT = {
    "type": "array",
    "items": {"type": "number"},
    "minItems": 2,
    "maxItems": 2,
}

CONFIG_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "blockgrid generation config",
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "preset": {"type": "string", "enum": sorted(PRESETS)},
        "width": {"type": "number"},
        "height": {"type": "number"},
        "spacing": {"type": "number"},
        "merge_probability": {"type": "number"},
        "strategy": {"type": "string", "enum": ["flood_fill", "pairwise"]},
        "seed": {"type": "integer"},
        "curve_segments": {"type": "integer", "minimum": 1},
        "tolerance": {"type": "number", "minimum": 0},
        "border": {
            "oneOf": [
                {"type": "null"},
                {
                    "type": "object",
                    "required": ["shape"],
                    "properties": {
                        "shape": {
                            "type": "string",
                            "enum": ["rectangle", "ellipse", "polygon", "path"],
                        },
                        "points": {"type": "array", "items": _POINT, "minItems": 3},
                        "commands": {
                            "type": "array",
                            "items": {
                                "type": "object",
                                "required": ["op"],
                                "properties": {
                                    "op": {"type": "string", "enum": ["M", "L", "Q", "C", "Z"]},
                                    "points": {"type": "array", "items": _POINT},
                                },
                            },
                        },
                    },
                },
            ],
        },
    },
}


def config_from_dict(payload: Dict[str, Any]) -> GenerationConfig:
    """Validate *payload* and build a config.

    A ``"preset"`` key selects the starting values; the remaining keys
    override them.

    Raises
    ------
    ValueError
        If the document does not match :data:`CONFIG_SCHEMA`.
    """
    try:
        jsonschema.validate(instance=payload, schema=CONFIG_SCHEMA)
    except jsonschema.ValidationError as exc:
        location = "/".join(str(p) for p in exc.absolute_path) or "<root>"
        raise ValueError(f"Invalid config at {location}: {exc.message}") from exc

    values = dict(payload)
    base = PRESETS[values.pop("preset")] if "preset" in values else GenerationConfig()
    merged = base.to_dict()
    merged.update(values)
    return GenerationConfig(**merged)
