from __future__ import annotations

import json

import pytest

from blockgrid.config import (
    CONFIG_SCHEMA,
    DIAMONDS,
    GenerationConfig,
    PRESETS,
    config_from_dict,
)
from blockgrid.io import load_config, save_config


class TestGenerationConfig:
    def test_defaults(self):
        cfg = GenerationConfig()
        assert (cfg.width, cfg.height, cfg.spacing) == (900.0, 600.0, 120.0)
        assert cfg.strategy == "flood_fill"

    def test_default_border_is_area_rectangle(self):
        b = GenerationConfig(width=300, height=200).build_boundary()
        assert b.kind == "rectangle"
        assert b.bounds == (0, 0, 300, 200)

    def test_ellipse_border_uses_curve_segments(self):
        cfg = GenerationConfig(border={"shape": "ellipse"}, curve_segments=8)
        b = cfg.build_boundary()
        assert b.kind == "ellipse"
        assert len(b.loops[0]) == 32

    def test_presets_registered(self):
        assert set(PRESETS) == {"organic", "large", "diamonds", "triangles"}
        assert PRESETS["diamonds"] is DIAMONDS
        assert DIAMONDS.strategy == "pairwise"


class TestConfigFromDict:
    def test_empty_document(self):
        assert config_from_dict({}) == GenerationConfig()

    def test_overrides(self):
        cfg = config_from_dict({"seed": 9, "merge_probability": 0.25})
        assert cfg.seed == 9
        assert cfg.merge_probability == 0.25

    def test_preset_then_override(self):
        cfg = config_from_dict({"preset": "diamonds", "seed": 5})
        assert cfg.strategy == "pairwise"
        assert cfg.seed == 5

    def test_out_of_range_values_pass_schema(self):
        # Range problems are clamped by the stages, not rejected here.
        cfg = config_from_dict({"merge_probability": 3.0, "spacing": -1})
        assert cfg.merge_probability == 3.0

    @pytest.mark.parametrize(
        "payload",
        [
            {"strategy": "voronoi"},
            {"seed": "abc"},
            {"unknown": 1},
            {"border": {"shape": "star"}},
            {"border": {"points": [[0, 0]]}},
            {"preset": "nope"},
        ],
    )
    def test_rejects_malformed(self, payload):
        with pytest.raises(ValueError):
            config_from_dict(payload)

    def test_error_names_location(self):
        with pytest.raises(ValueError, match="seed"):
            config_from_dict({"seed": 1.5})

    def test_polygon_border(self):
        cfg = config_from_dict({
            "border": {"shape": "polygon", "points": [[0, 0], [100, 0], [50, 80]]},
        })
        assert cfg.build_boundary().contains((50, 20))

    def test_schema_is_json(self):
        json.dumps(CONFIG_SCHEMA)


class TestConfigFiles:
    def test_save_and_load(self, tmp_path):
        cfg = GenerationConfig(seed=4, strategy="pairwise", border={"shape": "ellipse"})
        path = tmp_path / "nested" / "config.json"
        save_config(cfg, path)
        assert load_config(path) == cfg

    def test_load_invalid(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"strategy": 3}), encoding="utf-8")
        with pytest.raises(ValueError):
            load_config(path)
