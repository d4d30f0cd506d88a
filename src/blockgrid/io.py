from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Union

from .config import GenerationConfig, config_from_dict


PathLike = Union[str, Path]


def load_config(path: PathLike) -> GenerationConfig:
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    return config_from_dict(data)


def save_config(config: GenerationConfig, path: PathLike) -> None:
    save_json(config.to_dict(), path)


def save_json(payload: Dict[str, Any], path: PathLike) -> Path:
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
    return out
