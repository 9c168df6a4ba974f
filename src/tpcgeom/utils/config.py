from __future__ import annotations

import json
from dataclasses import asdict, is_dataclass
from pathlib import Path
from typing import Any, Dict, Union

PathLike = Union[str, Path]

_YAML_SUFFIXES = (".yaml", ".yml")


def _yaml():
    try:
        import yaml  # type: ignore
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("YAML config requested but PyYAML not installed") from exc
    return yaml


def load_config(path: PathLike) -> Dict[str, Any]:
    """Read a calibration/config file into a plain dict.

    The format follows the suffix: ``.yaml``/``.yml`` need PyYAML, anything
    else is parsed as JSON.
    """
    path = Path(path)
    text = path.read_text()
    if path.suffix.lower() in _YAML_SUFFIXES:
        return _yaml().safe_load(text) or {}
    return json.loads(text)


def save_config(data: Any, path: PathLike) -> Path:
    """Write ``data`` (a dict or anything ``dump_config`` accepts) as JSON or YAML by suffix."""
    path = Path(path)
    d = dump_config(data)
    if path.suffix.lower() in _YAML_SUFFIXES:
        path.write_text(_yaml().safe_dump(d, sort_keys=False))
    else:
        path.write_text(json.dumps(d, indent=2))
    return path


def dump_config(obj: Any) -> Dict[str, Any]:
    """Plain dict view of a calibration, record or dataclass."""
    if isinstance(obj, dict):
        return obj
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    if is_dataclass(obj):
        return asdict(obj)
    raise TypeError(f"cannot serialise {type(obj).__name__} as config")
