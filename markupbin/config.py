"""
markupbin.config
----------------

Writer settings for the binary encoder, loaded in layers.

Precedence (highest first):
    1) Explicit overrides passed to `load_config()`
    2) Environment variables (MARKUPBIN_*)
    3) Config file (TOML or JSON)
    4) Built-in defaults

Environment variables
~~~~~~~~~~~~~~~~~~~~~
MARKUPBIN_VERSION_ID=1                # u32 written into the stream header
MARKUPBIN_COMPRESSED=true|false       # default for callers that don't choose
MARKUPBIN_COMPRESSION_LEVEL=-1        # zlib level, -1 (default) or 0..9
MARKUPBIN_OVERFLOW=error|truncate     # bounded-string policy
MARKUPBIN_LOG_LEVEL=INFO
MARKUPBIN_LOG_FORMAT=json|text
MARKUPBIN_CONFIG=/path/to/markupbin.toml

Everything is standard-library so the module is safe to import early.
"""

from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

try:  # py311+
    import tomllib as _toml  # type: ignore[attr-defined]
except Exception:  # py310
    _toml = None  # type: ignore[assignment]

from .errors import ConfigError

ENV_PREFIX = "MARKUPBIN_"

U32_MAX = 0xFFFFFFFF


class OverflowPolicy(str, Enum):
    """What a bounded string does when its value is longer than the cap."""

    ERROR = "error"
    TRUNCATE = "truncate"

    @classmethod
    def parse(cls, value: "str | OverflowPolicy") -> "OverflowPolicy":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ConfigError(
                "unknown overflow policy",
                value=value,
                allowed=[p.value for p in cls],
            ) from None


# ------------------------------
# Helpers
# ------------------------------


def _env(name: str) -> Optional[str]:
    v = os.getenv(ENV_PREFIX + name)
    return v if v is not None and v != "" else None


def _parse_bool(v: Any) -> bool:
    if isinstance(v, bool):
        return v
    vv = str(v).strip().lower()
    if vv in {"1", "true", "t", "yes", "y", "on"}:
        return True
    if vv in {"0", "false", "f", "no", "n", "off"}:
        return False
    raise ConfigError("expected a boolean", value=v)


def _parse_int(v: Any, name: str) -> int:
    try:
        return int(v)
    except (TypeError, ValueError):
        raise ConfigError(f"expected an integer for {name}", value=v) from None


def _read_file(path: Path) -> Dict[str, Any]:
    try:
        raw = path.read_bytes()
    except OSError as e:
        raise ConfigError("cannot read config file", path=str(path), reason=str(e)) from e

    if path.suffix.lower() == ".toml":
        if _toml is None:
            raise ConfigError("TOML config requires Python 3.11+", path=str(path))
        try:
            data = _toml.loads(raw.decode("utf-8"))
        except Exception as e:
            raise ConfigError("bad TOML config", path=str(path), reason=str(e)) from e
    else:
        try:
            data = json.loads(raw.decode("utf-8"))
        except ValueError as e:
            raise ConfigError("bad JSON config", path=str(path), reason=str(e)) from e

    if not isinstance(data, dict):
        raise ConfigError("config root must be a table/object", path=str(path))
    # Allow the settings to live under a [markupbin] table.
    section = data.get("markupbin", data)
    if not isinstance(section, dict):
        raise ConfigError("[markupbin] must be a table", path=str(path))
    return section


# ------------------------------
# Config model
# ------------------------------


@dataclass(frozen=True)
class WriterConfig:
    version_id: int = 1
    compressed: bool = False
    compression_level: int = -1
    overflow: OverflowPolicy = OverflowPolicy.ERROR
    log_level: str = "INFO"
    log_format: Optional[str] = None

    def validate(self) -> None:
        if not (0 <= self.version_id <= U32_MAX):
            raise ConfigError("version_id must fit in u32", version_id=self.version_id)
        if not (-1 <= self.compression_level <= 9):
            raise ConfigError(
                "compression_level must be -1 or 0..9",
                compression_level=self.compression_level,
            )
        if self.log_format is not None and self.log_format not in ("json", "text"):
            raise ConfigError("log_format must be json or text", log_format=self.log_format)

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["overflow"] = self.overflow.value
        return d


_FIELDS = ("version_id", "compressed", "compression_level", "overflow", "log_level", "log_format")


def _coerce(values: Mapping[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for k, v in values.items():
        if k not in _FIELDS:
            raise ConfigError("unknown config key", key=k)
        if v is None:
            continue
        if k in ("version_id", "compression_level"):
            out[k] = _parse_int(v, k)
        elif k == "compressed":
            out[k] = _parse_bool(v)
        elif k == "overflow":
            out[k] = OverflowPolicy.parse(v)
        elif k == "log_level":
            out[k] = str(v).upper()
        else:
            out[k] = str(v).lower()
    return out


def _from_env() -> Dict[str, Any]:
    raw = {name: _env(name.upper()) for name in _FIELDS}
    return _coerce({k: v for k, v in raw.items() if v is not None})


def load_config(path: Optional[str | Path] = None, **overrides: Any) -> WriterConfig:
    """
    Build a validated WriterConfig from defaults, an optional file, the
    environment and explicit overrides (in increasing precedence).
    """
    merged: Dict[str, Any] = {}

    file_path = path if path is not None else _env("CONFIG")
    if file_path:
        merged.update(_coerce(_read_file(Path(file_path).expanduser())))

    merged.update(_from_env())
    merged.update(_coerce({k: v for k, v in overrides.items() if v is not None}))

    cfg = WriterConfig(**merged)
    cfg.validate()
    return cfg


__all__ = ["OverflowPolicy", "WriterConfig", "load_config", "U32_MAX"]
