"""
markupbin — logging
-------------------

Structured logging for the encoder and the CLI:
- JSON lines or a one-line colored text format
- Context-local fields via `contextvars` (trace_id, component, source, target)

Usage
-----
    from markupbin import logging as mlog

    mlog.configure(json=False, level="INFO")  # once at process start
    log = mlog.get_logger(__name__)

    with mlog.trace_scope():
        mlog.bind(component="encode", source="scene.yaml")
        log.info("encoded", extra={"elements": 3})
"""

from __future__ import annotations

import datetime as _dt
import io
import json
import logging
import os
import sys
import threading
import traceback
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import asdict, is_dataclass
from pathlib import Path
from typing import Any, Dict, Optional

_LOG_CONTEXT: ContextVar[Dict[str, Any]] = ContextVar("_LOG_CONTEXT", default={})

# Shown in the text format's context column, in this order.
DEFAULT_CONTEXT_KEYS = ("trace_id", "component", "source", "target")

# Attributes every LogRecord has; anything else came in through `extra=`.
_RECORD_KEYS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", None, None))
) | {"message", "asctime", "taskName"}


def context() -> Dict[str, Any]:
    """Return a copy of the fields bound in the current context."""
    return dict(_LOG_CONTEXT.get())


def bind(**fields: Any) -> None:
    cur = dict(_LOG_CONTEXT.get())
    cur.update({k: _coerce_value(v) for k, v in fields.items()})
    _LOG_CONTEXT.set(cur)


@contextmanager
def trace_scope(trace_id: Optional[str] = None):
    """
    Bind a trace_id (a fresh one unless given) for the duration of the scope.
    Fields bound inside the scope are dropped on exit.
    """
    prev = _LOG_CONTEXT.get()
    token = _LOG_CONTEXT.set(dict(prev))
    try:
        bind(trace_id=trace_id or uuid.uuid4().hex[:12])
        yield
    finally:
        _LOG_CONTEXT.reset(token)


# ----------------------------
# Formatters
# ----------------------------


def _coerce_value(v: Any) -> Any:
    if v is None or isinstance(v, (bool, int, float, str, list, dict)):
        return v
    if isinstance(v, (bytes, bytearray)):
        return v.hex()
    if isinstance(v, Path):
        return str(v)
    if is_dataclass(v) and not isinstance(v, type):
        return asdict(v)
    return str(v)


def _extras(record: logging.LogRecord) -> Dict[str, Any]:
    return {
        k: _coerce_value(v)
        for k, v in vars(record).items()
        if k not in _RECORD_KEYS and not k.startswith("_")
    }


def _timestamp() -> str:
    return _dt.datetime.now(_dt.timezone.utc).isoformat(timespec="milliseconds")


def _traceback(record: logging.LogRecord) -> str:
    return "".join(traceback.format_exception(*record.exc_info)).rstrip()


class JSONFormatter(logging.Formatter):
    """One JSON object per line; bound context first, then call-site extras."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": _timestamp(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "pid": os.getpid(),
            "tid": threading.get_ident(),
            **context(),
        }
        for k, v in _extras(record).items():
            payload.setdefault(k, v)
        if record.exc_info:
            payload["err"] = _traceback(record)
        return json.dumps(payload, default=str, separators=(",", ":"))


_RESET = "\x1b[0m"
_GREY = "\x1b[90m"
_CYAN = "\x1b[36m"
_LEVEL_COLOR = {
    logging.DEBUG: _GREY,
    logging.INFO: "\x1b[32m",
    logging.WARNING: "\x1b[33m",
    logging.ERROR: "\x1b[31m",
    logging.CRITICAL: "\x1b[1m\x1b[35m",
}


class TextFormatter(logging.Formatter):
    """
    Human-friendly one-liner:
      2026-01-05T12:34:56.789+00:00 | INFO  | markupbin.cli.encode | trace_id=abc123 elements=3 | encoded
    """

    def __init__(self, stream: io.TextIOBase):
        super().__init__()
        self._color = _is_tty(stream)

    def _paint(self, color: str, text: str) -> str:
        return f"{color}{text}{_RESET}" if self._color and text else text

    def format(self, record: logging.LogRecord) -> str:
        ctx = context()
        shown = [f"{k}={ctx[k]}" for k in DEFAULT_CONTEXT_KEYS if ctx.get(k) is not None]
        extras = [
            f"{k}={v}"
            for k, v in _extras(record).items()
            if k not in DEFAULT_CONTEXT_KEYS and k not in ctx
        ]

        parts = [
            self._paint(_GREY, _timestamp()),
            self._paint(_LEVEL_COLOR.get(record.levelno, ""), f"{record.levelname:<5}"),
            self._paint(_CYAN, record.name),
        ]
        tail = " ".join([self._paint(_GREY, " ".join(shown))] + extras).strip()
        if tail:
            parts.append(tail)
        parts.append(record.getMessage())

        line = " | ".join(parts)
        if record.exc_info:
            line += "\n" + _traceback(record)
        return line


# ----------------------------
# Setup
# ----------------------------


def configure(
    *,
    json: Optional[bool] = None,
    level: str | int = "INFO",
    stream: io.TextIOBase = sys.stderr,
) -> None:
    """
    Install a single console handler on the `markupbin` logger.

    `json=None` picks the format from MARKUPBIN_LOG_FORMAT=(json|text), falling
    back to text on a TTY and JSON otherwise. Calling again replaces the handler.
    """
    lvl = level if isinstance(level, int) else logging.getLevelName(level.upper())
    if not isinstance(lvl, int):
        lvl = logging.INFO

    root = logging.getLogger("markupbin")
    root.setLevel(lvl)
    for h in list(root.handlers):
        root.removeHandler(h)

    handler = logging.StreamHandler(stream)
    handler.setLevel(lvl)
    handler.setFormatter(JSONFormatter() if _want_json(json, stream) else TextFormatter(stream))
    root.addHandler(handler)


def get_logger(name: Optional[str] = None) -> logging.Logger:
    return logging.getLogger(name or "markupbin")


def _is_tty(stream: io.TextIOBase) -> bool:
    try:
        return stream.isatty() and "NO_COLOR" not in os.environ
    except (AttributeError, ValueError):
        return False


def _want_json(flag: Optional[bool], stream: io.TextIOBase) -> bool:
    if flag is not None:
        return flag
    env = os.environ.get("MARKUPBIN_LOG_FORMAT", "").strip().lower()
    if env in ("json", "text"):
        return env == "json"
    return not _is_tty(stream)


__all__ = [
    "configure",
    "get_logger",
    "JSONFormatter",
    "TextFormatter",
    "bind",
    "context",
    "trace_scope",
]
