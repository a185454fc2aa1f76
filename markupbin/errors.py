"""
markupbin — errors
------------------

A small, consistent error system for the encoder and its tooling.

Design goals
------------
- One root `MarkupError` with machine-friendly `code` and optional `data`.
- Concrete subclasses for the failure classes an encode can hit: sink I/O,
  compression, invalid alias targets, malformed nodes and oversized values.
- Non-invasive helpers to enrich errors with contextual fields.
- Safe JSON representation (`to_dict`) suitable for logs and CLI output.

This module uses only stdlib so it can be imported before anything else.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Type, TypeVar

# ---------------------------------------------------------------------------
# Error codes & classes
# ---------------------------------------------------------------------------


class ErrorCode(str, Enum):
    # Config / input documents
    CONFIG = "MARKUP/CONFIG"
    DOCUMENT = "MARKUP/DOCUMENT"

    # Streams
    IO = "MARKUP/IO"
    COMPRESSION = "MARKUP/COMPRESSION"

    # Encoding
    INVALID_REFERENCE_TARGET = "MARKUP/INVALID_REFERENCE_TARGET"
    VALUE_TOO_LONG = "MARKUP/VALUE_TOO_LONG"
    INVALID_NODE = "MARKUP/INVALID_NODE"


@dataclass(eq=False)
class MarkupError(Exception):
    """
    Root error for markupbin.

    Attributes
    ----------
    code: str
        Machine-stable error code (see ErrorCode).
    message: str
        Human hint suitable for logs.
    data: dict
        Optional machine data (ids, sizes, names). Must be JSON-serializable.
    retryable: bool
        Whether the operation may succeed on retry without changing inputs.
    cause: Optional[BaseException]
        Wrapped original exception (see `wrap`).
    """

    code: str
    message: str
    data: Dict[str, Any] = field(default_factory=dict)
    retryable: bool = False
    cause: Optional[BaseException] = field(default=None, compare=False, repr=False)

    def __post_init__(self) -> None:
        # Make Exception(args) meaningful for interop
        super().__init__(f"{self.code}: {self.message}")

    # ---------------- Public API ----------------

    def with_context(self, **ctx: Any) -> "MarkupError":
        """Return a *new* error with extra context merged (does not mutate)."""
        d = dict(self.data)
        for k, v in ctx.items():
            d[k] = _coerce_json(v)
        return MarkupError(
            code=self.code,
            message=self.message,
            data=d,
            retryable=self.retryable,
            cause=self.cause,
        )

    def to_dict(self, include_cause: bool = False) -> Dict[str, Any]:
        """JSON-safe shape suitable for logs and CLI output."""
        out = {
            "code": str(getattr(self.code, "value", self.code)),
            "message": self.message,
            "data": _coerce_json(self.data),
            "retryable": self.retryable,
        }
        if include_cause and self.cause is not None:
            out["cause"] = {
                "type": type(self.cause).__name__,
                "message": str(self.cause),
            }
        return out

    def __str__(self) -> str:  # pragma: no cover - human formatting
        code = getattr(self.code, "value", self.code)
        parts = [f"{code}: {self.message}"]
        if self.data:
            preview = ", ".join(f"{k}={_preview(v)}" for k, v in self.data.items())
            parts.append(f"[{preview}]")
        return " ".join(parts)


# Concrete subclasses (thin wrappers for ergonomics)
class ConfigError(MarkupError):
    def __init__(self, message="invalid configuration", **data: Any) -> None:
        super().__init__(
            code=ErrorCode.CONFIG,
            message=message,
            data=_jsonmap(data),
            retryable=False,
        )


class DocumentError(MarkupError):
    """A tree document could not be turned into write nodes."""

    def __init__(self, message="invalid document", **data: Any) -> None:
        super().__init__(
            code=ErrorCode.DOCUMENT,
            message=message,
            data=_jsonmap(data),
            retryable=False,
        )


class SinkWriteError(MarkupError):
    """The underlying stream refused a write; the output is partial."""

    def __init__(self, message="sink write failed", **data: Any) -> None:
        super().__init__(
            code=ErrorCode.IO,
            message=message,
            data=_jsonmap(data),
            retryable=False,
        )


class CompressionError(MarkupError):
    def __init__(self, message="compression failed", **data: Any) -> None:
        super().__init__(
            code=ErrorCode.COMPRESSION,
            message=message,
            data=_jsonmap(data),
            retryable=False,
        )


class InvalidReferenceTarget(MarkupError):
    """
    An alias node points at a target without an identity (ref id 0) or at a
    target that no longer exists. Indicates a bug in whatever assigned ids.
    """

    def __init__(
        self,
        message="alias target has no reference id",
        *,
        class_name: Optional[str] = None,
        ref_id: int = 0,
        **data: Any,
    ) -> None:
        d = {"class_name": class_name, "ref_id": ref_id, **data}
        super().__init__(
            code=ErrorCode.INVALID_REFERENCE_TARGET,
            message=message,
            data=_jsonmap(d),
            retryable=False,
        )


class ValueTooLong(MarkupError):
    def __init__(self, *, limit: int, observed: int, what: str = "value", **data: Any) -> None:
        d = {"what": what, "limit": int(limit), "observed": int(observed), **data}
        super().__init__(
            code=ErrorCode.VALUE_TOO_LONG,
            message=f"{what} exceeds {limit} bytes",
            data=_jsonmap(d),
            retryable=False,
        )


class InvalidNode(MarkupError):
    def __init__(self, message="invalid write node", **data: Any) -> None:
        super().__init__(
            code=ErrorCode.INVALID_NODE,
            message=message,
            data=_jsonmap(data),
            retryable=False,
        )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

T = TypeVar("T", bound=MarkupError)


def wrap(exc: BaseException, *, as_: Type[T], **ctx: Any) -> T:
    """
    Wrap a foreign exception (typically OSError) into `as_`, attaching context
    and keeping the original as `cause`.
    If `exc` is already a MarkupError, returns a context-enriched copy.
    """
    if isinstance(exc, MarkupError):
        return exc.with_context(**ctx)  # type: ignore[return-value]
    err = as_(str(exc) or "wrapped exception", **ctx)  # type: ignore[call-arg]
    err.cause = exc
    return err


def _jsonmap(data: Mapping[str, Any]) -> Dict[str, Any]:
    return {k: _coerce_json(v) for k, v in data.items()}


def _coerce_json(v: Any) -> Any:
    # Keep JSON primitives; stringify the rest; hex-encode bytes.
    if v is None or isinstance(v, (bool, int, float, str, list, dict)):
        return v
    if isinstance(v, (bytes, bytearray)):
        return v.hex()
    try:
        return str(v)
    except Exception:
        return "<unprintable>"


def _preview(v: Any, limit: int = 96) -> str:
    s = str(_coerce_json(v))
    return s if len(s) <= limit else s[:limit] + "…"


__all__ = [
    "ErrorCode",
    "MarkupError",
    "ConfigError",
    "DocumentError",
    "SinkWriteError",
    "CompressionError",
    "InvalidReferenceTarget",
    "ValueTooLong",
    "InvalidNode",
    "wrap",
]
