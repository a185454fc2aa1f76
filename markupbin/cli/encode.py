"""
markupbin.cli.encode
====================

Encode a tree document (JSON or YAML) into the binary markup format.

Examples:
  # Plain stream
  python -m markupbin.cli encode scene.yaml scene.baml

  # Compressed stream, legacy truncation of oversized values
  python -m markupbin.cli encode scene.json scene.baml --compressed --truncate

  # Settings from a file (env MARKUPBIN_* still wins over the file)
  python -m markupbin.cli encode scene.yaml out.baml --config markupbin.toml

Prints one summary line on success. Any MarkupError is reported as JSON on
stderr with exit code 1, and DST is left as it was.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Optional

import typer

from .. import logging as mlog
from ..builder import build_tree, load_document
from ..config import OverflowPolicy, load_config
from ..encoding import BinaryWriter
from ..errors import MarkupError, SinkWriteError, wrap

COMMAND_NAME = "encode"

log = mlog.get_logger(__name__)


def encode_cmd(
    src: Path = typer.Argument(..., exists=True, dir_okay=False, help="Tree document (.json/.yaml/.yml)"),
    dst: Path = typer.Argument(..., dir_okay=False, help="Output file"),
    compressed: Optional[bool] = typer.Option(
        None, "--compressed/--no-compressed", help="DEFLATE the element stream (default from config)"
    ),
    version_id: Optional[int] = typer.Option(None, "--version-id", help="Version id written to the header"),
    truncate: bool = typer.Option(False, "--truncate", help="Truncate oversized values instead of failing"),
    config: Optional[Path] = typer.Option(None, "--config", help="TOML or JSON settings file"),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="DEBUG, INFO, WARNING, ..."),
    json_logs: bool = typer.Option(False, "--json-logs", help="Emit logs as JSON lines"),
) -> None:
    """Encode SRC into DST."""
    try:
        cfg = load_config(
            config,
            compressed=compressed,
            version_id=version_id,
            overflow=OverflowPolicy.TRUNCATE if truncate else None,
            log_level=log_level,
        )
    except MarkupError as e:
        _fail(e)

    mlog.configure(
        json=True if json_logs else _format_flag(cfg.log_format),
        level=cfg.log_level,
    )

    with mlog.trace_scope():
        mlog.bind(component="encode", source=str(src), target=str(dst))
        try:
            root = build_tree(load_document(src))
            writer = BinaryWriter.from_config(cfg)
            # DST only appears once the whole stream is written.
            part = dst.with_name(f".{dst.name}.part")
            try:
                with open(part, "wb") as fh:
                    stats = writer.write(fh, root, cfg.compressed)
                os.replace(part, dst)
            except OSError as e:
                raise wrap(e, as_=SinkWriteError, path=str(dst)) from e
            finally:
                part.unlink(missing_ok=True)
        except MarkupError as e:
            log.error("encode failed", extra={"code": str(getattr(e.code, "value", e.code))})
            _fail(e)

    log.info("encoded", extra=stats.to_dict())
    typer.echo(
        f"{dst}: {stats.bytes_written} bytes, {stats.elements} elements "
        f"({stats.aliases} aliases), {stats.custom_nodes} custom nodes"
        + (", compressed" if stats.compressed else "")
        + (f", {stats.truncations} truncated" if stats.truncations else "")
    )


def _format_flag(fmt: Optional[str]) -> Optional[bool]:
    if fmt is None:
        return None
    return fmt == "json"


def _fail(err: MarkupError) -> None:
    typer.echo(json.dumps(err.to_dict(include_cause=True), sort_keys=True), err=True)
    raise typer.Exit(1)


def register(app: typer.Typer) -> None:
    app.command(name=COMMAND_NAME)(encode_cmd)


__all__ = ["register", "encode_cmd", "COMMAND_NAME"]
