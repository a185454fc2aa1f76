"""
markupbin.cli
-------------

Command-line entrypoints:

- encode  : build a write tree from a JSON/YAML document and write it in the
            binary format
- version : print the package version

Each command module exposes `register(app: typer.Typer) -> None`.

Usage:
  python -m markupbin.cli --help
  markupbin encode scene.yaml scene.baml --compressed
"""

from __future__ import annotations

import importlib
from typing import List

import typer

from ..version import __version__

_COMMAND_MODULES: List[str] = [
    "markupbin.cli.encode",
]


def build_app() -> typer.Typer:
    app = typer.Typer(
        name="markupbin",
        help="Binary encoder for markup object graphs.",
        no_args_is_help=True,
        add_completion=False,
    )

    @app.command("version")
    def _version() -> None:
        """Print the package version."""
        typer.echo(f"markupbin {__version__}")

    for mod_name in _COMMAND_MODULES:
        importlib.import_module(mod_name).register(app)
    return app


def main() -> None:
    build_app()()


__all__ = ["build_app", "main", "__version__"]
