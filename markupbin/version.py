"""
markupbin.version
-----------------

- __version__: semantic version of the package (kept in step with pyproject.toml).
- version_info: (major, minor, patch) parsed from it.
"""

from __future__ import annotations

from typing import Tuple

# Bump this together with pyproject.toml on user-visible releases.
__version__ = "0.1.0"

version_info: Tuple[int, int, int] = tuple(int(p) for p in __version__.split(".")[:3])  # type: ignore[assignment]

__all__ = ["__version__", "version_info"]
