# =============================================================================
# msk-sync Main Package - Dynamic Version Loading
# =============================================================================
"""
msk-sync - versioned sample catalog propagation

Publisher side: detects new/changed samples against the record store,
appends stored versions and announces them on the bus.
Subscriber side: folds bus events into a deduplicated snapshot file.

Version is loaded from installed package metadata (pyproject.toml).
"""

from __future__ import annotations

from importlib.metadata import version, PackageNotFoundError


def _get_version() -> str:
    """Get package version from installed metadata."""
    try:
        return version("msk-sync")
    except PackageNotFoundError:
        # Source checkout without `pip install -e .`
        return "0.0.0-dev"


__version__: str = _get_version()
__description__: str = "msk-sync - versioned sample catalog pub/sub propagation"

__all__ = [
    "__version__",
    "__description__",
]
