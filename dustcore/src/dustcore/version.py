"""
Centralized version management for dust-sweeper.

This is the single source of truth for the project version.
Both packages inherit their version from here.
"""

from __future__ import annotations

# Format: MAJOR.MINOR.PATCH (Semantic Versioning)
__version__ = "0.3.0"


def get_version() -> str:
    """Return the current version string."""
    return __version__
