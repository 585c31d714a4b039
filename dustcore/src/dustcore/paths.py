"""
Shared path utilities for dust-sweeper data directories.
"""

from __future__ import annotations

import os
from pathlib import Path

DATA_DIR_ENV = "DUST_SWEEPER_DATA_DIR"
DEFAULT_DATA_DIR_NAME = ".dust-sweeper"


def resolve_data_dir() -> Path:
    """
    Return ~/.dust-sweeper or $DUST_SWEEPER_DATA_DIR if set, without creating it.
    """
    env_path = os.getenv(DATA_DIR_ENV)
    return Path(env_path) if env_path else Path.home() / DEFAULT_DATA_DIR_NAME


def get_default_data_dir() -> Path:
    """
    Get the default dust-sweeper data directory.

    Returns ~/.dust-sweeper or $DUST_SWEEPER_DATA_DIR if set.
    Creates the directory if it doesn't exist.
    """
    data_dir = resolve_data_dir()
    data_dir.mkdir(parents=True, exist_ok=True)
    return data_dir


def get_psbt_output_dir(data_dir: Path | None = None) -> Path:
    """
    Get the directory where exported PSBT files are written.

    Args:
        data_dir: Optional data directory (defaults to get_default_data_dir())

    Returns:
        Path to the psbt/ subdirectory (created if missing)
    """
    if data_dir is None:
        data_dir = get_default_data_dir()

    psbt_dir = data_dir / "psbt"
    psbt_dir.mkdir(parents=True, exist_ok=True)
    return psbt_dir
