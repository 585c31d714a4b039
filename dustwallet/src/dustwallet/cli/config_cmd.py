"""
Configuration file command.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from dustcore.paths import get_default_data_dir
from dustcore.settings import ensure_config_file

from dustwallet.cli import app


@app.command("config-init")
def config_init(
    data_dir: Annotated[
        Path | None,
        typer.Option(
            "--data-dir",
            help="Data directory (default: ~/.dust-sweeper or $DUST_SWEEPER_DATA_DIR)",
        ),
    ] = None,
) -> None:
    """Create a config.toml template with every setting commented out."""
    target_dir = data_dir if data_dir is not None else get_default_data_dir()
    config_path = target_dir / "config.toml"
    existed = config_path.exists()

    ensure_config_file(target_dir)

    if existed:
        print(f"Config file already exists: {config_path}")
    else:
        print(f"Created config file: {config_path}")
