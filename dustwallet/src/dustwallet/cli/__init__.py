"""
dust-sweeper CLI package.

Commands are organized into submodules and registered via ``@app.command()``
decorators that reference the ``app`` Typer instance defined here.
"""

from __future__ import annotations

from typing import Annotated

import typer
from dustcore.version import get_version

app = typer.Typer(
    name="dust-sweeper",
    help="Find dust UTXOs and build unsigned PSBTs that sweep them to a burn address",
    add_completion=False,
)


def _version_callback(value: bool) -> None:
    if value:
        print(f"dust-sweeper {get_version()}")
        raise typer.Exit()


@app.callback()
def _root(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show the version and exit",
        ),
    ] = False,
) -> None:
    """Find dust UTXOs and build unsigned PSBTs that sweep them to a burn address."""


def main() -> None:
    """Entry point for the ``dust-sweeper`` console script."""
    app()


# ---------------------------------------------------------------------------
# Import submodules to register their ``@app.command()`` decorated functions.
# These imports MUST come after ``app`` is defined above.
# ---------------------------------------------------------------------------
from dustwallet.cli import config_cmd, psbt_cmd, sweep  # noqa: E402, F401

if __name__ == "__main__":
    main()
