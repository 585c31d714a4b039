"""
Common CLI components for dust-sweeper.

Architecture:
- Resolver functions: Take CLI args + settings and return resolved values
- Setup functions: Common initialization (logging, settings)

The CLI parameter definitions live in dustwallet.cli; the resolution logic
is kept here so that it can be tested without typer.

Usage:
    from dustcore.cli_common import resolve_backend_settings, setup_cli

    @app.command()
    def sweep(
        rpc_url: Annotated[str | None, typer.Option("--rpc-url")] = None,
        ...
    ):
        settings = setup_cli(log_level)
        backend = resolve_backend_settings(settings, rpc_url=rpc_url, ...)
"""

from __future__ import annotations

import sys
from dataclasses import dataclass
from pathlib import Path

from loguru import logger
from pydantic import SecretStr

from dustcore.models import NetworkType
from dustcore.settings import DustSweeperSettings, get_settings, reset_settings

BACKEND_TYPES = ("wallet_rpc", "file")

# =============================================================================
# Resolved Settings Dataclasses
# =============================================================================


@dataclass
class ResolvedBackendSettings:
    """Resolved UTXO source settings ready for use."""

    network: str
    backend_type: str
    rpc_url: str
    rpc_user: str
    rpc_password: str
    wallet_name: str | None
    rpc_timeout: float
    utxo_file: Path | None
    data_dir: Path


@dataclass
class ResolvedSweepSettings:
    """Resolved sweep policy ready for use."""

    threshold: int
    fee: int
    burn_address: str
    include_witness_utxo: bool


# =============================================================================
# Setup Functions
# =============================================================================


def setup_logging(level: str = "INFO") -> None:
    """
    Configure loguru logging with consistent format.

    Args:
        level: Log level (TRACE, DEBUG, INFO, WARNING, ERROR)
    """
    logger.remove()
    logger.add(
        sys.stderr,
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
            "<level>{message}</level>"
        ),
        level=level.upper(),
        colorize=True,
    )


def setup_cli(log_level: str | None = None) -> DustSweeperSettings:
    """
    Common CLI setup: reset settings cache, configure logging, return settings.

    Log level priority: CLI argument > settings (env/config) > default "INFO"

    Args:
        log_level: Log level override from CLI (None means use settings)

    Returns:
        DustSweeperSettings instance with all sources loaded
    """
    reset_settings()
    settings = get_settings()

    effective_log_level = log_level if log_level is not None else settings.logging.level
    setup_logging(effective_log_level)

    return settings


# =============================================================================
# Resolution Functions
# =============================================================================


def resolve_backend_settings(
    settings: DustSweeperSettings,
    *,
    network: NetworkType | str | None = None,
    backend_type: str | None = None,
    rpc_url: str | None = None,
    rpc_user: str | None = None,
    rpc_password: str | None = None,
    wallet_name: str | None = None,
    utxo_file: Path | None = None,
    data_dir: Path | None = None,
) -> ResolvedBackendSettings:
    """
    Resolve UTXO source settings with priority: CLI > Settings (env + config) > Defaults.

    Raises:
        ValueError: If the backend type or network is unknown
    """
    if network is not None:
        resolved_network = NetworkType(network).value
    else:
        resolved_network = settings.network_config.network.value

    resolved_backend_type = (
        backend_type if backend_type is not None else settings.bitcoin.backend_type
    )
    if resolved_backend_type not in BACKEND_TYPES:
        raise ValueError(
            f"Unknown backend type '{resolved_backend_type}' "
            f"(expected one of: {', '.join(BACKEND_TYPES)})"
        )

    resolved_rpc_url = rpc_url if rpc_url is not None else settings.bitcoin.rpc_url
    resolved_rpc_user = rpc_user if rpc_user is not None else settings.bitcoin.rpc_user

    # Handle SecretStr for password
    if rpc_password is not None:
        resolved_rpc_password = rpc_password
    else:
        pwd = settings.bitcoin.rpc_password
        resolved_rpc_password = pwd.get_secret_value() if isinstance(pwd, SecretStr) else str(pwd)

    resolved_wallet_name = wallet_name if wallet_name is not None else settings.bitcoin.wallet_name

    resolved_utxo_file: Path | None = None
    if utxo_file is not None:
        resolved_utxo_file = utxo_file
    elif settings.bitcoin.utxo_file:
        resolved_utxo_file = Path(settings.bitcoin.utxo_file)

    resolved_data_dir = data_dir if data_dir is not None else settings.get_data_dir()

    return ResolvedBackendSettings(
        network=resolved_network,
        backend_type=resolved_backend_type,
        rpc_url=resolved_rpc_url,
        rpc_user=resolved_rpc_user,
        rpc_password=resolved_rpc_password,
        wallet_name=resolved_wallet_name,
        rpc_timeout=settings.bitcoin.rpc_timeout,
        utxo_file=resolved_utxo_file,
        data_dir=resolved_data_dir,
    )


def resolve_sweep_settings(
    settings: DustSweeperSettings,
    *,
    threshold: int | None = None,
    fee: int | None = None,
    burn_address: str | None = None,
    include_witness_utxo: bool | None = None,
) -> ResolvedSweepSettings:
    """Resolve sweep policy with priority: CLI > Settings (env + config) > Defaults."""
    return ResolvedSweepSettings(
        threshold=threshold if threshold is not None else settings.sweep.threshold,
        fee=fee if fee is not None else settings.sweep.fee,
        burn_address=burn_address if burn_address is not None else settings.sweep.burn_address,
        include_witness_utxo=(
            include_witness_utxo
            if include_witness_utxo is not None
            else settings.sweep.include_witness_utxo
        ),
    )
