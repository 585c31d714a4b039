"""
Unified settings management for dust-sweeper.

This module provides a centralized configuration system using pydantic-settings
that supports:
1. TOML configuration file (~/.dust-sweeper/config.toml)
2. Environment variables
3. CLI arguments (via typer, handled by the CLI)

Priority (highest to lowest):
1. CLI arguments
2. Environment variables
3. Config file
4. Default values

Usage:
    from dustcore.settings import get_settings

    settings = get_settings()
    print(settings.sweep.threshold)
    print(settings.bitcoin.rpc_url)

Environment Variable Naming:
    - Use uppercase with double underscore for nested settings
    - Examples: BITCOIN__RPC_URL, SWEEP__THRESHOLD, SWEEP__BURN_ADDRESS
    - Maps to TOML sections: SWEEP__FEE -> [sweep] fee
"""

from __future__ import annotations

import os
from enum import Enum
from pathlib import Path
from typing import Any, Literal

from loguru import logger
from pydantic import BaseModel, Field, SecretStr
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from dustcore.constants import DEFAULT_BURN_ADDRESS, DEFAULT_DUST_THRESHOLD, DEFAULT_SWEEP_FEE
from dustcore.models import NetworkType
from dustcore.paths import get_default_data_dir, resolve_data_dir

CONFIG_FILE_ENV = "DUST_SWEEPER_CONFIG_FILE"

BackendType = Literal["wallet_rpc", "file"]


class BitcoinSettings(BaseModel):
    """UTXO source configuration."""

    backend_type: BackendType = Field(
        default="wallet_rpc",
        description="UTXO source: wallet_rpc (Bitcoin Core listunspent) or file",
    )
    rpc_url: str = Field(
        default="http://127.0.0.1:8332",
        description="Bitcoin Core RPC URL",
    )
    rpc_user: str = Field(
        default="",
        description="Bitcoin Core RPC username",
    )
    rpc_password: SecretStr = Field(
        default=SecretStr(""),
        description="Bitcoin Core RPC password",
    )
    wallet_name: str | None = Field(
        default=None,
        description="Bitcoin Core wallet to query (uses the default wallet if unset)",
    )
    rpc_timeout: float = Field(
        default=30.0,
        gt=0.0,
        description="Timeout in seconds for RPC calls",
    )
    utxo_file: str | None = Field(
        default=None,
        description="Path to a saved listunspent JSON result (file backend)",
    )


class NetworkSettings(BaseModel):
    """Network configuration."""

    network: NetworkType = Field(
        default=NetworkType.MAINNET,
        description="Bitcoin network the burn address must belong to",
    )


class SweepSettings(BaseModel):
    """Dust sweep policy."""

    threshold: int = Field(
        default=DEFAULT_DUST_THRESHOLD,
        ge=0,
        description="UTXOs strictly below this value (sats) are dust",
    )
    fee: int = Field(
        default=DEFAULT_SWEEP_FEE,
        ge=0,
        description="Fixed fee in sats taken from each sweep transaction",
    )
    burn_address: str = Field(
        default=DEFAULT_BURN_ADDRESS,
        description="Destination address for swept dust",
    )
    include_witness_utxo: bool = Field(
        default=True,
        description="Attach witness UTXO records to segwit inputs for external signers",
    )


class LoggingSettings(BaseModel):
    """Logging configuration."""

    level: str = Field(
        default="INFO",
        description="Log level: TRACE, DEBUG, INFO, WARNING, ERROR",
    )


class DustSweeperSettings(BaseSettings):
    """
    Main dust-sweeper settings class.

    Loads configuration from multiple sources with the following priority:
    1. CLI arguments (not handled here, resolved in dustcore.cli_common)
    2. Environment variables
    3. TOML config file (~/.dust-sweeper/config.toml)
    4. Default values
    """

    model_config = SettingsConfigDict(
        env_prefix="",  # No prefix by default, use env_nested_delimiter for nested
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",  # Ignore unknown fields (for forward compatibility)
    )

    data_dir: Path | None = Field(
        default=None,
        description="Data directory (defaults to ~/.dust-sweeper)",
    )

    bitcoin: BitcoinSettings = Field(default_factory=BitcoinSettings)
    network_config: NetworkSettings = Field(default_factory=NetworkSettings)
    sweep: SweepSettings = Field(default_factory=SweepSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """
        Priority (highest to lowest):
        1. init_settings (overrides passed to constructor)
        2. env_settings (environment variables with __ delimiter)
        3. toml_settings (config.toml file)
        4. defaults (in field definitions)
        """
        toml_source = TomlConfigSettingsSource(settings_cls)
        return (
            init_settings,
            env_settings,
            toml_source,
        )

    def get_data_dir(self) -> Path:
        """Get the data directory, using default if not set."""
        if self.data_dir is not None:
            return self.data_dir
        return get_default_data_dir()


class TomlConfigSettingsSource(PydanticBaseSettingsSource):
    """
    Custom settings source that reads from a TOML config file.

    The config file is expected at ~/.dust-sweeper/config.toml,
    $DUST_SWEEPER_DATA_DIR/config.toml, or $DUST_SWEEPER_CONFIG_FILE.
    """

    def __init__(self, settings_cls: type[BaseSettings]) -> None:
        super().__init__(settings_cls)
        self._config: dict[str, Any] = {}
        self._load_config()

    def _load_config(self) -> None:
        """Load configuration from TOML file."""
        config_path = get_config_path()

        if not config_path.exists():
            logger.debug(f"Config file not found at {config_path}, using defaults")
            return

        try:
            import tomllib

            with open(config_path, "rb") as f:
                self._config = tomllib.load(f)

            logger.info(f"Loaded config from {config_path}")
        except tomllib.TOMLDecodeError as e:
            logger.error(f"Invalid TOML syntax in config file {config_path}")
            logger.error(f"Error: {e}")
            logger.error("Tip: Make sure section headers like [sweep] are uncommented")
            import sys

            sys.exit(1)
        except OSError as e:
            logger.error(f"Failed to load config from {config_path}: {e}")
            import sys

            sys.exit(1)

    def get_field_value(self, field: Any, field_name: str) -> tuple[Any, str, bool]:
        """Get field value from TOML config."""
        value = self._config.get(field_name)
        return value, field_name, value is not None

    def __call__(self) -> dict[str, Any]:
        """Return all config values as a dict for pydantic-settings."""
        return self._config


def get_config_path() -> Path:
    """Get the path to the config file."""
    env_path = os.environ.get(CONFIG_FILE_ENV)
    if env_path:
        return Path(env_path)
    return resolve_data_dir() / "config.toml"


def generate_config_template() -> str:
    """
    Generate a config file template with all settings commented out.

    Users see every available setting with its default and description,
    and only uncomment what they want to change.
    """
    lines: list[str] = []

    lines.append("# dust-sweeper configuration")
    lines.append("#")
    lines.append("# Settings are commented out by default - uncomment to override.")
    lines.append("#")
    lines.append("# Priority (highest to lowest):")
    lines.append("#   1. CLI arguments")
    lines.append("#   2. Environment variables")
    lines.append("#   3. This config file")
    lines.append("#   4. Built-in defaults")
    lines.append("#")
    lines.append("# Environment variables use uppercase with double underscore for nesting:")
    lines.append("#   SWEEP__THRESHOLD=1000")
    lines.append("#   BITCOIN__RPC_URL=http://localhost:8332")
    lines.append("#")
    lines.append("")

    def add_section(title: str, model_cls: type[BaseModel], prefix: str) -> None:
        lines.append(f"# {'=' * 60}")
        lines.append(f"# {title}")
        lines.append(f"# {'=' * 60}")
        lines.append(f"[{prefix}]")
        lines.append("")

        for field_name, field_info in model_cls.model_fields.items():
            desc = field_info.description or ""
            if desc:
                lines.append(f"# {desc}")

            default = field_info.default

            if isinstance(default, bool):
                value_str = str(default).lower()
            elif isinstance(default, Enum):
                value_str = f'"{default.value}"'
            elif isinstance(default, str):
                value_str = f'"{default}"'
            elif isinstance(default, SecretStr):
                value_str = '""'
            elif default is None:
                lines.append(f"# {field_name} = ")
                lines.append("")
                continue
            else:
                value_str = str(default)

            lines.append(f"# {field_name} = {value_str}")
            lines.append("")

    lines.append("# Data directory for dust-sweeper files")
    lines.append("# Defaults to ~/.dust-sweeper or $DUST_SWEEPER_DATA_DIR")
    lines.append("# data_dir = ")
    lines.append("")

    add_section("UTXO Source Settings", BitcoinSettings, "bitcoin")
    add_section("Network Settings", NetworkSettings, "network_config")
    add_section("Sweep Settings", SweepSettings, "sweep")
    add_section("Logging Settings", LoggingSettings, "logging")

    return "\n".join(lines)


def ensure_config_file(data_dir: Path | None = None) -> Path:
    """
    Ensure the config file exists, creating a template if it doesn't.

    Args:
        data_dir: Optional data directory path. Uses default if not provided.

    Returns:
        Path to the config file.
    """
    if data_dir is None:
        data_dir = get_default_data_dir()

    config_path = data_dir / "config.toml"

    if not config_path.exists():
        logger.info(f"Creating config file template at {config_path}")
        data_dir.mkdir(parents=True, exist_ok=True)
        config_path.write_text(generate_config_template())

    return config_path


# Global settings instance (lazy-loaded)
_settings: DustSweeperSettings | None = None


def get_settings(**overrides: Any) -> DustSweeperSettings:
    """
    Get the dust-sweeper settings instance.

    On first call, loads settings from all sources. Subsequent calls
    return the cached instance unless reset_settings() is called.

    Args:
        **overrides: Optional settings overrides (highest priority)

    Returns:
        DustSweeperSettings instance
    """
    global _settings
    if _settings is None or overrides:
        _settings = DustSweeperSettings(**overrides)
    return _settings


def reset_settings() -> None:
    """Reset the global settings instance (useful for testing)."""
    global _settings
    _settings = None


__all__ = [
    "DustSweeperSettings",
    "BitcoinSettings",
    "NetworkSettings",
    "SweepSettings",
    "LoggingSettings",
    "get_settings",
    "reset_settings",
    "get_config_path",
    "generate_config_template",
    "ensure_config_file",
]
