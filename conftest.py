"""
Root pytest configuration for all dust-sweeper tests.

Provides:
- ``--fail-on-skip``: report skipped tests as failures (CI)
- an autouse fixture isolating every test from the user's data directory,
  config file and cached settings
"""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest
from pytest import StashKey

_fail_on_skip_key: StashKey[bool] = StashKey[bool]()


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--fail-on-skip",
        action="store_true",
        default=False,
        help="Treat skipped tests as failures (for CI to catch missing setup)",
    )


def pytest_configure(config: pytest.Config) -> None:
    config.stash[_fail_on_skip_key] = config.getoption("--fail-on-skip", default=False)


@pytest.hookimpl(hookwrapper=True)
def pytest_runtest_makereport(item: pytest.Item, call: pytest.CallInfo[None]) -> Iterator[None]:
    """Turn a skip into a failure when --fail-on-skip is set."""
    outcome = yield
    report = outcome.get_result()

    if not (item.config.stash.get(_fail_on_skip_key, False) and report.skipped):
        return

    if isinstance(report.longrepr, tuple) and len(report.longrepr) >= 3:
        reason = report.longrepr[2]
    else:
        reason = str(report.longrepr or "Unknown reason")

    report.outcome = "failed"
    report.longrepr = f"Test was skipped but --fail-on-skip is enabled: {reason}"


@pytest.fixture(autouse=True)
def isolated_data_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    """Point the data directory at tmp_path and clear settings env vars and cache."""
    from dustcore.settings import reset_settings

    data_dir = tmp_path / "dust-sweeper"
    monkeypatch.setenv("DUST_SWEEPER_DATA_DIR", str(data_dir))
    monkeypatch.delenv("DUST_SWEEPER_CONFIG_FILE", raising=False)
    for name in (
        "SWEEP__THRESHOLD",
        "SWEEP__FEE",
        "SWEEP__BURN_ADDRESS",
        "SWEEP__INCLUDE_WITNESS_UTXO",
        "NETWORK_CONFIG__NETWORK",
        "BITCOIN__BACKEND_TYPE",
        "BITCOIN__RPC_URL",
        "BITCOIN__RPC_USER",
        "BITCOIN__RPC_PASSWORD",
        "BITCOIN__UTXO_FILE",
        "BITCOIN_RPC_URL",
        "BITCOIN_RPC_USER",
        "BITCOIN_RPC_PASSWORD",
        "LOGGING__LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)

    reset_settings()
    yield data_dir
    reset_settings()
