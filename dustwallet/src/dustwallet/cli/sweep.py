"""
Sweep command.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated

import typer
from dustcore.bitcoin import InvalidAddressError, format_amount
from dustcore.cli_common import (
    ResolvedBackendSettings,
    ResolvedSweepSettings,
    resolve_backend_settings,
    resolve_sweep_settings,
    setup_cli,
)
from dustcore.paths import get_psbt_output_dir
from loguru import logger

from dustwallet.backends import (
    BitcoinCoreWalletBackend,
    ListUnspentFileBackend,
    SourceUnavailableError,
    UTXOSource,
)
from dustwallet.cli import app
from dustwallet.sweep import DustSweeper, SweepResult


@app.command()
def sweep(
    threshold: Annotated[
        int | None,
        typer.Option("--threshold", "-t", min=0, help="Dust threshold in sats (exclusive)"),
    ] = None,
    fee: Annotated[
        int | None,
        typer.Option("--fee", "-f", min=0, help="Fixed fee in sats per sweep transaction"),
    ] = None,
    burn_address: Annotated[
        str | None,
        typer.Option("--burn-address", "-a", help="Destination address for swept dust"),
    ] = None,
    network: Annotated[str | None, typer.Option("--network", "-n", help="Bitcoin network")] = None,
    backend_type: Annotated[
        str | None,
        typer.Option("--backend", "-b", help="UTXO source: wallet_rpc | file"),
    ] = None,
    rpc_url: Annotated[str | None, typer.Option("--rpc-url", envvar="BITCOIN_RPC_URL")] = None,
    rpc_user: Annotated[str | None, typer.Option("--rpc-user", envvar="BITCOIN_RPC_USER")] = None,
    rpc_password: Annotated[
        str | None, typer.Option("--rpc-password", envvar="BITCOIN_RPC_PASSWORD")
    ] = None,
    wallet_name: Annotated[
        str | None, typer.Option("--wallet", help="Bitcoin Core wallet name")
    ] = None,
    utxo_file: Annotated[
        Path | None,
        typer.Option("--utxo-file", help="Saved listunspent JSON (file backend)"),
    ] = None,
    dry_run: Annotated[
        bool, typer.Option("--dry-run", help="Only list dust and groups, build nothing")
    ] = False,
    witness_utxo: Annotated[
        bool | None,
        typer.Option(
            "--witness-utxo/--no-witness-utxo",
            help="Attach witness UTXO records to segwit inputs",
        ),
    ] = None,
    save: Annotated[
        bool, typer.Option("--save", help="Write .psbt files to <data-dir>/psbt")
    ] = False,
    output_dir: Annotated[
        Path | None,
        typer.Option("--output-dir", "-o", help="Write one .psbt file per group here"),
    ] = None,
    data_dir: Annotated[
        Path | None,
        typer.Option(
            "--data-dir",
            help="Data directory (default: ~/.dust-sweeper or $DUST_SWEEPER_DATA_DIR)",
        ),
    ] = None,
    log_level: Annotated[
        str | None,
        typer.Option("--log-level", "-l", help="Log level"),
    ] = None,
) -> None:
    """Find dust UTXOs and print one unsigned sweep PSBT per address."""
    settings = setup_cli(log_level)

    try:
        backend_settings = resolve_backend_settings(
            settings,
            network=network,
            backend_type=backend_type,
            rpc_url=rpc_url,
            rpc_user=rpc_user,
            rpc_password=rpc_password,
            wallet_name=wallet_name,
            utxo_file=utxo_file,
            data_dir=data_dir,
        )
    except ValueError as e:
        logger.error(str(e))
        raise typer.Exit(1)

    sweep_settings = resolve_sweep_settings(
        settings,
        threshold=threshold,
        fee=fee,
        burn_address=burn_address,
        include_witness_utxo=witness_utxo,
    )

    if backend_settings.backend_type == "file" and backend_settings.utxo_file is None:
        logger.error("The file backend needs --utxo-file (or bitcoin.utxo_file in the config)")
        raise typer.Exit(1)

    try:
        result = asyncio.run(_run_sweep(backend_settings, sweep_settings, dry_run))
    except InvalidAddressError as e:
        logger.error(f"Invalid burn address: {e}")
        raise typer.Exit(1)
    except SourceUnavailableError as e:
        logger.error(f"Cannot list UTXOs: {e}")
        raise typer.Exit(1)

    _print_result(result, sweep_settings)

    if output_dir is not None or save:
        target = output_dir if output_dir is not None else get_psbt_output_dir(
            backend_settings.data_dir
        )
        _write_psbt_files(result, target)

    if result.all_failed:
        logger.error("No sweep transaction could be built")
        raise typer.Exit(1)


def _create_source(backend_settings: ResolvedBackendSettings) -> UTXOSource:
    if backend_settings.backend_type == "file":
        assert backend_settings.utxo_file is not None
        return ListUnspentFileBackend(backend_settings.utxo_file)
    return BitcoinCoreWalletBackend(
        rpc_url=backend_settings.rpc_url,
        rpc_user=backend_settings.rpc_user,
        rpc_password=backend_settings.rpc_password,
        wallet_name=backend_settings.wallet_name,
        timeout=backend_settings.rpc_timeout,
    )


async def _run_sweep(
    backend_settings: ResolvedBackendSettings,
    sweep_settings: ResolvedSweepSettings,
    dry_run: bool,
) -> SweepResult:
    """Sweep implementation."""
    source = _create_source(backend_settings)
    try:
        sweeper = DustSweeper(
            source,
            threshold=sweep_settings.threshold,
            fee=sweep_settings.fee,
            destination=sweep_settings.burn_address,
            network=backend_settings.network,
            include_witness_utxo=sweep_settings.include_witness_utxo,
        )
        return await sweeper.sweep(dry_run=dry_run)
    finally:
        await source.close()


def _print_result(result: SweepResult, sweep_settings: ResolvedSweepSettings) -> None:
    if not result.dust:
        print(f"No dust UTXOs found below {sweep_settings.threshold:,} sats. Nothing to sweep.")
        return

    print(f"\nFound {len(result.dust)} dust UTXOs ({format_amount(result.total_dust_value)})")
    print("=" * 80)

    if result.dry_run:
        for utxo in result.dust:
            address = utxo.address or "(no address)"
            print(f"  {utxo.outpoint}  {utxo.value:>8,} sats  {address}")
        print()
        print(f"{len(result.groups)} address groups:")
        for address, utxos in result.groups.items():
            total = sum(utxo.value for utxo in utxos)
            print(f"  {address}: {len(utxos)} UTXOs, {total:,} sats")
        print("\nDry run: no transactions built.")
        return

    for number, tx in enumerate(result.transactions, start=1):
        print(f"\nGroup {number}: {tx.address}")
        print(f"  Inputs:  {len(tx.utxos)} ({tx.input_total:,} sats)")
        print(f"  Fee:     {tx.fee:,} sats")
        print(f"  Output:  {tx.output_value:,} sats -> {sweep_settings.burn_address}")
        print("  PSBT:")
        print(tx.to_base64())

    if result.failures:
        print(f"\nSkipped {len(result.failures)} groups:")
        for failure in result.failures:
            print(f"  {failure.address}: {failure.reason}")

    print("=" * 80)
    print(
        f"{len(result.transactions)} PSBTs ready to sign, {len(result.failures)} groups skipped"
    )


def _write_psbt_files(result: SweepResult, output_dir: Path) -> None:
    if not result.transactions:
        return
    output_dir.mkdir(parents=True, exist_ok=True)
    for number, tx in enumerate(result.transactions, start=1):
        path = output_dir / f"{number}-{tx.address}.psbt"
        path.write_bytes(tx.psbt.serialize())
        print(f"Saved {path}")
