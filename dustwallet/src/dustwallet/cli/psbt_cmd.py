"""
PSBT inspection command.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Annotated

import typer
from dustcore.bitcoin import scriptpubkey_to_address
from dustcore.cli_common import setup_logging
from dustcore.models import NetworkType
from dustcore.psbt import Psbt, PsbtConstructionError
from loguru import logger

from dustwallet.cli import app


def _load_psbt(psbt: str) -> Psbt:
    """Parse a PSBT given as base64 text, or as a path to a base64 or binary .psbt file."""
    if os.path.isfile(psbt):
        data = Path(psbt).read_bytes()
        if data.startswith(b"psbt\xff"):
            return Psbt.parse(data)
        return Psbt.from_base64(data.decode("ascii", errors="replace"))
    return Psbt.from_base64(psbt)


def _describe_script(script: bytes, network: str) -> str:
    try:
        return scriptpubkey_to_address(script, network)
    except ValueError:
        return f"script {script.hex()}"


@app.command("decode-psbt")
def decode_psbt(
    psbt: Annotated[str, typer.Argument(help="Base64 PSBT, or path to a .psbt file")],
    network: Annotated[
        str, typer.Option("--network", "-n", help="Network used to render addresses")
    ] = NetworkType.MAINNET.value,
    log_level: Annotated[str, typer.Option("--log-level", "-l", help="Log level")] = "WARNING",
) -> None:
    """Decode a sweep PSBT and show its inputs and outputs."""
    setup_logging(log_level)

    try:
        network = NetworkType(network).value
    except ValueError:
        logger.error(f"Unknown network: {network}")
        raise typer.Exit(1)

    try:
        parsed = _load_psbt(psbt)
    except PsbtConstructionError as e:
        logger.error(f"Invalid PSBT: {e}")
        raise typer.Exit(1)

    tx = parsed.unsigned_tx
    print(f"Transaction ID: {tx.txid}")
    print(f"Version:        {tx.version}")
    print(f"Locktime:       {tx.locktime}")

    print(f"\nInputs ({len(tx.inputs)}):")
    known_input_total = 0
    missing_amounts = 0
    for index, inp in enumerate(tx.inputs):
        line = f"  [{index}] {inp.txid}:{inp.vout}  sequence={inp.sequence:#010x}"
        try:
            witness_utxo = parsed.get_witness_utxo(index)
        except PsbtConstructionError as e:
            logger.error(str(e))
            raise typer.Exit(1)
        if witness_utxo is not None:
            value, script = witness_utxo
            known_input_total += value
            line += f"  {value:,} sats  {_describe_script(script, network)}"
        else:
            missing_amounts += 1
        print(line)

    print(f"\nOutputs ({len(tx.outputs)}):")
    for index, out in enumerate(tx.outputs):
        script = out.script_bytes()
        print(f"  [{index}] {out.value:,} sats -> {_describe_script(script, network)}")

    if not missing_amounts:
        print(f"\nFee: {known_input_total - tx.total_output_value:,} sats")
