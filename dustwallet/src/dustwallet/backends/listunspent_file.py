"""
Offline UTXO source reading a saved ``listunspent`` result.

Useful on air-gapped machines: run ``bitcoin-cli listunspent > utxos.json``
on the online node, copy the file over and build the sweep PSBTs offline.
Both the bare result list and the full JSON-RPC response
(``{"result": [...], "error": null, "id": ...}``) are accepted.
"""

from __future__ import annotations

import json
from pathlib import Path

from loguru import logger

from dustwallet.backends.base import (
    UTXO,
    SourceUnavailableError,
    UTXOSource,
    utxo_from_listunspent,
)


class ListUnspentFileBackend(UTXOSource):
    def __init__(self, path: Path | str):
        self.path = Path(path)

    async def list_unspent(self) -> list[UTXO]:
        try:
            data = json.loads(self.path.read_text())
        except OSError as e:
            raise SourceUnavailableError(f"Cannot read UTXO file {self.path}: {e}") from e
        except json.JSONDecodeError as e:
            raise SourceUnavailableError(f"Invalid JSON in UTXO file {self.path}: {e}") from e

        if isinstance(data, dict):
            if data.get("error"):
                raise SourceUnavailableError(f"UTXO file holds an RPC error: {data['error']}")
            data = data.get("result")

        if not isinstance(data, list):
            raise SourceUnavailableError(
                f"UTXO file {self.path} must contain a listunspent result list"
            )

        utxos = [utxo_from_listunspent(entry) for entry in data]
        logger.debug(f"Loaded {len(utxos)} UTXOs from {self.path}")
        return utxos
