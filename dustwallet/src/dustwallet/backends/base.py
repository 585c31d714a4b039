"""
Base class for UTXO sources.
"""

from __future__ import annotations

import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from dustcore.bitcoin import btc_to_sats
from dustcore.constants import MAX_VOUT

# Environment variable to enable sensitive logging (addresses, amounts, PSBTs)
SENSITIVE_LOGGING = os.environ.get("SENSITIVE_LOGGING", "").lower() in ("1", "true", "yes")


class SourceUnavailableError(Exception):
    """Raised when the UTXO source is unreachable, rejects us, or returns bad data."""

    pass


@dataclass(frozen=True)
class UTXO:
    """Unspent transaction output"""

    txid: str
    vout: int
    value: int
    address: str | None = None
    scriptpubkey: str = ""
    confirmations: int = 0

    @property
    def outpoint(self) -> str:
        return f"{self.txid}:{self.vout}"


def utxo_from_listunspent(entry: dict[str, Any]) -> UTXO:
    """
    Build a UTXO from one entry of Bitcoin Core's ``listunspent`` result.

    Amounts are given in BTC and converted to satoshis.

    Raises:
        SourceUnavailableError: If the entry is missing fields or holds invalid values
    """
    try:
        txid = entry["txid"]
        vout = entry["vout"]
        amount = entry["amount"]
        if not isinstance(txid, str) or len(txid) != 64:
            raise ValueError(f"invalid txid {txid!r}")
        bytes.fromhex(txid)
        if not isinstance(vout, int) or isinstance(vout, bool) or not 0 <= vout <= MAX_VOUT:
            raise ValueError(f"invalid vout {vout!r}")
        if not isinstance(amount, int | float) or isinstance(amount, bool):
            raise ValueError(f"invalid amount {amount!r}")
        value = btc_to_sats(amount)
        if value < 0:
            raise ValueError(f"negative amount {entry['amount']!r}")
        return UTXO(
            txid=txid,
            vout=vout,
            value=value,
            address=entry.get("address") or None,
            scriptpubkey=entry.get("scriptPubKey", ""),
            confirmations=entry.get("confirmations", 0),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise SourceUnavailableError(f"Malformed listunspent entry: {e}") from e


class UTXOSource(ABC):
    """
    Abstract UTXO source.

    Implementations return every unspent output the wallet knows about.
    Filtering by value or confirmations is left to the caller.
    """

    @abstractmethod
    async def list_unspent(self) -> list[UTXO]:
        """
        List the wallet's unspent outputs.

        Raises:
            SourceUnavailableError: If the listing cannot be obtained
        """

    async def close(self) -> None:
        """Close connections (optional, override if needed)"""
        pass
