"""
Shared test helpers for dustwallet tests.

Constants and factory functions used across dustwallet test files.
Separated from conftest.py to avoid import collisions when running
tests from the monorepo root.
"""

from __future__ import annotations

from typing import Any

from dustwallet.backends.base import UTXO, UTXOSource

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

TEST_RPC_URL = "http://localhost:18443"
TEST_RPC_USER = "test"
TEST_RPC_PASSWORD = "test"

# Distinct 64-hex-char txids
TXID_A = "aa" * 32
TXID_B = "bb" * 32
TXID_C = "cc" * 32
TXID_D = "dd" * 32

# Mainnet addresses of every supported type
ADDR_P2WPKH = "bc1qw508d6qejxtdg4y5r3zarvary0c5xw7kv8f3t4"
ADDR_P2WPKH_SCRIPT = "0014751e76e8199196d454941c45d1b3a323f1433bd6"
ADDR_P2PKH = "1A1zP1eP5QGefi2DMPTfTL5SLmv7DivfNa"
ADDR_P2PKH_SCRIPT = "76a91462e907b15cbf27d5425399ebf6f0fb50ebb88f1888ac"
ADDR_P2SH = "3J98t1WpEZ73CNmQviecrnyiWrnqRhWNLy"
ADDR_P2TR = "bc1p0xlxvlhemja6c4dqv22uapctqupfhlxm9h8z3k2e72q4k9hcz7vqzk5jj0"
ADDR_P2TR_SCRIPT = "512079be667ef9dcbbac55a06295ce870b07029bfcdb2dce28d959f2815b16f81798"

TESTNET_P2WPKH = "tb1qw508d6qejxtdg4y5r3zarvary0c5xw7kxpjzsx"

BURN_ADDRESS = "1BitcoinEaterAddressDontSendf59kuE"


# ---------------------------------------------------------------------------
# Factory helpers
# ---------------------------------------------------------------------------


def make_utxo(
    txid: str = TXID_A,
    vout: int = 0,
    value: int = 500,
    address: str | None = ADDR_P2WPKH,
    scriptpubkey: str | None = None,
    confirmations: int = 6,
) -> UTXO:
    """Create a UTXO, deriving the scriptPubKey from the known test addresses."""
    if scriptpubkey is None:
        scriptpubkey = {
            ADDR_P2WPKH: ADDR_P2WPKH_SCRIPT,
            ADDR_P2PKH: ADDR_P2PKH_SCRIPT,
            ADDR_P2TR: ADDR_P2TR_SCRIPT,
        }.get(address or "", "")
    return UTXO(
        txid=txid,
        vout=vout,
        value=value,
        address=address,
        scriptpubkey=scriptpubkey,
        confirmations=confirmations,
    )


def listunspent_entry(
    txid: str = TXID_A,
    vout: int = 0,
    amount: float = 0.000005,
    address: str | None = ADDR_P2WPKH,
    scriptpubkey: str = ADDR_P2WPKH_SCRIPT,
    confirmations: int = 6,
) -> dict[str, Any]:
    """Build one entry as returned by Bitcoin Core's listunspent."""
    entry: dict[str, Any] = {
        "txid": txid,
        "vout": vout,
        "amount": amount,
        "scriptPubKey": scriptpubkey,
        "confirmations": confirmations,
        "spendable": True,
        "solvable": True,
        "safe": True,
    }
    if address is not None:
        entry["address"] = address
    return entry


class FakeUTXOSource(UTXOSource):
    """In-memory UTXO source returning a fixed listing."""

    def __init__(self, utxos: list[UTXO] | None = None, error: Exception | None = None):
        self.utxos = list(utxos or [])
        self.error = error
        self.calls = 0
        self.closed = False

    async def list_unspent(self) -> list[UTXO]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.utxos)

    async def close(self) -> None:
        self.closed = True
