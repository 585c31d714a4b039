"""
UTXO source implementations.
"""

from dustwallet.backends.base import UTXO, SourceUnavailableError, UTXOSource
from dustwallet.backends.listunspent_file import ListUnspentFileBackend
from dustwallet.backends.wallet_rpc import BitcoinCoreWalletBackend

__all__ = [
    "UTXO",
    "BitcoinCoreWalletBackend",
    "ListUnspentFileBackend",
    "SourceUnavailableError",
    "UTXOSource",
]
