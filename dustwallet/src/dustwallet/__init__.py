"""
Dust sweeping library with pluggable UTXO sources.
"""

from dustwallet.backends.base import UTXO, SourceUnavailableError, UTXOSource
from dustwallet.sweep import DustSweeper, InsufficientAmountError, SweepResult

__all__ = [
    "DustSweeper",
    "InsufficientAmountError",
    "SourceUnavailableError",
    "SweepResult",
    "UTXO",
    "UTXOSource",
]
