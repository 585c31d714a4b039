"""
dustcore - Core library for dust-sweeper components

Provides Bitcoin primitives, the PSBT container codec and shared settings.
"""

from dustcore.bitcoin import InvalidAddressError, UnsignedTransaction
from dustcore.models import NetworkType
from dustcore.psbt import Psbt, PsbtConstructionError
from dustcore.version import __version__

__all__ = [
    "InvalidAddressError",
    "NetworkType",
    "Psbt",
    "PsbtConstructionError",
    "UnsignedTransaction",
    "__version__",
]
