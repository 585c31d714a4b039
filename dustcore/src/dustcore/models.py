"""
Core data models shared across components.
"""

from __future__ import annotations

from enum import Enum


class NetworkType(str, Enum):
    """Bitcoin network types."""

    MAINNET = "mainnet"
    TESTNET = "testnet"
    SIGNET = "signet"
    REGTEST = "regtest"
