"""
Protocol and policy constants shared by dust-sweeper components.
"""

from __future__ import annotations

SATS_PER_BTC = 100_000_000

# Field widths of the transaction encoding
MAX_VOUT = 0xFFFFFFFF
MAX_OUTPUT_VALUE = 0xFFFFFFFFFFFFFFFF

# Transaction version for sweep transactions (BIP68 relative locktime aware)
TX_VERSION = 2

# No absolute locktime restriction
TX_LOCKTIME = 0

# Final sequence (no RBF, no relative locktime)
SEQUENCE_FINAL = 0xFFFFFFFF

# One less than the maximum non-final sequence: signals opt-in RBF (BIP125)
SEQUENCE_RBF = 0xFFFFFFFD

# Outputs strictly below this value (in sats) are considered dust
DEFAULT_DUST_THRESHOLD = 1000

# Fixed absolute fee (in sats) taken from each sweep transaction
DEFAULT_SWEEP_FEE = 500

# Well-known provably unspendable mainnet P2PKH address
DEFAULT_BURN_ADDRESS = "1BitcoinEaterAddressDontSendf59kuE"
