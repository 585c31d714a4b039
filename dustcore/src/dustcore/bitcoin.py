"""
Bitcoin utilities for dust-sweeper.

This module provides consolidated Bitcoin operations:
- Amount conversion and validation
- Address decoding/encoding and network validation (bech32, base58)
- Transaction models and (non-witness) serialization/parsing
- Varint encoding/decoding

Uses external libraries for security-critical operations:
- bech32: BIP173/BIP350 bech32 and bech32m encoding
- base58: Base58Check encoding
"""

from __future__ import annotations

import hashlib
import struct
from dataclasses import dataclass, field
from typing import Any

import base58
import bech32 as bech32_lib

from dustcore.constants import (
    MAX_OUTPUT_VALUE,
    MAX_VOUT,
    SATS_PER_BTC,
    SEQUENCE_FINAL,
    TX_LOCKTIME,
    TX_VERSION,
)
from dustcore.models import NetworkType

# Network prefixes for address encoding
HRP_MAP = {
    NetworkType.MAINNET: "bc",
    NetworkType.TESTNET: "tb",
    NetworkType.SIGNET: "tb",
    NetworkType.REGTEST: "bcrt",
}

# Base58 version bytes
P2PKH_VERSION = {
    NetworkType.MAINNET: 0x00,
    NetworkType.TESTNET: 0x6F,
    NetworkType.SIGNET: 0x6F,
    NetworkType.REGTEST: 0x6F,
}

P2SH_VERSION = {
    NetworkType.MAINNET: 0x05,
    NetworkType.TESTNET: 0xC4,
    NetworkType.SIGNET: 0xC4,
    NetworkType.REGTEST: 0xC4,
}

BECH32_PREFIXES = ("bc1", "tb1", "bcrt1")


class InvalidAddressError(ValueError):
    """Raised when an address cannot be decoded or does not belong to the active network."""


# =============================================================================
# Amount Utilities
# =============================================================================


def btc_to_sats(btc: float) -> int:
    """
    Convert BTC to satoshis safely.

    Uses round() instead of int() to avoid floating point precision errors
    that can truncate values (e.g. 0.0003 * 1e8 = 29999.999...).

    Args:
        btc: Amount in BTC

    Returns:
        Amount in satoshis
    """
    return round(btc * SATS_PER_BTC)


def sats_to_btc(sats: int) -> float:
    """Convert satoshis to BTC. Only use for display/output."""
    return sats / SATS_PER_BTC


def format_amount(sats: int, include_unit: bool = True) -> str:
    """
    Format satoshi amount as string.
    Default: '1,000 sats (0.00001000 BTC)'

    Args:
        sats: Amount in satoshis
        include_unit: Whether to include units and BTC conversion

    Returns:
        Formatted string
    """
    if include_unit:
        btc_val = sats_to_btc(sats)
        return f"{sats:,} sats ({btc_val:.8f} BTC)"
    return f"{sats:,}"


def validate_satoshi_amount(sats: int) -> None:
    """
    Validate that amount is a non-negative integer.

    Args:
        sats: Amount to validate

    Raises:
        TypeError: If amount is not an integer
        ValueError: If amount is negative
    """
    # bool is an int subclass but never a meaningful amount
    if not isinstance(sats, int) or isinstance(sats, bool):
        raise TypeError(f"Amount must be an integer (satoshis), got {type(sats)}")
    if sats < 0:
        raise ValueError(f"Amount cannot be negative, got {sats}")


# =============================================================================
# Hash Functions
# =============================================================================


def hash256(data: bytes) -> bytes:
    """
    SHA256(SHA256(data)) - Used for Bitcoin txids.

    Args:
        data: Input data to hash

    Returns:
        32-byte hash
    """
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()


# =============================================================================
# Varint Encoding/Decoding
# =============================================================================


def encode_varint(n: int) -> bytes:
    """
    Encode integer as Bitcoin varint (CompactSize).

    Args:
        n: Integer to encode

    Returns:
        Encoded bytes
    """
    if n < 0xFD:
        return bytes([n])
    elif n <= 0xFFFF:
        return bytes([0xFD]) + struct.pack("<H", n)
    elif n <= 0xFFFFFFFF:
        return bytes([0xFE]) + struct.pack("<I", n)
    else:
        return bytes([0xFF]) + struct.pack("<Q", n)


def decode_varint(data: bytes, offset: int = 0) -> tuple[int, int]:
    """
    Decode Bitcoin varint from bytes.

    Args:
        data: Input bytes
        offset: Starting offset in data

    Returns:
        (value, new_offset) tuple

    Raises:
        IndexError, struct.error: If data is truncated
    """
    first = data[offset]
    if first < 0xFD:
        return first, offset + 1
    elif first == 0xFD:
        return struct.unpack("<H", data[offset + 1 : offset + 3])[0], offset + 3
    elif first == 0xFE:
        return struct.unpack("<I", data[offset + 1 : offset + 5])[0], offset + 5
    else:
        return struct.unpack("<Q", data[offset + 1 : offset + 9])[0], offset + 9


# =============================================================================
# Address Encoding/Decoding
# =============================================================================


def get_hrp(network: str | NetworkType) -> str:
    """
    Get bech32 human-readable part for network.

    Args:
        network: Network type (string or enum)

    Returns:
        HRP string (bc, tb, bcrt)
    """
    if isinstance(network, str):
        network = NetworkType(network)
    return HRP_MAP[network]


def address_to_scriptpubkey(address: str) -> bytes:
    """
    Convert Bitcoin address to scriptPubKey.

    Supports:
    - P2WPKH (bc1q..., tb1q..., bcrt1q...)
    - P2WSH (bc1q... 62 chars)
    - P2TR (bc1p... taproot)
    - P2PKH (1..., m..., n...)
    - P2SH (3..., 2...)

    The network is not checked here, see validate_address().

    Args:
        address: Bitcoin address string

    Returns:
        scriptPubKey bytes

    Raises:
        InvalidAddressError: If the address cannot be decoded
    """
    if not address or not address.strip():
        raise InvalidAddressError("Empty address")

    lowered = address.lower()

    # Bech32 (SegWit) addresses
    if lowered.startswith(BECH32_PREFIXES):
        hrp = lowered[: lowered.rindex("1")]

        bech32_decoded = bech32_lib.decode(hrp, address)
        if bech32_decoded[0] is None or bech32_decoded[1] is None:
            raise InvalidAddressError(f"Invalid bech32 address: {address}")

        witver = bech32_decoded[0]
        witprog = bytes(bech32_decoded[1])

        if witver == 0:
            if len(witprog) == 20:
                # P2WPKH: OP_0 <20-byte-pubkeyhash>
                return bytes([0x00, 0x14]) + witprog
            elif len(witprog) == 32:
                # P2WSH: OP_0 <32-byte-scripthash>
                return bytes([0x00, 0x20]) + witprog
        elif witver == 1 and len(witprog) == 32:
            # P2TR: OP_1 <32-byte-pubkey>
            return bytes([0x51, 0x20]) + witprog

        raise InvalidAddressError(f"Unsupported witness version: {witver}")

    # Base58 addresses (legacy)
    try:
        decoded = base58.b58decode_check(address)
    except ValueError as e:
        raise InvalidAddressError(f"Invalid base58 address: {address} ({e})") from e

    if len(decoded) != 21:
        raise InvalidAddressError(f"Invalid base58 payload length: {len(decoded)}")

    version = decoded[0]
    payload = decoded[1:]

    if version in (0x00, 0x6F):  # Mainnet/Testnet P2PKH
        # P2PKH: OP_DUP OP_HASH160 <20-byte-pubkeyhash> OP_EQUALVERIFY OP_CHECKSIG
        return bytes([0x76, 0xA9, 0x14]) + payload + bytes([0x88, 0xAC])
    elif version in (0x05, 0xC4):  # Mainnet/Testnet P2SH
        # P2SH: OP_HASH160 <20-byte-scripthash> OP_EQUAL
        return bytes([0xA9, 0x14]) + payload + bytes([0x87])

    raise InvalidAddressError(f"Unknown address version: {version}")


def validate_address(address: str, network: str | NetworkType = "mainnet") -> bytes:
    """
    Decode an address and check that it belongs to the given network.

    Args:
        address: Bitcoin address string
        network: Active network

    Returns:
        scriptPubKey bytes for the address

    Raises:
        InvalidAddressError: If the address fails to decode or is for another network
    """
    if isinstance(network, str):
        network = NetworkType(network)

    scriptpubkey = address_to_scriptpubkey(address)

    lowered = address.lower()
    if lowered.startswith(BECH32_PREFIXES):
        hrp = lowered[: lowered.rindex("1")]
        if hrp != HRP_MAP[network]:
            raise InvalidAddressError(
                f"Address {address} is not a {network.value} address (hrp '{hrp}')"
            )
    else:
        version = base58.b58decode_check(address)[0]
        if version not in (P2PKH_VERSION[network], P2SH_VERSION[network]):
            raise InvalidAddressError(
                f"Address {address} is not a {network.value} address (version {version:#04x})"
            )

    return scriptpubkey


def scriptpubkey_to_address(scriptpubkey: bytes, network: str | NetworkType = "mainnet") -> str:
    """
    Convert scriptPubKey to address.

    Supports P2WPKH, P2WSH, P2TR, P2PKH, P2SH.

    Args:
        scriptpubkey: scriptPubKey bytes
        network: Network type

    Returns:
        Bitcoin address string
    """
    if isinstance(network, str):
        network = NetworkType(network)

    hrp = get_hrp(network)

    # P2WPKH / P2WSH
    if (len(scriptpubkey) == 22 and scriptpubkey[:2] == b"\x00\x14") or (
        len(scriptpubkey) == 34 and scriptpubkey[:2] == b"\x00\x20"
    ):
        result = bech32_lib.encode(hrp, 0, scriptpubkey[2:])
        if result is None:
            raise ValueError(f"Failed to encode segwit v0 address: {scriptpubkey.hex()}")
        return result

    # P2TR
    if len(scriptpubkey) == 34 and scriptpubkey[:2] == b"\x51\x20":
        result = bech32_lib.encode(hrp, 1, scriptpubkey[2:])
        if result is None:
            raise ValueError(f"Failed to encode P2TR address: {scriptpubkey.hex()}")
        return result

    # P2PKH
    if (
        len(scriptpubkey) == 25
        and scriptpubkey[:3] == b"\x76\xa9\x14"
        and scriptpubkey[23:] == b"\x88\xac"
    ):
        payload = bytes([P2PKH_VERSION[network]]) + scriptpubkey[3:23]
        return base58.b58encode_check(payload).decode("ascii")

    # P2SH
    if len(scriptpubkey) == 23 and scriptpubkey[:2] == b"\xa9\x14" and scriptpubkey[22] == 0x87:
        payload = bytes([P2SH_VERSION[network]]) + scriptpubkey[2:22]
        return base58.b58encode_check(payload).decode("ascii")

    raise ValueError(f"Unsupported scriptPubKey: {scriptpubkey.hex()}")


def is_segwit_scriptpubkey(scriptpubkey: bytes) -> bool:
    """Check for a native P2WPKH, P2WSH or P2TR scriptPubKey."""
    if len(scriptpubkey) == 22:
        return scriptpubkey[:2] == b"\x00\x14"
    if len(scriptpubkey) == 34:
        return scriptpubkey[:2] in (b"\x00\x20", b"\x51\x20")
    return False


# =============================================================================
# Transaction Models
# =============================================================================


@dataclass
class TxInput:
    """Transaction input."""

    txid: str  # In RPC format (big-endian hex)
    vout: int
    value: int = 0
    scriptpubkey: str = ""
    scriptsig: str = ""
    sequence: int = SEQUENCE_FINAL


@dataclass
class TxOutput:
    """Transaction output."""

    address: str
    value: int
    scriptpubkey: str = ""

    def script_bytes(self) -> bytes:
        # Parsed outputs carry only the script, which may legitimately be empty
        if self.scriptpubkey or not self.address:
            return bytes.fromhex(self.scriptpubkey)
        return address_to_scriptpubkey(self.address)


@dataclass
class ParsedTransaction:
    """Parsed non-witness Bitcoin transaction."""

    version: int
    inputs: list[dict[str, Any]]
    outputs: list[dict[str, Any]]
    locktime: int


@dataclass
class UnsignedTransaction:
    """
    A transaction without scriptSigs or witnesses, as carried in a PSBT.

    Serialization always uses the legacy (non-witness) format.
    """

    inputs: list[TxInput] = field(default_factory=list)
    outputs: list[TxOutput] = field(default_factory=list)
    version: int = TX_VERSION
    locktime: int = TX_LOCKTIME

    def serialize(self) -> bytes:
        result = struct.pack("<I", self.version)

        result += encode_varint(len(self.inputs))
        for inp in self.inputs:
            result += serialize_input(inp)

        result += encode_varint(len(self.outputs))
        for out in self.outputs:
            result += serialize_output(out)

        result += struct.pack("<I", self.locktime)
        return result

    @property
    def txid(self) -> str:
        """Transaction ID (double SHA256 of the serialization, reversed)."""
        return hash256(self.serialize())[::-1].hex()

    @property
    def total_output_value(self) -> int:
        return sum(out.value for out in self.outputs)

    @classmethod
    def from_bytes(cls, data: bytes) -> UnsignedTransaction:
        """
        Parse a non-witness serialized transaction.

        Raises:
            ValueError: If the data has witness data or trailing bytes
            IndexError, struct.error: If the data is truncated
        """
        parsed = parse_transaction(data.hex())
        tx = cls(
            inputs=[
                TxInput(
                    txid=inp["txid"],
                    vout=inp["vout"],
                    scriptsig=inp["scriptsig"],
                    sequence=inp["sequence"],
                )
                for inp in parsed.inputs
            ],
            outputs=[
                TxOutput(address="", value=out["value"], scriptpubkey=out["scriptpubkey"])
                for out in parsed.outputs
            ],
            version=parsed.version,
            locktime=parsed.locktime,
        )

        if len(tx.serialize()) != len(data):
            raise ValueError("Trailing data after transaction")
        return tx


# =============================================================================
# Transaction Serialization/Parsing
# =============================================================================


def serialize_outpoint(txid: str, vout: int) -> bytes:
    """
    Serialize outpoint (txid:vout).

    Args:
        txid: Transaction ID in RPC format (big-endian hex)
        vout: Output index

    Returns:
        36-byte outpoint (little-endian txid + 4-byte vout)
    """
    txid_bytes = bytes.fromhex(txid)[::-1]
    if len(txid_bytes) != 32:
        raise ValueError(f"Invalid txid length: {txid}")
    if not 0 <= vout <= MAX_VOUT:
        raise ValueError(f"Output index out of range: {vout}")
    return txid_bytes + struct.pack("<I", vout)


def serialize_input(inp: TxInput) -> bytes:
    """
    Serialize a transaction input.

    Args:
        inp: Transaction input

    Returns:
        Serialized input bytes
    """
    result = serialize_outpoint(inp.txid, inp.vout)

    if inp.scriptsig:
        scriptsig = bytes.fromhex(inp.scriptsig)
        result += encode_varint(len(scriptsig)) + scriptsig
    else:
        result += bytes([0x00])  # Empty scriptSig

    result += struct.pack("<I", inp.sequence)
    return result


def serialize_output(out: TxOutput) -> bytes:
    """
    Serialize a transaction output.

    Args:
        out: Transaction output

    Returns:
        Serialized output bytes
    """
    if not 0 <= out.value <= MAX_OUTPUT_VALUE:
        raise ValueError(f"Output value out of range: {out.value}")
    result = struct.pack("<Q", out.value)

    scriptpubkey = out.script_bytes()
    result += encode_varint(len(scriptpubkey))
    result += scriptpubkey
    return result


def parse_transaction(tx_hex: str) -> ParsedTransaction:
    """
    Parse a Bitcoin transaction in the legacy (non-witness) serialization.

    Args:
        tx_hex: Transaction hex string

    Returns:
        ParsedTransaction object

    Raises:
        ValueError: If the transaction uses the witness serialization
        IndexError, struct.error: If the data is truncated
    """
    tx_bytes = bytes.fromhex(tx_hex)
    offset = 0

    # Version
    version = struct.unpack("<I", tx_bytes[offset : offset + 4])[0]
    offset += 4

    # SegWit marker and flag
    if tx_bytes[offset : offset + 2] == b"\x00\x01":
        raise ValueError("Unsigned transaction must not use the witness serialization")

    # Inputs
    input_count, offset = decode_varint(tx_bytes, offset)
    inputs = []
    for _ in range(input_count):
        txid_bytes = tx_bytes[offset : offset + 32]
        if len(txid_bytes) != 32:
            raise IndexError("Truncated outpoint")
        txid = txid_bytes[::-1].hex()
        offset += 32
        vout = struct.unpack("<I", tx_bytes[offset : offset + 4])[0]
        offset += 4
        script_len, offset = decode_varint(tx_bytes, offset)
        scriptsig = tx_bytes[offset : offset + script_len].hex()
        offset += script_len
        sequence = struct.unpack("<I", tx_bytes[offset : offset + 4])[0]
        offset += 4
        inputs.append({"txid": txid, "vout": vout, "scriptsig": scriptsig, "sequence": sequence})

    # Outputs
    output_count, offset = decode_varint(tx_bytes, offset)
    outputs = []
    for _ in range(output_count):
        value = struct.unpack("<Q", tx_bytes[offset : offset + 8])[0]
        offset += 8
        script_len, offset = decode_varint(tx_bytes, offset)
        scriptpubkey = tx_bytes[offset : offset + script_len].hex()
        offset += script_len
        outputs.append({"value": value, "scriptpubkey": scriptpubkey})

    # Locktime
    locktime = struct.unpack("<I", tx_bytes[offset : offset + 4])[0]

    return ParsedTransaction(
        version=version,
        inputs=inputs,
        outputs=outputs,
        locktime=locktime,
    )
