"""
Partially Signed Bitcoin Transaction (BIP174) container.

Only the pieces needed to hand an unsigned sweep to an external signer are
interpreted:
- PSBT_GLOBAL_UNSIGNED_TX (global key type 0x00)
- PSBT_IN_WITNESS_UTXO (input key type 0x01)

Every other key/value pair is carried through untouched so that a parsed
PSBT reserializes byte for byte.

Wire layout:
    magic "psbt" 0xff
    global map    (key/value pairs, 0x00 terminator)
    input maps    (one per unsigned tx input)
    output maps   (one per unsigned tx output)

Each pair is <compact size key len><key><compact size value len><value>,
where the first byte of the key is the key type.
"""

from __future__ import annotations

import base64
import struct
from dataclasses import dataclass, field

from dustcore.bitcoin import UnsignedTransaction, decode_varint, encode_varint

PSBT_MAGIC = b"psbt\xff"

PSBT_GLOBAL_UNSIGNED_TX = 0x00
PSBT_IN_WITNESS_UTXO = 0x01

_SEPARATOR = b"\x00"


class PsbtConstructionError(Exception):
    """Raised when a PSBT cannot be built from, or parsed into, a valid shape."""

    pass


def _serialize_map(entries: dict[bytes, bytes]) -> bytes:
    result = b""
    for key, value in entries.items():
        result += encode_varint(len(key)) + key
        result += encode_varint(len(value)) + value
    return result + _SEPARATOR


def _read_map(data: bytes, offset: int) -> tuple[dict[bytes, bytes], int]:
    """Read one key/value map starting at offset. Returns (entries, new_offset)."""
    entries: dict[bytes, bytes] = {}
    while True:
        key_len, offset = decode_varint(data, offset)
        if key_len == 0:
            return entries, offset

        key = data[offset : offset + key_len]
        offset += key_len
        value_len, offset = decode_varint(data, offset)
        value = data[offset : offset + value_len]
        offset += value_len

        if len(key) != key_len or len(value) != value_len:
            raise PsbtConstructionError("Truncated PSBT key/value pair")
        if key in entries:
            raise PsbtConstructionError(f"Duplicate PSBT key: {key.hex()}")
        entries[key] = value


@dataclass
class Psbt:
    """
    A PSBT wrapping an unsigned transaction.

    ``inputs`` and ``outputs`` hold one key/value map per transaction input
    and output, in transaction order.
    """

    unsigned_tx: UnsignedTransaction
    inputs: list[dict[bytes, bytes]] = field(default_factory=list)
    outputs: list[dict[bytes, bytes]] = field(default_factory=list)
    global_extra: dict[bytes, bytes] = field(default_factory=dict)

    @classmethod
    def from_unsigned_tx(cls, tx: UnsignedTransaction) -> Psbt:
        """
        Wrap an unsigned transaction with empty input and output maps.

        Raises:
            PsbtConstructionError: If the transaction has no inputs or outputs,
                or any input already carries a scriptSig
        """
        _check_unsigned_tx(tx)
        return cls(
            unsigned_tx=tx,
            inputs=[{} for _ in tx.inputs],
            outputs=[{} for _ in tx.outputs],
        )

    # -------------------------------------------------------------------------
    # Input metadata
    # -------------------------------------------------------------------------

    def set_witness_utxo(self, index: int, value: int, scriptpubkey: bytes) -> None:
        """Attach the spent output (amount + scriptPubKey) to a segwit input."""
        record = struct.pack("<Q", value) + encode_varint(len(scriptpubkey)) + scriptpubkey
        self.inputs[index][bytes([PSBT_IN_WITNESS_UTXO])] = record

    def get_witness_utxo(self, index: int) -> tuple[int, bytes] | None:
        """Return (value, scriptPubKey) for an input, or None if not present."""
        record = self.inputs[index].get(bytes([PSBT_IN_WITNESS_UTXO]))
        if record is None:
            return None
        try:
            value = struct.unpack("<Q", record[:8])[0]
            script_len, offset = decode_varint(record, 8)
        except (IndexError, struct.error) as e:
            raise PsbtConstructionError(f"Malformed witness UTXO for input {index}") from e
        scriptpubkey = record[offset : offset + script_len]
        if len(scriptpubkey) != script_len:
            raise PsbtConstructionError(f"Malformed witness UTXO for input {index}")
        return value, scriptpubkey

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    def serialize(self) -> bytes:
        """Serialize to the BIP174 binary format."""
        global_map = {bytes([PSBT_GLOBAL_UNSIGNED_TX]): self.unsigned_tx.serialize()}
        global_map.update(self.global_extra)

        result = PSBT_MAGIC + _serialize_map(global_map)
        for input_map in self.inputs:
            result += _serialize_map(input_map)
        for output_map in self.outputs:
            result += _serialize_map(output_map)
        return result

    def to_base64(self) -> str:
        """Standard base64 of the binary PSBT, without line wrapping."""
        return base64.b64encode(self.serialize()).decode("ascii")

    @classmethod
    def parse(cls, data: bytes) -> Psbt:
        """
        Parse a binary PSBT.

        Raises:
            PsbtConstructionError: On bad magic, truncated or trailing data,
                duplicate keys, or a missing/invalid unsigned transaction
        """
        if not data.startswith(PSBT_MAGIC):
            raise PsbtConstructionError("Missing PSBT magic bytes")

        try:
            offset = len(PSBT_MAGIC)
            global_map, offset = _read_map(data, offset)

            tx_key = bytes([PSBT_GLOBAL_UNSIGNED_TX])
            if tx_key not in global_map:
                raise PsbtConstructionError("PSBT has no unsigned transaction")
            try:
                unsigned_tx = UnsignedTransaction.from_bytes(global_map.pop(tx_key))
            except ValueError as e:
                raise PsbtConstructionError(f"Invalid unsigned transaction: {e}") from e
            _check_unsigned_tx(unsigned_tx)

            inputs = []
            for _ in unsigned_tx.inputs:
                input_map, offset = _read_map(data, offset)
                inputs.append(input_map)

            outputs = []
            for _ in unsigned_tx.outputs:
                output_map, offset = _read_map(data, offset)
                outputs.append(output_map)
        except (IndexError, struct.error) as e:
            raise PsbtConstructionError("Unexpected end of PSBT data") from e

        if offset != len(data):
            raise PsbtConstructionError(f"{len(data) - offset} trailing bytes after PSBT")

        return cls(
            unsigned_tx=unsigned_tx,
            inputs=inputs,
            outputs=outputs,
            global_extra=global_map,
        )

    @classmethod
    def from_base64(cls, text: str) -> Psbt:
        try:
            data = base64.b64decode("".join(text.split()), validate=True)
        except ValueError as e:
            raise PsbtConstructionError(f"Invalid base64 PSBT: {e}") from e
        return cls.parse(data)


def _check_unsigned_tx(tx: UnsignedTransaction) -> None:
    if not tx.inputs:
        raise PsbtConstructionError("Transaction has no inputs")
    if not tx.outputs:
        raise PsbtConstructionError("Transaction has no outputs")
    for index, inp in enumerate(tx.inputs):
        if inp.scriptsig:
            raise PsbtConstructionError(f"Input {index} has a non-empty scriptSig")
