"""
Tests for dustcore.bitcoin: amounts, varints, addresses and transaction serialization.
"""

from __future__ import annotations

import hashlib
import struct

import pytest

from dustcore.bitcoin import (
    InvalidAddressError,
    TxInput,
    TxOutput,
    UnsignedTransaction,
    address_to_scriptpubkey,
    btc_to_sats,
    decode_varint,
    encode_varint,
    format_amount,
    is_segwit_scriptpubkey,
    sats_to_btc,
    scriptpubkey_to_address,
    validate_address,
    validate_satoshi_amount,
)
from dustcore.constants import DEFAULT_BURN_ADDRESS, SEQUENCE_FINAL, SEQUENCE_RBF

P2WPKH = "bc1qw508d6qejxtdg4y5r3zarvary0c5xw7kv8f3t4"
P2WPKH_SCRIPT = "0014751e76e8199196d454941c45d1b3a323f1433bd6"
TESTNET_P2WSH = "tb1qrp33g0q5c5txsp9arysrx4k6zdkfs4nce4xj0gdcccefvpysxf3q0sl5k7"
TESTNET_P2WSH_SCRIPT = "00201863143c14c5166804bd19203356da136c985678cd4d27a1b8c6329604903262"
P2TR = "bc1p0xlxvlhemja6c4dqv22uapctqupfhlxm9h8z3k2e72q4k9hcz7vqzk5jj0"
P2TR_SCRIPT = "512079be667ef9dcbbac55a06295ce870b07029bfcdb2dce28d959f2815b16f81798"
P2PKH = "1A1zP1eP5QGefi2DMPTfTL5SLmv7DivfNa"
P2PKH_SCRIPT = "76a91462e907b15cbf27d5425399ebf6f0fb50ebb88f1888ac"
P2SH = "3J98t1WpEZ73CNmQviecrnyiWrnqRhWNLy"


class TestAmounts:
    def test_btc_to_sats_rounds(self) -> None:
        # 0.0003 * 1e8 is 29999.999... as a float
        assert btc_to_sats(0.0003) == 30_000
        assert btc_to_sats(0.00000546) == 546
        assert btc_to_sats(21_000_000) == 2_100_000_000_000_000

    def test_sats_to_btc(self) -> None:
        assert sats_to_btc(100_000_000) == 1.0

    def test_format_amount(self) -> None:
        assert format_amount(1000) == "1,000 sats (0.00001000 BTC)"
        assert format_amount(1000, include_unit=False) == "1,000"

    def test_validate_satoshi_amount(self) -> None:
        validate_satoshi_amount(0)
        validate_satoshi_amount(546)
        with pytest.raises(ValueError):
            validate_satoshi_amount(-1)
        with pytest.raises(TypeError):
            validate_satoshi_amount(1.5)  # type: ignore[arg-type]
        with pytest.raises(TypeError):
            validate_satoshi_amount(True)


class TestVarint:
    @pytest.mark.parametrize(
        ("value", "encoded"),
        [
            (0, "00"),
            (0xFC, "fc"),
            (0xFD, "fdfd00"),
            (0xFFFF, "fdffff"),
            (0x10000, "fe00000100"),
            (0x100000000, "ff0000000001000000"),
        ],
    )
    def test_encode_decode(self, value: int, encoded: str) -> None:
        assert encode_varint(value).hex() == encoded
        assert decode_varint(bytes.fromhex(encoded)) == (value, len(encoded) // 2)

    def test_decode_with_offset(self) -> None:
        assert decode_varint(b"\xaa\xfd\x00\x01", 1) == (0x100, 4)

    def test_decode_truncated(self) -> None:
        with pytest.raises(IndexError):
            decode_varint(b"")


class TestAddressToScriptpubkey:
    @pytest.mark.parametrize(
        ("address", "script"),
        [
            (P2WPKH, P2WPKH_SCRIPT),
            (P2WPKH.upper(), P2WPKH_SCRIPT),
            (TESTNET_P2WSH, TESTNET_P2WSH_SCRIPT),
            (P2TR, P2TR_SCRIPT),
            (P2PKH, P2PKH_SCRIPT),
        ],
    )
    def test_known_vectors(self, address: str, script: str) -> None:
        assert address_to_scriptpubkey(address).hex() == script

    def test_p2sh(self) -> None:
        script = address_to_scriptpubkey(P2SH)
        assert len(script) == 23
        assert script[:2] == b"\xa9\x14"
        assert script[-1] == 0x87

    def test_burn_address(self) -> None:
        script = address_to_scriptpubkey(DEFAULT_BURN_ADDRESS)
        assert len(script) == 25
        assert script[:3] == b"\x76\xa9\x14"
        assert script[-2:] == b"\x88\xac"

    @pytest.mark.parametrize(
        "address",
        [
            "",
            "   ",
            "hello world",
            # bad bech32 checksum
            "bc1qw508d6qejxtdg4y5r3zarvary0c5xw7kv8f3t5",
            # bad base58 checksum
            "1A1zP1eP5QGefi2DMPTfTL5SLmv7DivfNb",
        ],
    )
    def test_invalid(self, address: str) -> None:
        with pytest.raises(InvalidAddressError):
            address_to_scriptpubkey(address)

    def test_invalid_address_is_value_error(self) -> None:
        with pytest.raises(ValueError):
            address_to_scriptpubkey("garbage!")


class TestValidateAddress:
    def test_mainnet(self) -> None:
        assert validate_address(P2WPKH, "mainnet").hex() == P2WPKH_SCRIPT
        assert validate_address(P2PKH, "mainnet").hex() == P2PKH_SCRIPT

    def test_testnet_address_on_mainnet(self) -> None:
        with pytest.raises(InvalidAddressError):
            validate_address(TESTNET_P2WSH, "mainnet")

    def test_mainnet_address_on_testnet(self) -> None:
        with pytest.raises(InvalidAddressError):
            validate_address(P2PKH, "testnet")
        with pytest.raises(InvalidAddressError):
            validate_address(P2WPKH, "signet")

    def test_testnet_on_signet(self) -> None:
        assert validate_address(TESTNET_P2WSH, "signet").hex() == TESTNET_P2WSH_SCRIPT

    def test_regtest_rejects_testnet_hrp(self) -> None:
        with pytest.raises(InvalidAddressError):
            validate_address(TESTNET_P2WSH, "regtest")


class TestScriptpubkeyToAddress:
    @pytest.mark.parametrize("address", [P2WPKH, P2TR, P2PKH, P2SH, DEFAULT_BURN_ADDRESS])
    def test_round_trip_mainnet(self, address: str) -> None:
        assert scriptpubkey_to_address(address_to_scriptpubkey(address)) == address

    def test_round_trip_testnet(self) -> None:
        script = address_to_scriptpubkey(TESTNET_P2WSH)
        assert scriptpubkey_to_address(script, "testnet") == TESTNET_P2WSH

    def test_unsupported(self) -> None:
        with pytest.raises(ValueError):
            scriptpubkey_to_address(b"\x6a\x00")

    def test_is_segwit(self) -> None:
        assert is_segwit_scriptpubkey(bytes.fromhex(P2WPKH_SCRIPT))
        assert is_segwit_scriptpubkey(bytes.fromhex(TESTNET_P2WSH_SCRIPT))
        assert is_segwit_scriptpubkey(bytes.fromhex(P2TR_SCRIPT))
        assert not is_segwit_scriptpubkey(bytes.fromhex(P2PKH_SCRIPT))
        assert not is_segwit_scriptpubkey(address_to_scriptpubkey(P2SH))
        assert not is_segwit_scriptpubkey(b"")


class TestUnsignedTransaction:
    def _tx(self) -> UnsignedTransaction:
        return UnsignedTransaction(
            inputs=[
                TxInput(txid="aa" * 32, vout=0, sequence=SEQUENCE_RBF),
                TxInput(txid="bb" * 32, vout=5, sequence=SEQUENCE_RBF),
            ],
            outputs=[TxOutput(address=P2WPKH, value=400)],
        )

    def test_serialize(self) -> None:
        expected = (
            "02000000"
            "02"
            + "aa" * 32
            + "00000000"
            + "00"
            + "fdffffff"
            + "bb" * 32
            + "05000000"
            + "00"
            + "fdffffff"
            + "01"
            + "9001000000000000"
            + "16"
            + P2WPKH_SCRIPT
            + "00000000"
        )
        assert self._tx().serialize().hex() == expected

    def test_txid_is_reversed_double_sha256(self) -> None:
        tx = self._tx()
        raw = tx.serialize()
        digest = hashlib.sha256(hashlib.sha256(raw).digest()).digest()
        assert tx.txid == digest[::-1].hex()
        assert UnsignedTransaction.from_bytes(raw).txid == tx.txid

    def test_from_bytes_round_trip(self) -> None:
        tx = self._tx()
        parsed = UnsignedTransaction.from_bytes(tx.serialize())

        assert parsed.version == 2
        assert parsed.locktime == 0
        assert [(i.txid, i.vout, i.sequence) for i in parsed.inputs] == [
            ("aa" * 32, 0, SEQUENCE_RBF),
            ("bb" * 32, 5, SEQUENCE_RBF),
        ]
        assert parsed.outputs[0].value == 400
        assert parsed.outputs[0].script_bytes().hex() == P2WPKH_SCRIPT
        assert parsed.serialize() == tx.serialize()

    def test_from_bytes_trailing_data(self) -> None:
        with pytest.raises(ValueError):
            UnsignedTransaction.from_bytes(self._tx().serialize() + b"\x00")

    def test_from_bytes_rejects_witness_serialization(self) -> None:
        raw = self._tx().serialize()
        segwit = raw[:4] + b"\x00\x01" + raw[4:]
        with pytest.raises(ValueError, match="witness"):
            UnsignedTransaction.from_bytes(segwit)

    def test_vout_out_of_range(self) -> None:
        tx = self._tx()
        tx.inputs[0].vout = 2**32
        with pytest.raises(ValueError, match="Output index"):
            tx.serialize()

    def test_output_value_out_of_range(self) -> None:
        tx = self._tx()
        tx.outputs[0].value = 2**64
        with pytest.raises(ValueError, match="Output value"):
            tx.serialize()

    def test_from_bytes_truncated(self) -> None:
        with pytest.raises((IndexError, struct.error)):
            UnsignedTransaction.from_bytes(self._tx().serialize()[:40])

    def test_defaults(self) -> None:
        tx = UnsignedTransaction()
        assert tx.version == 2
        assert tx.locktime == 0
        assert TxInput(txid="aa" * 32, vout=0).sequence == SEQUENCE_FINAL

    def test_total_output_value(self) -> None:
        tx = self._tx()
        tx.outputs.append(TxOutput(address=P2PKH, value=600))
        assert tx.total_output_value == 1000

    def test_bad_txid_length(self) -> None:
        tx = UnsignedTransaction(
            inputs=[TxInput(txid="abcd", vout=0)],
            outputs=[TxOutput(address=P2WPKH, value=1)],
        )
        with pytest.raises(ValueError):
            tx.serialize()
