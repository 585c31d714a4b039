"""
Dust sweeping: find small UTXOs and build unsigned PSBTs that send them away.

Pipeline:
    UTXO source -> filter_dust -> group_by_address -> build_sweep_psbt (per group)

Each address group is swept by its own transaction so that sweeping never
links two of the wallet's addresses together on chain. Every transaction
spends all dust of one address to a single output at the burn address,
paying a fixed fee. Nothing is signed or broadcast here; the PSBTs are meant
for an external signer.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from dustcore.bitcoin import (
    InvalidAddressError,
    TxInput,
    TxOutput,
    UnsignedTransaction,
    address_to_scriptpubkey,
    format_amount,
    is_segwit_scriptpubkey,
    validate_address,
    validate_satoshi_amount,
)
from dustcore.constants import (
    DEFAULT_BURN_ADDRESS,
    DEFAULT_DUST_THRESHOLD,
    DEFAULT_SWEEP_FEE,
    SEQUENCE_RBF,
)
from dustcore.models import NetworkType
from dustcore.psbt import Psbt, PsbtConstructionError
from loguru import logger

from dustwallet.backends.base import SENSITIVE_LOGGING, UTXO, UTXOSource


class InsufficientAmountError(Exception):
    """Raised when the fixed fee would consume all of a group's input value."""

    def __init__(self, total: int, fee: int):
        self.total = total
        self.fee = fee
        super().__init__(f"Fee {fee} sats is not below total input {total} sats")


# =============================================================================
# Pipeline stages
# =============================================================================


def filter_dust(utxos: list[UTXO], threshold: int) -> list[UTXO]:
    """
    Select UTXOs whose value is strictly below the threshold, keeping listing order.

    Raises:
        TypeError, ValueError: If threshold is not a non-negative integer
    """
    validate_satoshi_amount(threshold)
    return [utxo for utxo in utxos if utxo.value < threshold]


def group_by_address(utxos: list[UTXO]) -> dict[str, list[UTXO]]:
    """
    Partition UTXOs by owning address.

    Groups are ordered by first appearance and keep the relative order of
    their UTXOs. UTXOs without an address, or with an address that cannot be
    decoded, are left out of every group.
    """
    groups: dict[str, list[UTXO]] = {}
    for utxo in utxos:
        if not utxo.address:
            logger.debug(f"Skipping {utxo.outpoint}: no address")
            continue
        if utxo.address not in groups:
            try:
                address_to_scriptpubkey(utxo.address)
            except InvalidAddressError as e:
                logger.debug(f"Skipping {utxo.outpoint}: {e}")
                continue
            groups[utxo.address] = []
        groups[utxo.address].append(utxo)
    return groups


def _input_scriptpubkey(utxo: UTXO) -> bytes:
    if utxo.scriptpubkey:
        return bytes.fromhex(utxo.scriptpubkey)
    if utxo.address:
        return address_to_scriptpubkey(utxo.address)
    return b""


def build_sweep_psbt(
    utxos: list[UTXO],
    fee: int,
    destination: str,
    network: NetworkType | str = NetworkType.MAINNET,
    include_witness_utxo: bool = True,
) -> Psbt:
    """
    Build an unsigned PSBT spending every given UTXO to the destination.

    The transaction is version 2 with locktime 0. Each input has an empty
    scriptSig and signals RBF; the single output pays the input total minus
    the fee.

    Args:
        utxos: UTXOs to spend (normally one address group)
        fee: Fixed fee in satoshis
        destination: Address receiving the swept value
        network: Network the destination must belong to
        include_witness_utxo: Attach PSBT_IN_WITNESS_UTXO records to segwit inputs

    Returns:
        The PSBT

    Raises:
        PsbtConstructionError: If there are no UTXOs or the transaction cannot be encoded
        InvalidAddressError: If the destination is invalid for the network
        InsufficientAmountError: If fee >= total input value
        TypeError, ValueError: If fee is not a non-negative integer
    """
    if not utxos:
        raise PsbtConstructionError("Cannot build a sweep transaction without inputs")

    validate_satoshi_amount(fee)
    destination_script = validate_address(destination, network)

    total = sum(utxo.value for utxo in utxos)
    if fee >= total:
        raise InsufficientAmountError(total, fee)

    tx = UnsignedTransaction(
        inputs=[
            TxInput(
                txid=utxo.txid,
                vout=utxo.vout,
                value=utxo.value,
                scriptpubkey=utxo.scriptpubkey,
                sequence=SEQUENCE_RBF,
            )
            for utxo in utxos
        ],
        outputs=[
            TxOutput(
                address=destination,
                value=total - fee,
                scriptpubkey=destination_script.hex(),
            )
        ],
    )

    try:
        tx.serialize()
    except ValueError as e:
        raise PsbtConstructionError(f"Cannot encode sweep transaction: {e}") from e

    psbt = Psbt.from_unsigned_tx(tx)

    if include_witness_utxo:
        for index, utxo in enumerate(utxos):
            try:
                script = _input_scriptpubkey(utxo)
            except ValueError as e:
                raise PsbtConstructionError(
                    f"Invalid scriptPubKey for input {utxo.outpoint}: {e}"
                ) from e
            if is_segwit_scriptpubkey(script):
                psbt.set_witness_utxo(index, utxo.value, script)

    return psbt


# =============================================================================
# Results
# =============================================================================


@dataclass
class GroupTransaction:
    """A sweep PSBT built for one address group."""

    address: str
    utxos: list[UTXO]
    psbt: Psbt

    @property
    def input_total(self) -> int:
        return sum(utxo.value for utxo in self.utxos)

    @property
    def output_value(self) -> int:
        return self.psbt.unsigned_tx.total_output_value

    @property
    def fee(self) -> int:
        return self.input_total - self.output_value

    def to_base64(self) -> str:
        return self.psbt.to_base64()


@dataclass
class GroupFailure:
    """An address group that could not be swept."""

    address: str
    utxos: list[UTXO]
    error: Exception

    @property
    def reason(self) -> str:
        return str(self.error)


@dataclass
class SweepResult:
    dust: list[UTXO] = field(default_factory=list)
    groups: dict[str, list[UTXO]] = field(default_factory=dict)
    transactions: list[GroupTransaction] = field(default_factory=list)
    failures: list[GroupFailure] = field(default_factory=list)
    dry_run: bool = False

    @property
    def total_dust_value(self) -> int:
        return sum(utxo.value for utxo in self.dust)

    @property
    def ungrouped(self) -> list[UTXO]:
        """Dust UTXOs that belong to no group (no usable address)."""
        grouped = {utxo.outpoint for utxos in self.groups.values() for utxo in utxos}
        return [utxo for utxo in self.dust if utxo.outpoint not in grouped]

    @property
    def all_failed(self) -> bool:
        return bool(self.failures) and not self.transactions


# =============================================================================
# Orchestrator
# =============================================================================


class DustSweeper:
    """
    Sweeps the dust of a wallet into per-address PSBTs.

    Usage:
        sweeper = DustSweeper(source, threshold=1000, fee=500)
        result = await sweeper.sweep()
        for tx in result.transactions:
            print(tx.to_base64())
    """

    def __init__(
        self,
        source: UTXOSource,
        threshold: int = DEFAULT_DUST_THRESHOLD,
        fee: int = DEFAULT_SWEEP_FEE,
        destination: str = DEFAULT_BURN_ADDRESS,
        network: NetworkType | str = NetworkType.MAINNET,
        include_witness_utxo: bool = True,
    ):
        validate_satoshi_amount(threshold)
        validate_satoshi_amount(fee)
        self.source = source
        self.threshold = threshold
        self.fee = fee
        self.destination = destination
        self.network = NetworkType(network)
        self.include_witness_utxo = include_witness_utxo

    async def get_dust_utxos(self) -> list[UTXO]:
        """
        Fetch the listing from the source and keep only dust.

        Raises:
            SourceUnavailableError: If the source cannot be queried
        """
        utxos = await self.source.list_unspent()
        dust = filter_dust(utxos, self.threshold)
        logger.info(
            f"Found {len(dust)} dust UTXOs below {self.threshold:,} sats "
            f"out of {len(utxos)} total"
        )
        return dust

    def build_psbt(self, utxos: list[UTXO]) -> Psbt:
        """Build the sweep PSBT for one group using this sweeper's fee and destination."""
        return build_sweep_psbt(
            utxos,
            self.fee,
            self.destination,
            self.network,
            include_witness_utxo=self.include_witness_utxo,
        )

    @staticmethod
    def psbt_to_base64(psbt: Psbt) -> str:
        return psbt.to_base64()

    async def sweep(self, dry_run: bool = False) -> SweepResult:
        """
        Run a full sweep.

        The destination is checked before the source is queried. Groups that
        fail to build (fee too high, unencodable inputs) are recorded as
        failures while the remaining groups are still built.

        Args:
            dry_run: Only find and group dust; build no transactions

        Returns:
            SweepResult

        Raises:
            InvalidAddressError: If the destination is invalid for the network
            SourceUnavailableError: If the source cannot be queried
        """
        if not dry_run:
            validate_address(self.destination, self.network)

        dust = await self.get_dust_utxos()
        result = SweepResult(dust=dust, dry_run=dry_run)
        if not dust:
            logger.info("No dust UTXOs found, nothing to sweep")
            return result

        result.groups = group_by_address(dust)
        logger.info(
            f"Grouped {len(dust)} dust UTXOs ({format_amount(result.total_dust_value)}) "
            f"into {len(result.groups)} address groups"
        )
        ungrouped = len(result.ungrouped)
        if ungrouped:
            logger.warning(f"{ungrouped} dust UTXOs have no usable address and are skipped")

        if dry_run:
            logger.info("Dry run, not building transactions")
            return result

        for number, (address, utxos) in enumerate(result.groups.items(), start=1):
            label = address if SENSITIVE_LOGGING else f"group {number}"
            try:
                psbt = self.build_psbt(utxos)
            except (InsufficientAmountError, PsbtConstructionError) as e:
                logger.warning(f"Skipping {label}: {e}")
                result.failures.append(GroupFailure(address=address, utxos=utxos, error=e))
                continue

            result.transactions.append(GroupTransaction(address=address, utxos=utxos, psbt=psbt))
            logger.debug(f"Built sweep PSBT for {label} with {len(utxos)} inputs")

        logger.info(
            f"Built {len(result.transactions)} sweep PSBTs, "
            f"{len(result.failures)} groups skipped"
        )
        return result
