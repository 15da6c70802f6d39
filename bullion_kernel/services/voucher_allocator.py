"""
VoucherAllocator -- next voucher number per module.

Responsibility:
    Resolves the module's VoucherConfig (through the config provider),
    counts the prior documents of the module's collection, and renders
    ``prefix || zero_pad(count + 1, number_length)``.

Architecture position:
    Kernel > Services.  Called by TransactionOrchestrator inside the same
    transaction that persists the source document, and by the voucher
    facade for info/generate.

Strategy:
    1. The VoucherMaster row is locked FOR UPDATE, which serializes
       allocators of one module on PostgreSQL.
    2. The candidate is ``count + 1`` over the module's collection,
       filtered by transaction type when one is given.
    3. The candidate is raised past the highest sequence ever issued for
       the (module, transaction type), kept in a ``sequence_counters`` row,
       so deleting the latest document never brings its number back.
       A candidate already present in the collection is skipped forward.
    4. The unique index on ``voucher_number`` is the final guard; an
       IntegrityError makes the orchestrator retry the transaction.

    The draft-metal module uses ``max(numeric suffix) + 1`` over existing
    draft codes.  The opening-stock-balance module counts inventory
    Registry rows.  Both are raised past the issued high-water mark too.
    Modules without a mapped collection number from the VoucherMaster
    ``sequence`` column and keep no high-water mark.

Failure modes:
    - MissingModuleError, VoucherConfigNotFoundError.
"""

from dataclasses import dataclass
from datetime import date
from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from bullion_kernel.domain.clock import Clock
from bullion_kernel.domain.vouchers import (
    format_voucher_date,
    render_voucher_number,
    voucher_suffix,
)
from bullion_kernel.exceptions import VoucherConfigNotFoundError
from bullion_kernel.logging_config import get_logger
from bullion_kernel.models.drafting import Drafting
from bullion_kernel.models.entry import Entry
from bullion_kernel.models.fixing import TransactionFixing
from bullion_kernel.models.fund_transfer import FundTransfer
from bullion_kernel.models.inventory import MetalStock
from bullion_kernel.models.metal_transaction import MetalTransaction
from bullion_kernel.models.registry import RegistryRow
from bullion_kernel.models.voucher import VoucherMaster
from bullion_kernel.services.sequence_service import SequenceService
from bullion_kernel.services.voucher_config_cache import (
    VoucherConfig,
    VoucherConfigProvider,
    normalize_module,
)
from bullion_kernel.settings import VoucherSettings

logger = get_logger("services.voucher_allocator")

DRAFT_METAL_MODULE = "draft-metal"
OPENING_STOCK_MODULE = "opening-stock-balance"


@dataclass(frozen=True)
class _Collection:
    model: Any
    type_column: Any
    number_column: Any


_COLLECTIONS: dict[str, _Collection] = {}
for _modules, _collection in (
    (
        ("metal-payment", "metal-receipt", "currency-payment", "currency-receipt", "entry"),
        _Collection(Entry, Entry.entry_type, Entry.voucher_number),
    ),
    (
        ("metal-purchase", "metal-sale", "purchase-return", "sales-return"),
        _Collection(
            MetalTransaction, MetalTransaction.transaction_type, MetalTransaction.voucher_number
        ),
    ),
    (
        ("sales-fixing", "purchase-fixing"),
        _Collection(
            TransactionFixing, TransactionFixing.fixing_type, TransactionFixing.voucher_number
        ),
    ),
    (
        ("transfer", "opening-balance"),
        _Collection(FundTransfer, FundTransfer.transfer_type, FundTransfer.voucher_number),
    ),
    (
        ("metal-stock",),
        _Collection(MetalStock, MetalStock.reference_type, MetalStock.voucher_number),
    ),
):
    for _module in _modules:
        _COLLECTIONS[_module] = _collection


def _watermark_name(module: str, transaction_type: str | None) -> str | None:
    """Counter holding the highest sequence issued; None for master-sequence modules."""
    if module not in _COLLECTIONS and module not in (DRAFT_METAL_MODULE, OPENING_STOCK_MODULE):
        return None
    kind = transaction_type.strip().lower() if transaction_type else "*"
    return f"voucher:{module}:{kind}"


@dataclass(frozen=True)
class VoucherAllocation:
    voucher_type: str
    module: str
    prefix: str
    voucher_number: str
    sequence: int
    transaction_count: int
    transaction_type: str | None
    date: date
    formatted_date: str
    config: VoucherConfig


@dataclass(frozen=True)
class VoucherInfo:
    prefix: str
    current_count: int
    next_sequence: int
    next_voucher_number: str
    number_length: int
    transaction_type: str | None
    config: VoucherConfig


class VoucherAllocator:
    """
    Allocates voucher numbers inside the caller's transaction.

    Guarantees:
        - For a fixed (module, transaction type), allocated sequences are
          strictly increasing across committed documents.
        - info() never locks and never mutates.
    """

    def __init__(
        self,
        session: Session,
        config_provider: VoucherConfigProvider,
        clock: Clock,
        settings: VoucherSettings | None = None,
    ):
        self._session = session
        self._provider = config_provider
        self._clock = clock
        self._settings = settings or VoucherSettings()
        self._sequences = SequenceService(session)

    # -- public --------------------------------------------------------------

    def allocate(
        self,
        module: str,
        transaction_type: str | None = None,
        voucher_date: date | None = None,
    ) -> VoucherAllocation:
        key = normalize_module(module)
        config = self._provider.get(self._session, key)
        master = self._lock_master(config)

        count, sequence = self._next_sequence(key, config, master, transaction_type)
        watermark = _watermark_name(key, transaction_type)
        if watermark is not None:
            self._sequences.advance_to(watermark, sequence)
        voucher_number = render_voucher_number(config.prefix, sequence, config.number_length)

        if master.is_auto_increment:
            master.sequence += 1
            self._session.flush()

        on = voucher_date or self._clock.today()
        allocation = VoucherAllocation(
            voucher_type=config.voucher_type,
            module=key,
            prefix=config.prefix,
            voucher_number=voucher_number,
            sequence=sequence,
            transaction_count=count,
            transaction_type=transaction_type,
            date=on,
            formatted_date=format_voucher_date(
                on, config.date_format or self._settings.default_date_format
            ),
            config=config,
        )
        logger.info(
            "voucher_allocated",
            extra={
                "voucher_module": key,
                "transaction_type": transaction_type,
                "voucher_number": voucher_number,
                "sequence": sequence,
            },
        )
        return allocation

    def info(self, module: str, transaction_type: str | None = None) -> VoucherInfo:
        key = normalize_module(module)
        config = self._provider.get(self._session, key)
        master = self._session.get(VoucherMaster, config.id)
        if master is None:
            self._provider.invalidate(key)
            raise VoucherConfigNotFoundError(key)
        count, sequence = self._next_sequence(key, config, master, transaction_type)
        return VoucherInfo(
            prefix=config.prefix,
            current_count=count,
            next_sequence=sequence,
            next_voucher_number=render_voucher_number(
                config.prefix, sequence, config.number_length
            ),
            number_length=config.number_length,
            transaction_type=transaction_type,
            config=config,
        )

    # -- internals -----------------------------------------------------------

    def _lock_master(self, config: VoucherConfig) -> VoucherMaster:
        master = self._session.execute(
            select(VoucherMaster)
            .where(VoucherMaster.id == config.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if master is None or not master.is_active or master.status != "active":
            self._provider.invalidate(config.module)
            raise VoucherConfigNotFoundError(config.module)
        return master

    def _next_sequence(
        self,
        module: str,
        config: VoucherConfig,
        master: VoucherMaster,
        transaction_type: str | None,
    ) -> tuple[int, int]:
        if module == DRAFT_METAL_MODULE:
            count, sequence = self._draft_sequence(config.prefix)
            return count, max(sequence, self._issued(module, transaction_type) + 1)

        if module == OPENING_STOCK_MODULE:
            count = self._session.execute(
                select(func.count(RegistryRow.id)).where(
                    or_(
                        RegistryRow.cost_center == "INVENTORY",
                        func.upper(RegistryRow.reference).like("OSB%"),
                    )
                )
            ).scalar_one()
            return count, max(count, self._issued(module, transaction_type)) + 1

        collection = _COLLECTIONS.get(module)
        if collection is None:
            return master.sequence - 1, master.sequence

        query = select(func.count()).select_from(collection.model)
        if transaction_type:
            query = query.where(
                func.lower(collection.type_column) == transaction_type.strip().lower()
            )
        count = self._session.execute(query).scalar_one()

        sequence = max(count, self._issued(module, transaction_type)) + 1
        while self._taken(
            collection, render_voucher_number(config.prefix, sequence, config.number_length)
        ):
            sequence += 1
        return count, sequence

    def _issued(self, module: str, transaction_type: str | None) -> int:
        return self._sequences.current_value(_watermark_name(module, transaction_type)) or 0

    def _taken(self, collection: _Collection, voucher_number: str) -> bool:
        return (
            self._session.execute(
                select(collection.number_column)
                .where(collection.number_column == voucher_number)
                .limit(1)
            ).first()
            is not None
        )

    def _draft_sequence(self, prefix: str) -> tuple[int, int]:
        codes = self._session.execute(
            select(Drafting.voucher_code).where(
                func.upper(Drafting.voucher_code).like(f"{prefix.upper()}%")
            )
        ).scalars().all()
        suffixes = [s for s in (voucher_suffix(code, prefix) for code in codes) if s is not None]
        return len(codes), (max(suffixes) if suffixes else 0) + 1
