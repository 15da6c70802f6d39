"""
RegistryJournal -- writes and retracts Registry rows for one source document.

Responsibility:
    Turns the RegistryRowSpecs of a PostingPlan into persisted RegistryRow
    records: allocates the batch transaction id and per-row sequence
    numbers, maintains running balances, stamps the source back-reference
    and writes FixingPrice snapshots.  On update and delete it retracts
    everything a source wrote.

Architecture position:
    Kernel > Services -- imperative shell.  Called by
    TransactionOrchestrator only.  Uses SequenceService for ordering and
    RegistrySelector for the prior running balance.

Invariants enforced:
    - No split rows: every spec is checked before the first insert, so a
      bad plan writes nothing.
    - One batch id per append: ``TXN{year}{batch:07d}`` from the locked
      registry_batch counter.
    - seq is drawn from the locked registry_row counter, so rows are
      globally ordered even across concurrent postings.
    - running_balance = previous - debit + credit per
      (cost_center, party, currency), where previous is the latest earlier
      row of the same key (0 when none).
    - Retraction is scoped by the source back-reference column and also
      removes the source's FixingPrice and InventoryLog collateral.

Failure modes:
    - SplitRegistryRowError before any insert.
    - IntegrityError from the CHECK constraints if a split row bypasses
      the pre-check.

Audit relevance:
    ``registry_rows_appended`` and ``registry_rows_retracted`` are logged
    with the source and row counts.
"""

from datetime import datetime
from decimal import Decimal
from typing import Iterable, Sequence
from uuid import UUID

from sqlalchemy import delete
from sqlalchemy.orm import Session

from bullion_kernel.db.types import ZERO
from bullion_kernel.domain.clock import Clock
from bullion_kernel.domain.plan import FixingPriceSpec, RegistryRowSpec, SourceKind, SourceRef
from bullion_kernel.exceptions import SplitRegistryRowError
from bullion_kernel.logging_config import get_logger
from bullion_kernel.models.fixing import FixingPrice
from bullion_kernel.models.inventory import InventoryLog
from bullion_kernel.models.registry import SOURCE_BACKREF_COLUMNS, RegistryRow
from bullion_kernel.selectors.registry_selector import RegistrySelector
from bullion_kernel.services.base import BaseService
from bullion_kernel.services.sequence_service import SequenceService

logger = get_logger("services.registry_journal")

_BalanceKey = tuple[str, UUID | None, str | None]


def batch_transaction_id(year: int, batch: int) -> str:
    """
    Example:
        >>> batch_transaction_id(2024, 42)
        'TXN20240000042'
    """
    return f"TXN{year}{batch:07d}"


class RegistryJournal(BaseService[RegistryRow]):
    """
    Append and retract Registry rows.

    Contract:
        ``append`` persists every spec of one posting under a single batch
        transaction id and returns the ORM rows in insertion order.

    Non-goals:
        - Does NOT recompute running balances of later rows after a
          retraction.
        - Does NOT touch party balances (BalanceProjector does).
    """

    model = RegistryRow

    def __init__(
        self,
        session: Session,
        clock: Clock,
        sequence_service: SequenceService,
        selector: RegistrySelector | None = None,
    ):
        super().__init__(session)
        self._clock = clock
        self._sequences = sequence_service
        self._selector = selector or RegistrySelector(session)

    @staticmethod
    def check_rows(rows: Iterable[RegistryRowSpec]) -> None:
        """
        Raises:
            SplitRegistryRowError: If any row has both sides of an axis.
        """
        for spec in rows:
            axis = spec.split_axis()
            if axis is not None:
                raise SplitRegistryRowError(spec.row_type, axis)

    def append(
        self,
        rows: Sequence[RegistryRowSpec],
        source: SourceRef,
        actor_id: UUID,
        transaction_date: datetime | None = None,
    ) -> list[RegistryRow]:
        """
        Persist ``rows`` for ``source``.

        Args:
            rows: Row specs in emission order.
            source: The business entity the rows belong to.
            actor_id: Recorded as created_by_id on every row.
            transaction_date: Defaults to the clock reading.

        Returns:
            The flushed RegistryRow instances.
        """
        if not rows:
            return []
        self.check_rows(rows)

        when = transaction_date or self._clock.now()
        batch = self._sequences.next_value(SequenceService.REGISTRY_BATCH)
        transaction_id = batch_transaction_id(when.year, batch)
        backref = SOURCE_BACKREF_COLUMNS[SourceKind(source.kind).value]

        seqs = self._sequences.next_block(SequenceService.REGISTRY_ROW, len(rows))
        running: dict[_BalanceKey, Decimal] = {}
        written: list[RegistryRow] = []
        for seq, spec in zip(seqs, rows):
            row = RegistryRow(
                seq=seq,
                transaction_id=transaction_id,
                transaction_type=spec.transaction_type,
                row_type=spec.row_type,
                description=spec.description,
                party_id=spec.party_id,
                value=spec.value,
                debit=spec.debit,
                credit=spec.credit,
                gold_debit=spec.gold_debit,
                gold_credit=spec.gold_credit,
                cash_debit=spec.cash_debit,
                cash_credit=spec.cash_credit,
                gold_bid_value=spec.gold_bid_value,
                purity=spec.purity,
                pure_weight=spec.pure_weight,
                gross_weight=spec.gross_weight,
                metal_stock_id=spec.metal_stock_id,
                asset_type=spec.asset_type,
                currency_code=spec.currency_code,
                currency_rate=spec.currency_rate,
                cost_center=spec.cost_center,
                reference=source.voucher_number,
                transaction_date=when,
                created_by_id=actor_id,
            )
            setattr(row, backref, source.id)

            if spec.cost_center:
                key = (spec.cost_center, spec.party_id, spec.currency_code)
                previous = running.get(key)
                if previous is None:
                    previous = self._selector.latest_running_balance(*key)
                if previous is None:
                    previous = ZERO
                row.previous_balance = previous
                row.running_balance = previous - spec.debit + spec.credit
                running[key] = row.running_balance

            self.session.add(row)
            written.append(row)

        self.session.flush()
        logger.info(
            "registry_rows_appended",
            extra={
                "source_kind": SourceKind(source.kind).value,
                "source_id": str(source.id),
                "voucher_number": source.voucher_number,
                "transaction_id": transaction_id,
                "row_count": len(written),
                "first_seq": written[0].seq,
            },
        )
        return written

    def record_fixing_prices(
        self,
        specs: Sequence[FixingPriceSpec],
        source: SourceRef,
        actor_id: UUID,
        fixed_at: datetime | None = None,
    ) -> list[FixingPrice]:
        """Write one active FixingPrice per spec, linked to ``source``."""
        kind = SourceKind(source.kind)
        when = fixed_at or self._clock.now()
        prices = []
        for spec in specs:
            price = FixingPrice(
                fixing_id=source.id if kind == SourceKind.TRANSACTION_FIXING else None,
                metal_transaction_id=(
                    source.id if kind == SourceKind.METAL_TRANSACTION else None
                ),
                transaction_type=spec.transaction_type,
                rate_in_gram=spec.rate_in_gram,
                bid_value=spec.bid_value,
                current_bid_value=spec.current_bid_value,
                metal_rate_id=spec.metal_rate_id,
                status="active",
                fixed_at=when,
                created_by_id=actor_id,
            )
            self.session.add(price)
            prices.append(price)
        if prices:
            self.session.flush()
        return prices

    def retract_by_source(self, source_kind: SourceKind | str, source_id: UUID) -> int:
        """
        Delete every Registry row and collateral record of one source.

        Returns:
            Number of Registry rows deleted.
        """
        kind = SourceKind(source_kind)
        column = getattr(RegistryRow, SOURCE_BACKREF_COLUMNS[kind.value])

        rows_deleted = self.session.execute(
            delete(RegistryRow).where(column == source_id)
        ).rowcount

        prices_deleted = 0
        if kind == SourceKind.TRANSACTION_FIXING:
            prices_deleted = self.session.execute(
                delete(FixingPrice).where(FixingPrice.fixing_id == source_id)
            ).rowcount
        elif kind == SourceKind.METAL_TRANSACTION:
            prices_deleted = self.session.execute(
                delete(FixingPrice).where(FixingPrice.metal_transaction_id == source_id)
            ).rowcount

        logs_deleted = self.session.execute(
            delete(InventoryLog).where(
                InventoryLog.source_kind == kind.value,
                InventoryLog.source_id == source_id,
            )
        ).rowcount
        self.session.flush()

        logger.info(
            "registry_rows_retracted",
            extra={
                "source_kind": kind.value,
                "source_id": str(source_id),
                "rows_deleted": rows_deleted,
                "fixing_prices_deleted": prices_deleted,
                "inventory_logs_deleted": logs_deleted,
            },
        )
        return rows_deleted
