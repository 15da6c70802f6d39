"""
Entry facade: metal and cash receipts/payments.

Only approved entries carry ledger effects; the posting rule returns an
empty plan for every other status, so a draft entry can be saved and
later updated to approved, which posts it.
"""

from uuid import UUID

from bullion_kernel.domain import events
from bullion_kernel.domain.plan import PartyView, SourceKind
from bullion_kernel.models.entry import Entry, EntryCashLine, EntryStockLine
from bullion_kernel.services.posting_orchestrator import (
    PostingResult,
    PostingUnit,
    SourceHandler,
    TransactionOrchestrator,
)
from bullion_kernel.services.voucher_allocator import VoucherAllocation


def _stock_lines(event: events.EntryEvent, actor_id: UUID) -> list[EntryStockLine]:
    return [
        EntryStockLine(
            line_no=line_no,
            metal_stock_id=line.metal_stock_id,
            stock_code=line.stock_code,
            pieces=line.pieces,
            gross_weight=line.gross_weight,
            purity=line.purity,
            pure_weight=line.pure_weight,
            remarks=line.remarks,
            created_by_id=actor_id,
        )
        for line_no, line in enumerate(event.stock_lines, start=1)
    ]


def _cash_lines(event: events.EntryEvent, actor_id: UUID) -> list[EntryCashLine]:
    return [
        EntryCashLine(
            line_no=line_no,
            cash_account_id=line.cash_account_id,
            currency_code=line.currency,
            amount=line.amount,
            vat_amount=line.vat_amount,
            payment_mode=line.payment_mode,
            remarks=line.remarks,
            created_by_id=actor_id,
        )
        for line_no, line in enumerate(event.cash_lines, start=1)
    ]


class EntryHandler(SourceHandler):
    source_kind = SourceKind.ENTRY
    entity_name = "Entry"
    model = Entry

    def voucher_key(self, event: events.EntryEvent) -> str:
        return event.entry_type.value

    def _check_references(self, unit: PostingUnit, event: events.EntryEvent) -> None:
        for line in event.cash_lines:
            unit.cash_accounts.get(line.cash_account_id)
        for line in event.stock_lines:
            if line.metal_stock_id is not None:
                unit.metal_stocks.get(line.metal_stock_id)

    def _fill(self, entity: Entry, event: events.EntryEvent) -> None:
        entity.entry_type = event.entry_type.value
        entity.voucher_date = event.voucher_date
        entity.party_id = event.party_id
        entity.status = event.status.value
        entity.remarks = event.remarks
        entity.total_amount = event.total_amount

    def persist(
        self,
        unit: PostingUnit,
        event: events.EntryEvent,
        allocation: VoucherAllocation,
        business_id: str | None,
        parties: dict[UUID, PartyView],
        actor_id: UUID,
    ) -> Entry:
        self._check_references(unit, event)
        entity = Entry(voucher_number=allocation.voucher_number, created_by_id=actor_id)
        self._fill(entity, event)
        entity.stock_lines = _stock_lines(event, actor_id)
        entity.cash_lines = _cash_lines(event, actor_id)
        unit.session.add(entity)
        unit.session.flush()
        return entity

    def replace(
        self,
        unit: PostingUnit,
        entity: Entry,
        event: events.EntryEvent,
        parties: dict[UUID, PartyView],
        actor_id: UUID,
    ) -> None:
        self._check_references(unit, event)
        self._fill(entity, event)
        entity.stock_lines.clear()
        entity.cash_lines.clear()
        unit.session.flush()
        entity.stock_lines.extend(_stock_lines(event, actor_id))
        entity.cash_lines.extend(_cash_lines(event, actor_id))
        entity.mark_updated(actor_id)

    def to_event(self, entity: Entry) -> events.EntryEvent:
        return events.EntryEvent(
            entry_type=entity.entry_type,
            party_id=entity.party_id,
            voucher_date=entity.voucher_date,
            stock_lines=tuple(
                events.EntryStockLine(
                    pure_weight=line.pure_weight,
                    gross_weight=line.gross_weight,
                    purity=line.purity,
                    metal_stock_id=line.metal_stock_id,
                    stock_code=line.stock_code,
                    pieces=line.pieces,
                    remarks=line.remarks,
                )
                for line in entity.stock_lines
            ),
            cash_lines=tuple(
                events.EntryCashLine(
                    cash_account_id=line.cash_account_id,
                    currency=line.currency_code,
                    amount=line.amount,
                    vat_amount=line.vat_amount,
                    payment_mode=line.payment_mode,
                    remarks=line.remarks,
                )
                for line in entity.cash_lines
            ),
            status=entity.status,
            remarks=entity.remarks,
        )


class EntryService:
    """Facade over the orchestrator for receipts and payments."""

    def __init__(self, orchestrator: TransactionOrchestrator):
        self._orchestrator = orchestrator
        self.handler = EntryHandler()

    def create(self, event: events.EntryEvent, actor_id: UUID) -> PostingResult:
        return self._orchestrator.create(self.handler, event, actor_id)

    def update(self, entry_id: UUID, event: events.EntryEvent, actor_id: UUID) -> PostingResult:
        return self._orchestrator.update(self.handler, entry_id, event, actor_id)

    def delete(self, entry_id: UUID, actor_id: UUID) -> PostingResult:
        return self._orchestrator.delete(self.handler, entry_id, actor_id)
