"""
Metal transaction facade: create, update, delete and cancel.

Persistence hooks for metal purchases, sales, returns and their
import/export variants.  The party currency is normalized into the stored
row at create time so re-derivation on update and delete is stable.
"""

from typing import Any
from uuid import UUID

from bullion_kernel.domain.events import MetalTransactionEvent, MetalTransactionStatus, StockItem
from bullion_kernel.domain.plan import PartyView, SourceKind
from bullion_kernel.exceptions import EntityAlreadyCancelledError
from bullion_kernel.logging_config import get_logger
from bullion_kernel.models.metal_transaction import MetalTransaction, MetalTransactionItem
from bullion_kernel.posting_rules.metal_transaction import resolve_party_currency
from bullion_kernel.services.posting_orchestrator import (
    PostingResult,
    PostingUnit,
    SourceHandler,
    TransactionOrchestrator,
)
from bullion_kernel.services.voucher_allocator import VoucherAllocation

logger = get_logger("services.metal_transaction")


def _items(event: MetalTransactionEvent, actor_id: UUID) -> list[MetalTransactionItem]:
    return [
        MetalTransactionItem(
            line_no=line_no,
            metal_stock_id=item.metal_stock_id,
            stock_code=item.stock_code,
            description=item.description,
            pieces=item.pieces,
            gross_weight=item.gross_weight,
            purity=item.purity,
            pure_weight=item.pure_weight,
            metal_rate=item.metal_rate,
            bid_value=item.bid_value,
            base_amount=item.base_amount,
            making_charges=item.making_charges,
            premium=item.premium,
            other_charges=item.other_charges,
            vat_percentage=item.vat_percentage,
            vat_amount=item.vat_amount,
            total_amount=item.total_amount,
            created_by_id=actor_id,
        )
        for line_no, item in enumerate(event.stock_items, start=1)
    ]


class MetalTransactionHandler(SourceHandler):
    source_kind = SourceKind.METAL_TRANSACTION
    entity_name = "MetalTransaction"
    model = MetalTransaction

    def voucher_key(self, event: MetalTransactionEvent) -> str:
        return event.transaction_type.value

    def _check_stock(self, unit: PostingUnit, event: MetalTransactionEvent) -> None:
        for item in event.stock_items:
            if item.metal_stock_id is not None:
                unit.metal_stocks.get(item.metal_stock_id)

    def _fill(
        self,
        unit: PostingUnit,
        entity: MetalTransaction,
        event: MetalTransactionEvent,
        parties: dict[UUID, PartyView],
    ) -> None:
        entity.transaction_type = event.transaction_type.value
        entity.voucher_date = event.voucher_date
        entity.party_id = event.party_id
        entity.party_currency = resolve_party_currency(
            event, parties[event.party_id], unit.settings.base_currency
        )
        entity.party_currency_rate = event.party_currency_rate
        entity.fixed = event.fixed
        entity.status = event.status.value
        entity.remarks = event.remarks
        entity.total_pure_weight = event.total_pure_weight
        entity.total_amount = event.total_amount

    def persist(
        self,
        unit: PostingUnit,
        event: MetalTransactionEvent,
        allocation: VoucherAllocation,
        business_id: str | None,
        parties: dict[UUID, PartyView],
        actor_id: UUID,
    ) -> MetalTransaction:
        self._check_stock(unit, event)
        entity = MetalTransaction(
            voucher_type=event.voucher_type or allocation.voucher_type,
            voucher_number=allocation.voucher_number,
            is_active=True,
            created_by_id=actor_id,
        )
        self._fill(unit, entity, event, parties)
        entity.items = _items(event, actor_id)
        unit.session.add(entity)
        unit.session.flush()
        return entity

    def replace(
        self,
        unit: PostingUnit,
        entity: MetalTransaction,
        event: MetalTransactionEvent,
        parties: dict[UUID, PartyView],
        actor_id: UUID,
    ) -> None:
        self._check_stock(unit, event)
        self._fill(unit, entity, event, parties)
        if event.voucher_type:
            entity.voucher_type = event.voucher_type
        entity.items.clear()
        unit.session.flush()
        entity.items.extend(_items(event, actor_id))
        entity.mark_updated(actor_id)

    def to_event(self, entity: MetalTransaction) -> MetalTransactionEvent:
        return MetalTransactionEvent(
            transaction_type=entity.transaction_type,
            party_id=entity.party_id,
            voucher_date=entity.voucher_date,
            stock_items=tuple(
                StockItem(
                    pure_weight=item.pure_weight,
                    gross_weight=item.gross_weight,
                    purity=item.purity,
                    metal_stock_id=item.metal_stock_id,
                    stock_code=item.stock_code,
                    description=item.description,
                    pieces=item.pieces,
                    metal_rate=item.metal_rate,
                    bid_value=item.bid_value,
                    base_amount=item.base_amount,
                    making_charges=item.making_charges,
                    premium=item.premium,
                    other_charges=item.other_charges,
                    vat_percentage=item.vat_percentage,
                    vat_amount=item.vat_amount,
                    total_amount=item.total_amount,
                )
                for item in entity.items
            ),
            party_currency=entity.party_currency,
            party_currency_rate=entity.party_currency_rate,
            voucher_type=entity.voucher_type,
            fixed=entity.fixed,
            status=entity.status,
            remarks=entity.remarks,
        )

    def cancel_entity(self, unit: PostingUnit, entity: MetalTransaction, actor_id: UUID) -> None:
        if entity.status == MetalTransactionStatus.CANCELLED.value:
            raise EntityAlreadyCancelledError(self.entity_name, str(entity.id))
        entity.status = MetalTransactionStatus.CANCELLED.value
        entity.mark_updated(actor_id)
        logger.info(
            "metal_transaction_cancelled",
            extra={"entity_id": str(entity.id), "voucher_number": entity.voucher_number},
        )


class MetalTransactionService:
    """Facade over the orchestrator for metal transactions."""

    def __init__(self, orchestrator: TransactionOrchestrator):
        self._orchestrator = orchestrator
        self.handler = MetalTransactionHandler()

    def create(self, event: MetalTransactionEvent, actor_id: UUID) -> PostingResult:
        return self._orchestrator.create(self.handler, event, actor_id)

    def update(
        self, transaction_id: UUID, event: MetalTransactionEvent, actor_id: UUID
    ) -> PostingResult:
        return self._orchestrator.update(self.handler, transaction_id, event, actor_id)

    def delete(self, transaction_id: UUID, actor_id: UUID) -> PostingResult:
        return self._orchestrator.delete(self.handler, transaction_id, actor_id)

    def cancel(self, transaction_id: UUID, actor_id: UUID) -> PostingResult:
        return self._orchestrator.cancel(self.handler, transaction_id, actor_id)

    def get(self, transaction_id: UUID) -> Any:
        """The stored transaction as an event, for inspection."""
        return self._orchestrator.run_in_transaction(
            "metal_transaction.get",
            lambda unit: self.handler.to_event(
                self.handler.load(unit, transaction_id, for_update=False)
            ),
        )
