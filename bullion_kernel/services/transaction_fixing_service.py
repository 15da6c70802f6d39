"""
Transaction fixing facade: create, update, delete, cancel and restore.

A fixing gets a business transaction id ({PUR|SEL}NNNNN) at create time.
Order forex descriptors are stored as market/given values and rates, and
gains/losses are rebuilt from them with ``build_forex_value`` on every
re-derivation.  Cancel and restore are pure status changes.
"""

from uuid import UUID

from bullion_kernel.domain import events
from bullion_kernel.domain.forex import build_forex_value
from bullion_kernel.domain.plan import PartyView, SourceKind
from bullion_kernel.exceptions import EntityAlreadyCancelledError
from bullion_kernel.logging_config import get_logger
from bullion_kernel.models.fixing import FixingOrder, FixingStatus, TransactionFixing
from bullion_kernel.services.posting_orchestrator import (
    PostingResult,
    PostingUnit,
    SourceHandler,
    TransactionOrchestrator,
)
from bullion_kernel.services.voucher_allocator import VoucherAllocation

logger = get_logger("services.transaction_fixing")


def _orders(event: events.TransactionFixingEvent, actor_id: UUID) -> list[FixingOrder]:
    orders = []
    for line_no, order in enumerate(event.orders, start=1):
        forex = order.forex
        orders.append(
            FixingOrder(
                line_no=line_no,
                pure_weight=order.pure_weight,
                quantity_gm=order.quantity_gm,
                gross_weight=order.gross_weight,
                one_gram_rate=order.one_gram_rate,
                bid_value=order.bid_value,
                current_bid_value=order.current_bid_value,
                price=order.price,
                selected_currency=order.selected_currency,
                item_currency_rate=order.item_currency_rate,
                currency_rate=order.currency_rate,
                metal_type=order.metal_type,
                metal_rate_id=order.metal_rate_id,
                fx_market_value=forex.market_value if forex else None,
                fx_given_value=forex.given_value if forex else None,
                fx_purchase_rate=forex.purchase_rate if forex else None,
                fx_sell_rate=forex.sell_rate if forex else None,
                fx_default_rate=forex.default_rate if forex else None,
                created_by_id=actor_id,
            )
        )
    return orders


class TransactionFixingHandler(SourceHandler):
    source_kind = SourceKind.TRANSACTION_FIXING
    entity_name = "TransactionFixing"
    model = TransactionFixing

    def voucher_key(self, event: events.TransactionFixingEvent) -> str:
        return event.fixing_type.value

    def new_transaction_id(self, unit: PostingUnit, event: events.TransactionFixingEvent) -> str:
        return unit.id_generator.fixing_id(event.fixing_type)

    def business_transaction_id(self, entity: TransactionFixing) -> str:
        return entity.transaction_id

    def _fill(self, entity: TransactionFixing, event: events.TransactionFixingEvent) -> None:
        entity.fixing_type = event.fixing_type.value
        entity.party_id = event.party_id
        entity.voucher_date = event.voucher_date
        entity.reference_number = event.reference_number
        entity.remarks = event.remarks

    def persist(
        self,
        unit: PostingUnit,
        event: events.TransactionFixingEvent,
        allocation: VoucherAllocation,
        business_id: str | None,
        parties: dict[UUID, PartyView],
        actor_id: UUID,
    ) -> TransactionFixing:
        entity = TransactionFixing(
            transaction_id=business_id,
            voucher_type=allocation.voucher_type,
            voucher_number=allocation.voucher_number,
            status=FixingStatus.ACTIVE.value,
            is_active=True,
            created_by_id=actor_id,
        )
        self._fill(entity, event)
        entity.orders = _orders(event, actor_id)
        unit.session.add(entity)
        unit.session.flush()
        return entity

    def replace(
        self,
        unit: PostingUnit,
        entity: TransactionFixing,
        event: events.TransactionFixingEvent,
        parties: dict[UUID, PartyView],
        actor_id: UUID,
    ) -> None:
        self._fill(entity, event)
        entity.orders.clear()
        unit.session.flush()
        entity.orders.extend(_orders(event, actor_id))
        entity.mark_updated(actor_id)

    def to_event(self, entity: TransactionFixing) -> events.TransactionFixingEvent:
        orders = []
        for order in entity.orders:
            forex = None
            if order.fx_market_value is not None and order.fx_given_value is not None:
                forex = build_forex_value(
                    entity.fixing_type,
                    order.fx_market_value,
                    order.fx_given_value,
                    order.fx_purchase_rate,
                    order.fx_sell_rate,
                    order.fx_default_rate,
                )
            orders.append(
                events.FixingOrder(
                    price=order.price,
                    selected_currency=order.selected_currency,
                    pure_weight=order.pure_weight,
                    quantity_gm=order.quantity_gm,
                    gross_weight=order.gross_weight,
                    one_gram_rate=order.one_gram_rate,
                    bid_value=order.bid_value,
                    current_bid_value=order.current_bid_value,
                    item_currency_rate=order.item_currency_rate,
                    currency_rate=order.currency_rate,
                    metal_type=order.metal_type,
                    metal_rate_id=order.metal_rate_id,
                    forex=forex,
                )
            )
        return events.TransactionFixingEvent(
            fixing_type=entity.fixing_type,
            party_id=entity.party_id,
            voucher_date=entity.voucher_date,
            orders=tuple(orders),
            reference_number=entity.reference_number,
            remarks=entity.remarks,
        )

    def cancel_entity(self, unit: PostingUnit, entity: TransactionFixing, actor_id: UUID) -> None:
        if not entity.is_active or entity.status == FixingStatus.CANCELLED.value:
            raise EntityAlreadyCancelledError(self.entity_name, str(entity.id))
        entity.status = FixingStatus.CANCELLED.value
        entity.is_active = False
        entity.mark_updated(actor_id)
        logger.info(
            "transaction_fixing_cancelled",
            extra={"transaction_id": entity.transaction_id},
        )

    def restore_entity(self, unit: PostingUnit, entity: TransactionFixing, actor_id: UUID) -> None:
        entity.status = FixingStatus.ACTIVE.value
        entity.is_active = True
        entity.mark_updated(actor_id)
        logger.info(
            "transaction_fixing_restored",
            extra={"transaction_id": entity.transaction_id},
        )


class TransactionFixingService:
    """Facade over the orchestrator for PURCHASE and SALE fixings."""

    def __init__(self, orchestrator: TransactionOrchestrator):
        self._orchestrator = orchestrator
        self.handler = TransactionFixingHandler()

    def create(self, event: events.TransactionFixingEvent, actor_id: UUID) -> PostingResult:
        return self._orchestrator.create(self.handler, event, actor_id)

    def update(
        self, fixing_id: UUID, event: events.TransactionFixingEvent, actor_id: UUID
    ) -> PostingResult:
        return self._orchestrator.update(self.handler, fixing_id, event, actor_id)

    def delete(self, fixing_id: UUID, actor_id: UUID) -> PostingResult:
        return self._orchestrator.delete(self.handler, fixing_id, actor_id)

    def cancel(self, fixing_id: UUID, actor_id: UUID) -> PostingResult:
        return self._orchestrator.cancel(self.handler, fixing_id, actor_id)

    def restore(self, fixing_id: UUID, actor_id: UUID) -> PostingResult:
        return self._orchestrator.restore(self.handler, fixing_id, actor_id)
