"""
Fund transfer facade: transfers and opening balances, cash or gold.

A transfer gets a business transaction id (TXN-YYYY-NNN).  The value is
stored signed exactly as submitted.  Creating an opening balance for a
(party, asset) that already has one updates the existing document.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import select

from bullion_kernel.domain.events import AssetType, FundTransferEvent, TransferType
from bullion_kernel.domain.plan import PartyView, SourceKind
from bullion_kernel.exceptions import InvalidEnumError
from bullion_kernel.models.fund_transfer import FundTransfer
from bullion_kernel.services.posting_orchestrator import (
    PostingResult,
    PostingUnit,
    SourceHandler,
    TransactionOrchestrator,
)
from bullion_kernel.services.voucher_allocator import VoucherAllocation


class FundTransferHandler(SourceHandler):
    source_kind = SourceKind.FUND_TRANSFER
    entity_name = "FundTransfer"
    model = FundTransfer

    def voucher_key(self, event: FundTransferEvent) -> str:
        return event.transfer_type.value

    def find_existing(self, unit: PostingUnit, event: FundTransferEvent) -> FundTransfer | None:
        if event.transfer_type != TransferType.OPENING_BALANCE:
            return None
        return unit.session.execute(
            select(FundTransfer)
            .where(
                FundTransfer.transfer_type == TransferType.OPENING_BALANCE.value,
                FundTransfer.receiving_party_id == event.receiving_party_id,
                FundTransfer.asset_type == event.asset_type.value,
            )
            .limit(1)
        ).scalar_one_or_none()

    def new_transaction_id(self, unit: PostingUnit, event: FundTransferEvent) -> str:
        return unit.id_generator.transfer_id()

    def business_transaction_id(self, entity: FundTransfer) -> str:
        return entity.transaction_id

    def transaction_date(self, unit: PostingUnit, entity: FundTransfer) -> datetime:
        return entity.transaction_date

    def _fill(self, unit: PostingUnit, entity: FundTransfer, event: FundTransferEvent) -> None:
        entity.transfer_type = event.transfer_type.value
        entity.asset_type = event.asset_type.value
        entity.description = event.description
        entity.receiving_party_id = event.receiving_party_id
        entity.sending_party_id = event.sending_party_id
        entity.value = event.value
        entity.currency_code = event.currency or unit.settings.base_currency
        entity.voucher_date = event.voucher_date

    def persist(
        self,
        unit: PostingUnit,
        event: FundTransferEvent,
        allocation: VoucherAllocation,
        business_id: str | None,
        parties: dict[UUID, PartyView],
        actor_id: UUID,
    ) -> FundTransfer:
        entity = FundTransfer(
            transaction_id=business_id,
            voucher_type=allocation.voucher_type,
            voucher_number=allocation.voucher_number,
            transaction_date=unit.clock.now(),
            created_by_id=actor_id,
        )
        self._fill(unit, entity, event)
        unit.session.add(entity)
        unit.session.flush()
        return entity

    def replace(
        self,
        unit: PostingUnit,
        entity: FundTransfer,
        event: FundTransferEvent,
        parties: dict[UUID, PartyView],
        actor_id: UUID,
    ) -> None:
        self._fill(unit, entity, event)
        entity.transaction_date = unit.clock.now()
        entity.mark_updated(actor_id)

    def to_event(self, entity: FundTransfer) -> FundTransferEvent:
        cash = entity.asset_type == AssetType.CASH.value
        return FundTransferEvent(
            transfer_type=entity.transfer_type,
            asset_type=entity.asset_type,
            value=entity.value,
            receiving_party_id=entity.receiving_party_id,
            voucher_date=entity.voucher_date,
            sending_party_id=entity.sending_party_id,
            currency=entity.currency_code if cash else None,
            description=entity.description,
        )


class FundTransferService:
    """Facade over the orchestrator for fund transfers and opening balances."""

    def __init__(self, orchestrator: TransactionOrchestrator):
        self._orchestrator = orchestrator
        self.handler = FundTransferHandler()

    def create(self, event: FundTransferEvent, actor_id: UUID) -> PostingResult:
        return self._orchestrator.create(self.handler, event, actor_id)

    def create_opening_balance(self, event: FundTransferEvent, actor_id: UUID) -> PostingResult:
        """
        Create (or replace) the opening balance of one party and asset.

        Raises:
            InvalidEnumError: ``event`` is not an OPENING-BALANCE transfer.
        """
        if event.transfer_type != TransferType.OPENING_BALANCE:
            raise InvalidEnumError(
                "transfer_type", event.transfer_type.value, [TransferType.OPENING_BALANCE.value]
            )
        return self._orchestrator.create(self.handler, event, actor_id)

    def update(self, transfer_id: UUID, event: FundTransferEvent, actor_id: UUID) -> PostingResult:
        return self._orchestrator.update(self.handler, transfer_id, event, actor_id)

    def delete(self, transfer_id: UUID, actor_id: UUID) -> PostingResult:
        return self._orchestrator.delete(self.handler, transfer_id, actor_id)
