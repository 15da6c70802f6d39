"""
Service layer for assay drafts.

Drafts are numbered through the draft-metal voucher module
(max numeric suffix + 1) and carry no ledger effects.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from bullion_kernel.db.types import ZERO, to_decimal
from bullion_kernel.domain.clock import Clock
from bullion_kernel.exceptions import EntityNotFoundError
from bullion_kernel.logging_config import get_logger
from bullion_kernel.models.drafting import Drafting, DraftStatus
from bullion_kernel.services.base import BaseService
from bullion_kernel.services.voucher_allocator import DRAFT_METAL_MODULE, VoucherAllocator

logger = get_logger("services.drafting")


@dataclass(frozen=True)
class DraftInfo:
    id: UUID
    voucher_code: str
    voucher_type: str
    voucher_date: date
    party_id: UUID | None
    stock_code: str | None
    gross_weight: Decimal
    purity: Decimal
    pure_weight: Decimal
    status: str


class DraftingService(BaseService[Drafting]):
    model = Drafting

    def __init__(self, session: Session, clock: Clock, allocator: VoucherAllocator):
        super().__init__(session)
        self._clock = clock
        self._allocator = allocator

    def _to_dto(self, draft: Drafting) -> DraftInfo:
        return DraftInfo(
            id=draft.id,
            voucher_code=draft.voucher_code,
            voucher_type=draft.voucher_type,
            voucher_date=draft.voucher_date,
            party_id=draft.party_id,
            stock_code=draft.stock_code,
            gross_weight=draft.gross_weight,
            purity=draft.purity,
            pure_weight=draft.pure_weight,
            status=draft.status,
        )

    def create(
        self,
        actor_id: UUID,
        party_id: UUID | None = None,
        stock_code: str | None = None,
        gross_weight: Decimal | str = ZERO,
        purity: Decimal | str = ZERO,
        voucher_date: date | None = None,
        certificate_number: str | None = None,
        remarks: str = "",
    ) -> DraftInfo:
        allocation = self._allocator.allocate(DRAFT_METAL_MODULE, voucher_date=voucher_date)
        gross = to_decimal(gross_weight, "gross_weight")
        purity_value = to_decimal(purity, "purity")
        draft = Drafting(
            voucher_code=allocation.voucher_number,
            voucher_type=allocation.voucher_type,
            prefix=allocation.prefix,
            voucher_date=allocation.date,
            party_id=party_id,
            stock_code=stock_code,
            gross_weight=gross,
            purity=purity_value,
            pure_weight=gross * purity_value,
            certificate_number=certificate_number,
            remarks=remarks,
            status=DraftStatus.DRAFT.value,
            created_by_id=actor_id,
        )
        self.session.add(draft)
        self.session.flush()
        logger.info(
            "draft_created",
            extra={"draft_id": str(draft.id), "voucher_number": draft.voucher_code},
        )
        return self._to_dto(draft)

    def delete(self, draft_id: UUID, actor_id: UUID) -> None:
        draft = self._fetch(draft_id, for_update=True)
        if draft is None:
            raise EntityNotFoundError("Drafting", str(draft_id))
        self.session.delete(draft)
        self.session.flush()
        logger.info(
            "draft_deleted",
            extra={"voucher_number": draft.voucher_code, "actor_id": str(actor_id)},
        )
