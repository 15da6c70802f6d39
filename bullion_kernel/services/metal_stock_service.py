"""
Service layer for metal stock definitions and on-hand quantities.

Metal stock is referenced by stock items and entry lines and is never
posted to the Registry.  Postings move on-hand quantities through
``apply_movement``; the movement is logged to inventory_logs with the
source back-reference so retraction can remove it.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from bullion_kernel.db.types import ZERO, to_decimal
from bullion_kernel.domain.clock import Clock
from bullion_kernel.domain.plan import InventoryMovement, SourceKind, SourceRef
from bullion_kernel.exceptions import DuplicateCodeError, MetalStockNotFoundError, MissingFieldError
from bullion_kernel.logging_config import get_logger
from bullion_kernel.models.inventory import InventoryLog, MetalStock
from bullion_kernel.services.base import BaseService

logger = get_logger("services.metal_stock")


@dataclass(frozen=True)
class MetalStockInfo:
    id: UUID
    code: str
    description: str
    metal_type: str
    standard_purity: Decimal
    on_hand_pieces: int
    on_hand_gross_weight: Decimal
    on_hand_pure_weight: Decimal
    is_active: bool


class MetalStockService(BaseService[MetalStock]):
    model = MetalStock

    def __init__(self, session: Session, clock: Clock):
        super().__init__(session)
        self._clock = clock

    def _to_dto(self, stock: MetalStock) -> MetalStockInfo:
        return MetalStockInfo(
            id=stock.id,
            code=stock.code,
            description=stock.description,
            metal_type=stock.metal_type,
            standard_purity=stock.standard_purity,
            on_hand_pieces=stock.on_hand_pieces,
            on_hand_gross_weight=stock.on_hand_gross_weight,
            on_hand_pure_weight=stock.on_hand_pure_weight,
            is_active=stock.is_active,
        )

    def create(
        self,
        actor_id: UUID,
        code: str,
        description: str = "",
        metal_type: str = "GOLD",
        standard_purity: Decimal | str = Decimal("1"),
        karat: str | None = None,
        reference_type: str = "",
    ) -> MetalStockInfo:
        """
        Raises:
            MissingFieldError: Blank code.
            DuplicateCodeError: Code already exists.
        """
        code = (code or "").strip().upper()
        if not code:
            raise MissingFieldError("code")
        if self._find(code=code) is not None:
            raise DuplicateCodeError("MetalStock", code)

        stock = MetalStock(
            code=code,
            description=description,
            metal_type=metal_type,
            standard_purity=to_decimal(standard_purity, "standard_purity"),
            karat=karat,
            reference_type=reference_type,
            created_by_id=actor_id,
        )
        self.session.add(stock)
        self.session.flush()
        logger.info("metal_stock_created", extra={"metal_stock_id": str(stock.id), "code": code})
        return self._to_dto(stock)

    def _find(self, stock_id: UUID | None = None, code: str | None = None) -> MetalStock | None:
        if stock_id is not None:
            return self._fetch(stock_id)
        if code:
            return self.session.execute(
                select(MetalStock).where(MetalStock.code == code.strip().upper())
            ).scalar_one_or_none()
        return None

    def get(self, stock_id: UUID) -> MetalStockInfo:
        stock = self._find(stock_id=stock_id)
        if stock is None:
            raise MetalStockNotFoundError(str(stock_id))
        return self._to_dto(stock)

    def get_by_code(self, code: str) -> MetalStockInfo:
        stock = self._find(code=code)
        if stock is None:
            raise MetalStockNotFoundError(code)
        return self._to_dto(stock)

    def apply_movement(
        self,
        movement: InventoryMovement,
        source: SourceRef,
        voucher_date: date | None,
        actor_id: UUID,
    ) -> MetalStock:
        """
        Adjust on-hand quantities by one movement.

        Raises:
            MetalStockNotFoundError: The referenced stock does not exist.
        """
        stock = self._find(movement.metal_stock_id, movement.stock_code)
        if stock is None:
            raise MetalStockNotFoundError(str(movement.metal_stock_id or movement.stock_code))

        sign = Decimal(movement.direction)
        stock.on_hand_pure_weight = stock.on_hand_pure_weight + sign * movement.pure_weight
        stock.on_hand_gross_weight = stock.on_hand_gross_weight + sign * movement.gross_weight
        stock.on_hand_pieces = stock.on_hand_pieces + movement.direction * movement.pieces
        stock.mark_updated(actor_id)

        if movement.write_log:
            self.session.add(
                InventoryLog(
                    metal_stock_id=stock.id,
                    code=stock.code,
                    transaction_type=movement.transaction_type,
                    action="add" if movement.direction > 0 else "remove",
                    party_id=movement.party_id,
                    pieces=movement.pieces,
                    gross_weight=movement.gross_weight,
                    pure_weight=movement.pure_weight,
                    voucher_code=source.voucher_number,
                    voucher_date=voucher_date,
                    source_kind=SourceKind(source.kind).value,
                    source_id=source.id,
                    created_by_id=actor_id,
                )
            )
        self.session.flush()

        logger.debug(
            "metal_stock_moved",
            extra={
                "code": stock.code,
                "direction": movement.direction,
                "pure_weight": str(movement.pure_weight),
                "on_hand_pure_weight": str(stock.on_hand_pure_weight),
                "logged": movement.write_log,
            },
        )
        return stock

    def on_hand(self, code: str) -> Decimal:
        stock = self._find(code=code)
        return stock.on_hand_pure_weight if stock is not None else ZERO
