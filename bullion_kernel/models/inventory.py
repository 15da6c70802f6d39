"""
Module: bullion_kernel.models.inventory
Responsibility: ORM persistence for metal stock definitions, their on-hand
    quantities, and the inventory movement log written as collateral of
    metal transactions and metal entries.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - MetalStock.code is unique.
    - InventoryLog rows back-reference the source document that produced
      them and are deleted together with that source's registry rows.

Failure modes:
    - IntegrityError on duplicate stock code.

Audit relevance:
    On-hand quantities are projections of InventoryLog movements.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from bullion_kernel.db.base import TrackedBase


class MetalStock(TrackedBase):
    """
    An inventory line-item definition (e.g. a 1kg 999.9 bar).

    Metal stock is referenced by stock items and entry lines; it is never
    posted to the Registry on its own.
    """

    __tablename__ = "metal_stocks"

    code: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)

    description: Mapped[str] = mapped_column(String(255), nullable=False, default="")

    metal_type: Mapped[str] = mapped_column(String(50), nullable=False, default="GOLD")

    reference_type: Mapped[str] = mapped_column(String(50), nullable=False, default="")

    karat: Mapped[str | None] = mapped_column(String(20), nullable=True)

    standard_purity: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("1"))

    voucher_number: Mapped[str | None] = mapped_column(String(50), nullable=True)

    on_hand_pieces: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    on_hand_gross_weight: Mapped[Decimal] = mapped_column(
        nullable=False, default=Decimal("0")
    )

    on_hand_pure_weight: Mapped[Decimal] = mapped_column(
        nullable=False, default=Decimal("0")
    )

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<MetalStock {self.code}>"


class InventoryLog(TrackedBase):
    """One stock movement, signed by action (add / remove)."""

    __tablename__ = "inventory_logs"

    __table_args__ = (
        Index("idx_inventory_log_code", "code"),
        Index("idx_inventory_log_source", "source_kind", "source_id"),
    )

    metal_stock_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("metal_stocks.id"),
        nullable=True,
    )

    code: Mapped[str] = mapped_column(String(50), nullable=False)

    transaction_type: Mapped[str] = mapped_column(String(50), nullable=False)

    action: Mapped[str] = mapped_column(String(20), nullable=False)

    party_id: Mapped[UUID | None] = mapped_column(nullable=True)

    pieces: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    gross_weight: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    pure_weight: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    voucher_code: Mapped[str | None] = mapped_column(String(50), nullable=True)

    voucher_date: Mapped[date | None] = mapped_column(nullable=True)

    source_kind: Mapped[str] = mapped_column(String(50), nullable=False)

    source_id: Mapped[UUID] = mapped_column(nullable=False)

    note: Mapped[str] = mapped_column(String(500), nullable=False, default="")
