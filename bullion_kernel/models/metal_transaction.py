"""
Module: bullion_kernel.models.metal_transaction
Responsibility: ORM persistence for metal purchases, sales, returns and
    their import/export variants, together with their stock items.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - voucher_number is unique across metal transactions
      (uq_metal_transaction_voucher).  The allocator probes past taken
      numbers; the constraint catches the residual race and the
      orchestrator retries.
    - The stored row carries everything needed to re-derive its posting
      plan: party_currency is normalized at create time so a later
      reverse-and-reapply yields the same plan even if the party's default
      currency changes in between.

Failure modes:
    - IntegrityError on duplicate voucher_number.

Audit relevance:
    Registry rows reference a metal transaction through
    registry_rows.metal_transaction_id; retraction is scoped by it.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bullion_kernel.db.base import TrackedBase


class MetalTransaction(TrackedBase):
    """
    A metal purchase/sale document.

    Contract:
        transaction_type is one of the eight metal transaction kinds.
        Items are owned (delete-orphan) and ordered by line_no.
    """

    __tablename__ = "metal_transactions"

    __table_args__ = (
        UniqueConstraint("voucher_number", name="uq_metal_transaction_voucher"),
        Index(
            "idx_metal_transaction_type_party_date",
            "transaction_type",
            "party_id",
            "voucher_date",
        ),
    )

    transaction_type: Mapped[str] = mapped_column(String(30), nullable=False)

    voucher_type: Mapped[str] = mapped_column(String(100), nullable=False)

    voucher_number: Mapped[str] = mapped_column(String(50), nullable=False)

    voucher_date: Mapped[date] = mapped_column(nullable=False)

    party_id: Mapped[UUID] = mapped_column(
        ForeignKey("party_accounts.id"),
        nullable=False,
    )

    party_currency: Mapped[str] = mapped_column(String(3), nullable=False)

    party_currency_rate: Mapped[Decimal] = mapped_column(
        Numeric(38, 18),
        nullable=False,
        default=Decimal("1"),
    )

    fixed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="confirmed",
    )

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    remarks: Mapped[str] = mapped_column(String(500), nullable=False, default="")

    total_pure_weight: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    total_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    items: Mapped[list["MetalTransactionItem"]] = relationship(
        back_populates="transaction",
        cascade="all, delete-orphan",
        order_by="MetalTransactionItem.line_no",
    )

    def __repr__(self) -> str:
        return f"<MetalTransaction {self.voucher_number} {self.transaction_type}>"


class MetalTransactionItem(TrackedBase):
    """One stock item of a metal transaction; amounts are in party currency."""

    __tablename__ = "metal_transaction_items"

    transaction_id: Mapped[UUID] = mapped_column(
        ForeignKey("metal_transactions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    line_no: Mapped[int] = mapped_column(Integer, nullable=False)

    metal_stock_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("metal_stocks.id"),
        nullable=True,
    )

    stock_code: Mapped[str | None] = mapped_column(String(50), nullable=True)

    description: Mapped[str] = mapped_column(String(255), nullable=False, default="")

    pieces: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    gross_weight: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    purity: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    pure_weight: Mapped[Decimal] = mapped_column(nullable=False)

    metal_rate: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    bid_value: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    base_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    making_charges: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    # Negative premium is a discount
    premium: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    other_charges: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    vat_percentage: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    vat_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    total_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    transaction: Mapped[MetalTransaction] = relationship(back_populates="items")
