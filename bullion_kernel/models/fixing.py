"""
Module: bullion_kernel.models.fixing
Responsibility: ORM persistence for transaction fixings (price locks on
    unfixed metal), their orders, and the FixingPrice collateral written
    per fixed order.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - transaction_id ({PUR|SEL}NNNNN) and voucher_number are each unique.
    - FixingPrice rows exist only while the fixing that produced them is
      posted; reverse-and-reapply deletes and rewrites them.

Failure modes:
    - IntegrityError on duplicate transaction_id or voucher_number.

Audit relevance:
    Registry rows reference a fixing through
    registry_rows.fixing_transaction_id; FixingPrice through fixing_id.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bullion_kernel.db.base import TrackedBase


class FixingStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    CANCELLED = "cancelled"


class TransactionFixing(TrackedBase):
    """A PURCHASE or SALE fixing against one party."""

    __tablename__ = "transaction_fixings"

    __table_args__ = (
        UniqueConstraint("transaction_id", name="uq_fixing_transaction_id"),
        UniqueConstraint("voucher_number", name="uq_fixing_voucher"),
        Index("idx_fixing_status_active", "status", "is_active"),
        Index("idx_fixing_party_date", "party_id", "voucher_date"),
    )

    transaction_id: Mapped[str] = mapped_column(String(20), nullable=False)

    fixing_type: Mapped[str] = mapped_column(String(10), nullable=False)

    party_id: Mapped[UUID] = mapped_column(
        ForeignKey("party_accounts.id"),
        nullable=False,
    )

    voucher_type: Mapped[str] = mapped_column(String(100), nullable=False)

    voucher_number: Mapped[str] = mapped_column(String(50), nullable=False)

    voucher_date: Mapped[date] = mapped_column(nullable=False)

    reference_number: Mapped[str] = mapped_column(String(100), nullable=False, default="")

    remarks: Mapped[str] = mapped_column(String(500), nullable=False, default="")

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=FixingStatus.ACTIVE.value,
    )

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    orders: Mapped[list["FixingOrder"]] = relationship(
        back_populates="fixing",
        cascade="all, delete-orphan",
        order_by="FixingOrder.line_no",
    )

    def __repr__(self) -> str:
        return f"<TransactionFixing {self.transaction_id} {self.fixing_type}>"


class FixingOrder(TrackedBase):
    """
    One order of a fixing.

    Weight candidates are stored as given; the effective pure weight is
    resolved by the posting rule (pure_weight, then quantity_gm, then
    gross_weight).  The forex columns are null when the order carried no
    forex descriptor.
    """

    __tablename__ = "fixing_orders"

    fixing_id: Mapped[UUID] = mapped_column(
        ForeignKey("transaction_fixings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    line_no: Mapped[int] = mapped_column(Integer, nullable=False)

    pure_weight: Mapped[Decimal | None] = mapped_column(nullable=True)

    quantity_gm: Mapped[Decimal | None] = mapped_column(nullable=True)

    gross_weight: Mapped[Decimal | None] = mapped_column(nullable=True)

    one_gram_rate: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    bid_value: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    current_bid_value: Mapped[Decimal | None] = mapped_column(nullable=True)

    price: Mapped[Decimal] = mapped_column(nullable=False)

    selected_currency: Mapped[str] = mapped_column(String(3), nullable=False)

    item_currency_rate: Mapped[Decimal | None] = mapped_column(Numeric(38, 18), nullable=True)

    currency_rate: Mapped[Decimal | None] = mapped_column(Numeric(38, 18), nullable=True)

    metal_type: Mapped[str] = mapped_column(String(50), nullable=False, default="GOLD")

    metal_rate_id: Mapped[UUID | None] = mapped_column(nullable=True)

    fx_market_value: Mapped[Decimal | None] = mapped_column(nullable=True)

    fx_given_value: Mapped[Decimal | None] = mapped_column(nullable=True)

    fx_purchase_rate: Mapped[Decimal | None] = mapped_column(Numeric(38, 18), nullable=True)

    fx_sell_rate: Mapped[Decimal | None] = mapped_column(Numeric(38, 18), nullable=True)

    fx_default_rate: Mapped[Decimal | None] = mapped_column(Numeric(38, 18), nullable=True)

    fixing: Mapped[TransactionFixing] = relationship(back_populates="orders")


class FixingPrice(TrackedBase):
    """Rate snapshot of one fixed order at the moment of fixing."""

    __tablename__ = "fixing_prices"

    __table_args__ = (
        Index("idx_fixing_price_fixing_status", "fixing_id", "status"),
    )

    fixing_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("transaction_fixings.id"),
        nullable=True,
    )

    metal_transaction_id: Mapped[UUID | None] = mapped_column(nullable=True, index=True)

    transaction_type: Mapped[str] = mapped_column(String(30), nullable=False, index=True)

    rate_in_gram: Mapped[Decimal] = mapped_column(nullable=False)

    bid_value: Mapped[Decimal | None] = mapped_column(nullable=True)

    current_bid_value: Mapped[Decimal | None] = mapped_column(nullable=True)

    metal_rate_id: Mapped[UUID | None] = mapped_column(nullable=True)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")

    fixed_at: Mapped[datetime] = mapped_column(nullable=False)
