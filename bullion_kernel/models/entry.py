"""
Module: bullion_kernel.models.entry
Responsibility: ORM persistence for metal and cash receipts/payments.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - voucher_number is unique across entries (uq_entry_voucher).
    - An entry holds stock lines (metal kinds) or cash lines (cash kinds),
      never both.  Enforced at event construction, not by the schema.
    - Only entries with status "approved" carry ledger effects.

Failure modes:
    - IntegrityError on duplicate voucher_number.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bullion_kernel.db.base import TrackedBase


class Entry(TrackedBase):
    """A receipt or payment document, metal or cash."""

    __tablename__ = "entries"

    __table_args__ = (
        UniqueConstraint("voucher_number", name="uq_entry_voucher"),
        Index("idx_entry_type_party_date", "entry_type", "party_id", "voucher_date"),
    )

    entry_type: Mapped[str] = mapped_column(String(30), nullable=False)

    voucher_number: Mapped[str] = mapped_column(String(50), nullable=False)

    voucher_date: Mapped[date] = mapped_column(nullable=False)

    party_id: Mapped[UUID] = mapped_column(
        ForeignKey("party_accounts.id"),
        nullable=False,
    )

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="approved",
    )

    remarks: Mapped[str] = mapped_column(String(500), nullable=False, default="")

    total_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    stock_lines: Mapped[list["EntryStockLine"]] = relationship(
        back_populates="entry",
        cascade="all, delete-orphan",
        order_by="EntryStockLine.line_no",
    )

    cash_lines: Mapped[list["EntryCashLine"]] = relationship(
        back_populates="entry",
        cascade="all, delete-orphan",
        order_by="EntryCashLine.line_no",
    )

    def __repr__(self) -> str:
        return f"<Entry {self.voucher_number} {self.entry_type}>"


class EntryStockLine(TrackedBase):
    __tablename__ = "entry_stock_lines"

    entry_id: Mapped[UUID] = mapped_column(
        ForeignKey("entries.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    line_no: Mapped[int] = mapped_column(Integer, nullable=False)

    metal_stock_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("metal_stocks.id"),
        nullable=True,
    )

    stock_code: Mapped[str | None] = mapped_column(String(50), nullable=True)

    pieces: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    gross_weight: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    purity: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    pure_weight: Mapped[Decimal] = mapped_column(nullable=False)

    remarks: Mapped[str] = mapped_column(String(500), nullable=False, default="")

    entry: Mapped[Entry] = relationship(back_populates="stock_lines")


class EntryCashLine(TrackedBase):
    __tablename__ = "entry_cash_lines"

    entry_id: Mapped[UUID] = mapped_column(
        ForeignKey("entries.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    line_no: Mapped[int] = mapped_column(Integer, nullable=False)

    cash_account_id: Mapped[UUID] = mapped_column(
        ForeignKey("cash_accounts.id"),
        nullable=False,
    )

    currency_code: Mapped[str] = mapped_column(String(3), nullable=False)

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    vat_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    payment_mode: Mapped[str] = mapped_column(String(20), nullable=False, default="cash")

    remarks: Mapped[str] = mapped_column(String(500), nullable=False, default="")

    entry: Mapped[Entry] = relationship(back_populates="cash_lines")
