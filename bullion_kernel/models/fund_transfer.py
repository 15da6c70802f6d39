"""
Module: bullion_kernel.models.fund_transfer
Responsibility: ORM persistence for party-to-party fund transfers and
    opening balances, cash or gold.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - transaction_id (TXN-YYYY-NNN) and voucher_number are each unique.
    - value is stored signed exactly as submitted; a negative value means
      the roles of sender and receiver are swapped when posting.
    - An OPENING-BALANCE transfer has no sending party.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from bullion_kernel.db.base import TrackedBase


class FundTransfer(TrackedBase):
    """A cash or gold movement between two parties, or an opening balance."""

    __tablename__ = "fund_transfers"

    __table_args__ = (
        UniqueConstraint("transaction_id", name="uq_fund_transfer_transaction_id"),
        UniqueConstraint("voucher_number", name="uq_fund_transfer_voucher"),
        Index("idx_fund_transfer_type_receiver", "transfer_type", "receiving_party_id"),
    )

    transaction_id: Mapped[str] = mapped_column(String(20), nullable=False)

    transfer_type: Mapped[str] = mapped_column(String(20), nullable=False)

    asset_type: Mapped[str] = mapped_column(String(10), nullable=False)

    description: Mapped[str] = mapped_column(String(500), nullable=False, default="")

    receiving_party_id: Mapped[UUID] = mapped_column(
        ForeignKey("party_accounts.id"),
        nullable=False,
    )

    sending_party_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("party_accounts.id"),
        nullable=True,
    )

    value: Mapped[Decimal] = mapped_column(nullable=False)

    currency_code: Mapped[str] = mapped_column(String(3), nullable=False)

    voucher_type: Mapped[str] = mapped_column(String(100), nullable=False)

    voucher_number: Mapped[str] = mapped_column(String(50), nullable=False)

    voucher_date: Mapped[date] = mapped_column(nullable=False)

    transaction_date: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<FundTransfer {self.transaction_id} {self.asset_type} {self.value}>"
