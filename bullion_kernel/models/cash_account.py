"""
Module: bullion_kernel.models.cash_account
Responsibility: ORM persistence for house cash and bank accounts and their
    append-only movement log.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - AccountLog rows are append-only; amount is an unsigned magnitude and
      the direction lives in action / transaction_type.
    - balance_after equals the cash account's opening_balance immediately
      after the logged movement.

Failure modes:
    - IntegrityError on duplicate account name.

Audit relevance:
    The AccountLog is the movement trail of every cash receipt and payment
    routed through a house account.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from bullion_kernel.db.base import TrackedBase


class AccountLogAction(str, Enum):
    ADD = "add"
    UPDATE = "update"
    DELETE = "delete"
    SUBTRACT = "subtract"


class AccountLogType(str, Enum):
    """Movement classification recorded on each AccountLog row."""

    OPENING = "opening"
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    ADJUSTMENT = "adjustment"
    TRANSFER = "transfer"
    CLOSING = "closing"


class CashAccount(TrackedBase):
    """
    A house cash or bank account referenced by cash entries.

    Contract:
        opening_balance is a running balance despite its name: cash receipts
        add to it and cash payments subtract from it.

    Non-goals:
        - No per-currency vector; the account holds one amount.
    """

    __tablename__ = "cash_accounts"

    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)

    opening_balance: Mapped[Decimal] = mapped_column(
        nullable=False,
        default=Decimal("0"),
    )

    deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    def __repr__(self) -> str:
        return f"<CashAccount {self.name}: {self.opening_balance}>"


class AccountLog(TrackedBase):
    """One movement on a CashAccount."""

    __tablename__ = "account_logs"

    __table_args__ = (
        Index("idx_account_log_account", "cash_account_id", "logged_at"),
    )

    cash_account_id: Mapped[UUID] = mapped_column(
        ForeignKey("cash_accounts.id"),
        nullable=False,
    )

    transaction_type: Mapped[str] = mapped_column(String(20), nullable=False)

    action: Mapped[str] = mapped_column(String(20), nullable=False)

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    balance_after: Mapped[Decimal] = mapped_column(nullable=False)

    reference: Mapped[str] = mapped_column(String(50), nullable=False, default="")

    note: Mapped[str] = mapped_column(String(500), nullable=False, default="")

    # Back-reference to the entry that produced the movement, if any
    entry_id: Mapped[UUID | None] = mapped_column(nullable=True, index=True)

    logged_at: Mapped[datetime] = mapped_column(nullable=False)
