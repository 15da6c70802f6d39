"""
Module: bullion_kernel.models.account
Responsibility: ORM persistence for party accounts (customers, suppliers,
    banks, internal accounts) and their balance vectors: one signed gold
    balance in grams and one signed cash balance per currency.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - account_code is unique and uppercase (uq_party_account_code).
    - One cash balance row per (account, currency) (uq_cash_balance_currency).
    - One definition row per (account, currency) (uq_account_currency).
    - Sign convention: a positive balance is payable TO the party, a negative
      balance is receivable FROM the party, for gold and cash alike.

Failure modes:
    - IntegrityError on duplicate account_code or duplicate currency rows.

Audit relevance:
    Balances are denormalized projections of the Registry.  The
    BalanceProjector is the only writer of gold_total_grams and the cash
    balance amounts; every write is paired with Registry rows in the same
    transaction.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bullion_kernel.db.base import Base, TrackedBase


class AccountStatus(str, Enum):
    """Party account lifecycle status."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"


class VatStatus(str, Enum):
    REGISTERED = "REGISTERED"
    UNREGISTERED = "UNREGISTERED"
    EXEMPTED = "EXEMPTED"


class PartyAccount(TrackedBase):
    """
    A counterparty with a gold balance and a per-currency cash vector.

    Contract:
        account_code identifies the party to users; id identifies it to the
        ledger.  Balances change only through the BalanceProjector.

    Guarantees:
        - gold_total_grams defaults to zero and is freely signed.
        - cash_balances holds at most one row per currency.
        - currencies (the account definition) lists the allowed currencies
          with their purchase/sell/convert rates and one default.

    Non-goals:
        - gold_total_value is a valuation cache, never authoritative.
        - No credit limit is enforced here; see BalancePolicy.
    """

    __tablename__ = "party_accounts"

    __table_args__ = (
        UniqueConstraint("account_code", name="uq_party_account_code"),
        Index("idx_party_account_type", "account_type"),
        Index("idx_party_account_active", "is_active"),
    )

    account_code: Mapped[str] = mapped_column(String(10), nullable=False)

    account_type: Mapped[str] = mapped_column(String(50), nullable=False)

    customer_name: Mapped[str] = mapped_column(String(255), nullable=False)

    gold_total_grams: Mapped[Decimal] = mapped_column(
        nullable=False,
        default=Decimal("0"),
    )

    gold_total_value: Mapped[Decimal] = mapped_column(
        nullable=False,
        default=Decimal("0"),
    )

    gold_last_updated: Mapped[datetime | None] = mapped_column(nullable=True)

    last_balance_update: Mapped[datetime | None] = mapped_column(nullable=True)

    vat_status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=VatStatus.UNREGISTERED.value,
    )

    vat_number: Mapped[str | None] = mapped_column(String(50), nullable=True)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=AccountStatus.ACTIVE.value,
    )

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    currencies: Mapped[list["AccountCurrency"]] = relationship(
        back_populates="account",
        cascade="all, delete-orphan",
        order_by="AccountCurrency.currency_code",
    )

    cash_balances: Mapped[list["CashBalance"]] = relationship(
        back_populates="account",
        cascade="all, delete-orphan",
        order_by="CashBalance.currency_code",
    )

    @property
    def display_name(self) -> str:
        return self.customer_name or self.account_code

    @property
    def default_currency(self) -> str | None:
        """Currency flagged as default in the account definition, if any."""
        for currency in self.currencies:
            if currency.is_default:
                return currency.currency_code
        return None

    @property
    def can_transact(self) -> bool:
        return self.is_active and self.status == AccountStatus.ACTIVE.value

    def cash_balance_for(self, currency_code: str) -> "CashBalance | None":
        for balance in self.cash_balances:
            if balance.currency_code == currency_code:
                return balance
        return None

    def __repr__(self) -> str:
        return f"<PartyAccount {self.account_code}: {self.customer_name}>"


class AccountCurrency(Base):
    """One allowed currency in a party's account definition."""

    __tablename__ = "account_currencies"

    __table_args__ = (
        UniqueConstraint("account_id", "currency_code", name="uq_account_currency"),
    )

    account_id: Mapped[UUID] = mapped_column(
        ForeignKey("party_accounts.id", ondelete="CASCADE"),
        nullable=False,
    )

    currency_code: Mapped[str] = mapped_column(String(3), nullable=False)

    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    purchase_price: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("1"))

    sell_price: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("1"))

    convert_rate: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("1"))

    account: Mapped[PartyAccount] = relationship(back_populates="currencies")


class CashBalance(Base):
    """Signed cash balance of one party in one currency."""

    __tablename__ = "account_cash_balances"

    __table_args__ = (
        UniqueConstraint("account_id", "currency_code", name="uq_cash_balance_currency"),
    )

    account_id: Mapped[UUID] = mapped_column(
        ForeignKey("party_accounts.id", ondelete="CASCADE"),
        nullable=False,
    )

    currency_code: Mapped[str] = mapped_column(String(3), nullable=False)

    amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    last_updated: Mapped[datetime | None] = mapped_column(nullable=True)

    account: Mapped[PartyAccount] = relationship(back_populates="cash_balances")

    def __repr__(self) -> str:
        return f"<CashBalance {self.currency_code}={self.amount}>"
