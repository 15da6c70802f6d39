"""
Module: bullion_kernel.models.registry
Responsibility: ORM persistence for the Registry, the append-mostly ledger
    of the posting engine.  Each row is one atom of the double-entry
    projection of a business event.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - No split rows: for each axis pair (debit/credit, gold_debit/
      gold_credit, cash_debit/cash_credit) at most one side is positive.
      Checked by RegistryJournal before insert and by CHECK constraints.
    - Exactly one source back-reference column is set per row.
    - seq is allocated from a locked counter and orders rows globally.
    - Rows are never edited.  They are deleted only by retraction scoped
      to their source back-reference.

Failure modes:
    - IntegrityError on a CHECK violation (split row reaching the database).

Audit relevance:
    Reports read subsets of row_type to build cash, gold, stock and fixing
    views.  running_balance/previous_balance are maintained per
    (cost_center, party, currency) for rows carrying a cost center.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from bullion_kernel.db.base import TrackedBase


class RegistryRowType(str, Enum):
    """Ledger type of a Registry row: the posting purpose, not the event."""

    PARTY_GOLD_BALANCE = "PARTY_GOLD_BALANCE"
    GOLD = "GOLD"
    STOCK_BALANCE = "STOCK_BALANCE"
    PARTY_CASH_BALANCE = "PARTY_CASH_BALANCE"
    CASH = "CASH"
    PARTY_PURCHASE_FIX = "PARTY_PURCHASE_FIX"
    PARTY_SALE_FIX = "PARTY_SALE_FIX"
    PURCHASE_FIXING = "purchase-fixing"
    SALES_FIXING = "sales-fixing"
    FX_EXCHANGE = "FX_EXCHANGE"
    GOLD_STOCK = "GOLD_STOCK"
    MAKING_CHARGES = "MAKING_CHARGES"
    PREMIUM = "PREMIUM"
    OTHER_CHARGES = "OTHER_CHARGES"
    VAT = "VAT"
    OPENING_GOLD_BALANCE = "OPENING_GOLD_BALANCE"
    OPENING_CASH_BALANCE = "OPENING_CASH_BALANCE"


# Rows whose credit - debit equals the party's balance delta
PARTY_SIDE_ROW_TYPES: frozenset[str] = frozenset(
    {
        RegistryRowType.PARTY_GOLD_BALANCE.value,
        RegistryRowType.PARTY_CASH_BALANCE.value,
        RegistryRowType.PARTY_PURCHASE_FIX.value,
        RegistryRowType.PARTY_SALE_FIX.value,
        RegistryRowType.OPENING_GOLD_BALANCE.value,
        RegistryRowType.OPENING_CASH_BALANCE.value,
    }
)

# Source kind -> back-reference column on RegistryRow
SOURCE_BACKREF_COLUMNS: dict[str, str] = {
    "metal_transaction": "metal_transaction_id",
    "entry": "entry_transaction_id",
    "transaction_fixing": "fixing_transaction_id",
    "fund_transfer": "transfer_transaction_id",
}


class RegistryRow(TrackedBase):
    """
    One Registry ledger row.

    Contract:
        value is the unsigned magnitude of the movement.  Axis columns are
        non-negative; direction is expressed by which side is populated.

    Guarantees:
        - transaction_id groups the rows written by one posting
          (TXN{year}{seq:07d}).
        - reference carries the source voucher number for prefix grouping.
    """

    __tablename__ = "registry_rows"

    __table_args__ = (
        UniqueConstraint("seq", name="uq_registry_row_seq"),
        Index("idx_registry_party_date", "party_id", "transaction_date"),
        Index("idx_registry_metal_transaction", "metal_transaction_id"),
        Index("idx_registry_fixing_transaction", "fixing_transaction_id"),
        Index("idx_registry_entry_transaction", "entry_transaction_id"),
        Index("idx_registry_transfer_transaction", "transfer_transaction_id"),
        Index("idx_registry_row_type", "row_type"),
        Index("idx_registry_cost_center", "cost_center", "party_id", "currency_code", "seq"),
        CheckConstraint("NOT (debit > 0 AND credit > 0)", name="ck_registry_no_split_plain"),
        CheckConstraint(
            "NOT (gold_debit > 0 AND gold_credit > 0)", name="ck_registry_no_split_gold"
        ),
        CheckConstraint(
            "NOT (cash_debit > 0 AND cash_credit > 0)", name="ck_registry_no_split_cash"
        ),
    )

    seq: Mapped[int] = mapped_column(nullable=False)

    transaction_id: Mapped[str] = mapped_column(String(30), nullable=False, index=True)

    transaction_type: Mapped[str | None] = mapped_column(String(50), nullable=True)

    metal_transaction_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("metal_transactions.id"),
        nullable=True,
    )

    fixing_transaction_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("transaction_fixings.id"),
        nullable=True,
    )

    entry_transaction_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("entries.id"),
        nullable=True,
    )

    transfer_transaction_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("fund_transfers.id"),
        nullable=True,
    )

    row_type: Mapped[str] = mapped_column(String(30), nullable=False)

    description: Mapped[str] = mapped_column(String(500), nullable=False, default="")

    party_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("party_accounts.id"),
        nullable=True,
    )

    value: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    debit: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    credit: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    gold_debit: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    gold_credit: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    cash_debit: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    cash_credit: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    gold_bid_value: Mapped[Decimal | None] = mapped_column(nullable=True)

    purity: Mapped[Decimal | None] = mapped_column(nullable=True)

    pure_weight: Mapped[Decimal | None] = mapped_column(nullable=True)

    gross_weight: Mapped[Decimal | None] = mapped_column(nullable=True)

    metal_stock_id: Mapped[UUID | None] = mapped_column(nullable=True)

    asset_type: Mapped[str | None] = mapped_column(String(10), nullable=True)

    currency_code: Mapped[str | None] = mapped_column(String(3), nullable=True)

    currency_rate: Mapped[Decimal | None] = mapped_column(Numeric(38, 18), nullable=True)

    cost_center: Mapped[str | None] = mapped_column(String(50), nullable=True)

    running_balance: Mapped[Decimal | None] = mapped_column(nullable=True)

    previous_balance: Mapped[Decimal | None] = mapped_column(nullable=True)

    reference: Mapped[str] = mapped_column(String(50), nullable=False, default="")

    transaction_date: Mapped[datetime] = mapped_column(nullable=False)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="completed")

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    @property
    def is_party_side(self) -> bool:
        return self.row_type in PARTY_SIDE_ROW_TYPES

    def __repr__(self) -> str:
        return f"<RegistryRow #{self.seq} {self.row_type} {self.value}>"
