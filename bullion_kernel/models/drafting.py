"""
Module: bullion_kernel.models.drafting
Responsibility: ORM persistence for assay drafts numbered through the
    draft-metal voucher module.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - voucher_code is unique.  The allocator numbers drafts by max numeric
      suffix + 1, so deleting a draft never frees a number for reuse below
      the current maximum.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from bullion_kernel.db.base import TrackedBase


class DraftStatus(str, Enum):
    DRAFT = "draft"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"


class Drafting(TrackedBase):
    """An assay draft for one item held for a party."""

    __tablename__ = "draftings"

    voucher_code: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)

    voucher_type: Mapped[str] = mapped_column(String(100), nullable=False)

    prefix: Mapped[str] = mapped_column(String(5), nullable=False)

    voucher_date: Mapped[date] = mapped_column(nullable=False)

    party_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("party_accounts.id"),
        nullable=True,
    )

    stock_code: Mapped[str | None] = mapped_column(String(50), nullable=True)

    gross_weight: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    purity: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    pure_weight: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    certificate_number: Mapped[str | None] = mapped_column(String(100), nullable=True)

    remarks: Mapped[str] = mapped_column(String(500), nullable=False, default="")

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=DraftStatus.DRAFT.value,
    )
