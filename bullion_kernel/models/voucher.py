"""
Module: bullion_kernel.models.voucher
Responsibility: ORM persistence for voucher configuration: one row per
    (module, voucher_type) describing how voucher numbers are rendered.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - (voucher_type, module) is unique (uq_voucher_type_module).
    - prefix is 1-5 uppercase alphanumeric characters (checked by
      VoucherMasterService before insert).
    - sequence is advisory; the authoritative voucher number is the
      rendered string stored on the business entity.

Failure modes:
    - IntegrityError on a duplicate (voucher_type, module).

Audit relevance:
    The allocator locks this row FOR UPDATE while minting a number, so
    concurrent allocations for one module serialize on it.
"""

from enum import Enum

from sqlalchemy import Boolean, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from bullion_kernel.db.base import TrackedBase


class VoucherDateFormat(str, Enum):
    """Supported voucher date renderings."""

    DAY_FIRST = "DD/MM/YYYY"
    MONTH_FIRST = "MM/DD/YYYY"
    ISO = "YYYY-MM-DD"


class VoucherMaster(TrackedBase):
    """
    Voucher numbering configuration for one module.

    Contract:
        Lookup by module is case-insensitive.  Only rows with is_active and
        status "active" are visible to the allocator.

    Guarantees:
        - number_length defaults to 4.
        - date_format is one of VoucherDateFormat.
    """

    __tablename__ = "voucher_masters"

    __table_args__ = (
        UniqueConstraint("voucher_type", "module", name="uq_voucher_type_module"),
    )

    code: Mapped[str | None] = mapped_column(String(50), nullable=True)

    description: Mapped[str] = mapped_column(String(500), nullable=False, default="")

    voucher_type: Mapped[str] = mapped_column(String(100), nullable=False)

    # Stored lowercased; allocator lookups are case-insensitive
    module: Mapped[str] = mapped_column(String(100), nullable=False, index=True)

    prefix: Mapped[str] = mapped_column(String(5), nullable=False)

    number_length: Mapped[int] = mapped_column(Integer, nullable=False, default=4)

    sequence: Mapped[int] = mapped_column(nullable=False, default=1)

    date_format: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=VoucherDateFormat.ISO.value,
    )

    include_date_in_number: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )

    is_auto_increment: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")

    def __repr__(self) -> str:
        return f"<VoucherMaster {self.module}:{self.prefix}>"
