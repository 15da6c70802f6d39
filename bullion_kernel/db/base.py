"""
Module: bullion_kernel.db.base
Responsibility: Declarative base for every bullion ORM model: uuid4 primary
    keys stored portably as String(36), the column types for gram weights,
    cash amounts and rates, deterministic constraint names, and the audit
    columns shared by every business and reference table.
Architecture position: Kernel > DB.  Imported by models/, services/ and
    selectors/; imports nothing from the kernel.

Invariants enforced:
    - Weights, amounts and rates are Numeric(38, 9).  No float column exists.
    - Constraint and index names follow NAMING_CONVENTION, so PostgreSQL
      and SQLite report the same name for the same violation.
    - Every tracked row records the actor that created it.
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import BigInteger, DateTime, MetaData, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

NAMING_CONVENTION = {
    "ix": "ix_%(table_name)s_%(column_0_N_name)s",
    "uq": "uq_%(table_name)s_%(column_0_N_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class UUIDString(TypeDecorator):
    """UUID stored as its 36-character string; accepts UUIDs or UUID strings."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if not isinstance(value, PyUUID):
            value = PyUUID(str(value))
        return str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else PyUUID(value)


class Base(DeclarativeBase):
    """Root of every model; carries the uuid4 ``id`` primary key."""

    metadata = MetaData(naming_convention=NAMING_CONVENTION)

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(38, 9),
        datetime: DateTime(timezone=True),
        PyUUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[PyUUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.id}>"


class TrackedBase(Base):
    """
    Abstract base with audit columns.

    ``created_at``/``updated_at`` are set by the database; ``created_by_id``
    is required on insert and ``mark_updated`` stamps the last writer.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now()
    )
    created_by_id: Mapped[PyUUID]
    updated_by_id: Mapped[PyUUID | None]

    def mark_updated(self, actor_id: PyUUID) -> None:
        self.updated_by_id = actor_id


UUID = PyUUID
