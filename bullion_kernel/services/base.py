"""
BaseService -- abstract base for kernel write services.

Services receive the caller's ``Session`` and ``flush()`` inside it; the
TransactionOrchestrator (or ``PostingEngine.reference_data()``) owns the
commit.  ``_fetch`` is the one place a service loads its own model by id,
optionally under ``SELECT ... FOR UPDATE`` for balance-carrying rows
(party accounts, cash accounts, voucher masters).
"""

from abc import ABC
from typing import Generic, TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from bullion_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Write service over one primary model.

    Non-goals:
        - Does NOT commit or roll back.
        - Does NOT serve report queries; those belong in selectors/.
    """

    model: type[ModelType]

    def __init__(self, session: Session):
        self.session = session

    def _fetch(self, entity_id: UUID, for_update: bool = False) -> ModelType | None:
        query = select(self.model).where(self.model.id == entity_id)
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        return self.session.execute(query).scalar_one_or_none()
