"""
Module: bullion_kernel.selectors.base
Responsibility: Base class for read-only query selectors.  Selectors run
    inside the caller's session, never add, flush or commit, and hand
    back frozen DTOs rather than ORM instances.
Architecture position: Kernel > Selectors.  May import from db/ and models/.
"""

from abc import ABC
from typing import Any, Callable, Generic, TypeVar

from sqlalchemy import ColumnElement, Select, func, select
from sqlalchemy.orm import Session

from bullion_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)
DTO = TypeVar("DTO")


def null_safe_equals(column: Any, value: Any) -> ColumnElement[bool]:
    """``column IS NULL`` for None, else ``column = value``."""
    return column.is_(None) if value is None else column == value


class BaseSelector(ABC, Generic[ModelType]):
    model: type[ModelType]

    def __init__(self, session: Session):
        self.session = session

    def _all(self, query: Select, to_dto: Callable[[ModelType], DTO]) -> list[DTO]:
        return [to_dto(row) for row in self.session.execute(query).scalars()]

    def count(self, *criteria: ColumnElement[bool]) -> int:
        query = select(func.count(self.model.id))
        if criteria:
            query = query.where(*criteria)
        return self.session.execute(query).scalar_one()
