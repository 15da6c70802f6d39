"""
Posting rule contract.

A rule turns one business event into a PostingPlan.  Rules read nothing but
the event and the PostingContext handed to them (voucher identity, clock
reading, party snapshots), so computing the same pair twice yields equal
plans and a rule can be exercised without a database.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any, Protocol, runtime_checkable

from bullion_kernel.db.types import round_money
from bullion_kernel.domain.plan import PostingContext, PostingPlan


@runtime_checkable
class PostingRule(Protocol):
    """What the RuleRegistry stores: a ``kind`` tag, a ``version`` and a planner."""

    kind: str
    version: int

    def compute_plan(self, event: Any, context: PostingContext) -> PostingPlan: ...


class BasePostingRule(ABC):
    version: int = 1

    @property
    @abstractmethod
    def kind(self) -> str: ...

    @abstractmethod
    def compute_plan(self, event: Any, context: PostingContext) -> PostingPlan:
        """Plan the rows, party deltas and collateral of ``event``."""

    def validate_event(self, event: Any) -> None:
        """Raise ValueError unless ``event`` carries this rule's kind."""
        if event.kind != self.kind:
            raise ValueError(f"{self!r} cannot plan a {event.kind} event")

    @staticmethod
    def money(value: Decimal, context: PostingContext) -> Decimal:
        """Round a cash figure to the configured cash places."""
        return round_money(value, context.cash_decimal_places)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.kind} v{self.version}>"
