"""
SequenceService -- gap-free counters for the Registry journal.

Two counters drive the journal: ``registry_batch`` numbers each posting
(rendered into the TXN{year}{seq:07d} batch id) and ``registry_row``
orders every row, which is also the order running balances chain in.
The voucher allocator keeps one more counter per (module, transaction
type): the highest voucher sequence ever issued there.
Each counter is one row of ``sequence_counters``, read under
``SELECT ... FOR UPDATE``, so concurrent postings queue on it and a
rolled-back posting hands its numbers back.

The first use of a counter inserts its row.  Two transactions racing on
that insert hit the unique name; the IntegrityError propagates and the
orchestrator's retry finds the row on the next attempt.
"""

from sqlalchemy import String, select
from sqlalchemy.orm import Mapped, Session, mapped_column

from bullion_kernel.db.base import Base
from bullion_kernel.logging_config import get_logger

logger = get_logger("services.sequence")


class SequenceCounter(Base):
    __tablename__ = "sequence_counters"

    name: Mapped[str] = mapped_column(String(100), unique=True)
    current_value: Mapped[int] = mapped_column(default=0)


class SequenceService:
    REGISTRY_ROW = "registry_row"
    REGISTRY_BATCH = "registry_batch"

    def __init__(self, session: Session):
        self._session = session

    def _locked_counter(self, name: str) -> SequenceCounter:
        counter = self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if counter is None:
            counter = SequenceCounter(name=name, current_value=0)
            self._session.add(counter)
            self._session.flush()
        return counter

    def next_block(self, name: str, size: int) -> range:
        """Reserve ``size`` consecutive values under one lock."""
        if size < 1:
            raise ValueError(f"Sequence block size must be positive, got {size}")
        counter = self._locked_counter(name)
        first = counter.current_value + 1
        counter.current_value += size
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": name, "first": first, "last": counter.current_value},
        )
        return range(first, counter.current_value + 1)

    def next_value(self, name: str) -> int:
        return self.next_block(name, 1)[0]

    def advance_to(self, name: str, value: int) -> int:
        """Raise a counter to ``value`` if it is below it; never lowers it."""
        counter = self._locked_counter(name)
        counter.current_value = max(counter.current_value, value)
        self._session.flush()
        return counter.current_value

    def current_value(self, name: str) -> int | None:
        return self._session.execute(
            select(SequenceCounter.current_value).where(SequenceCounter.name == name)
        ).scalar_one_or_none()

    def reset(self, name: str, value: int = 0) -> None:
        """Set a counter outright.  Tests and data repair only."""
        self._locked_counter(name).current_value = value
        self._session.flush()
