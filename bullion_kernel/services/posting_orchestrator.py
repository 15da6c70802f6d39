"""
TransactionOrchestrator -- transactional reverse-and-reapply for source documents.

Responsibility:
    Runs every create, update, delete, cancel and restore of a business
    document as one atomic unit: resolve parties, allocate the voucher
    number, persist the entity, derive its PostingPlan through the rule
    registry and apply it (balances, cash accounts, inventory, Registry,
    FixingPrice).  Update and delete first apply the inverse of the stored
    entity's plan and retract its Registry rows.

Architecture position:
    Kernel > Services -- imperative shell.  Owns the transaction boundary:
    each attempt opens its own ``session_scope``.  The per-kind persistence
    is delegated to a SourceHandler supplied by the facade services.

Invariants enforced:
    - Atomicity: a failure at any step rolls back every write of the
      attempt, including the voucher sequence bump.
    - Reverse-and-reapply: an update leaves the books equal to a fresh
      create of the new document under the original voucher number.
    - Inversions never consult the BalancePolicy.
    - Retry: IntegrityError and serialization/deadlock/lock failures are
      retried with jittered exponential backoff up to ``max_attempts``.
    - Timeout: an attempt older than ``transaction_timeout_seconds`` at
      commit time is rolled back.

Failure modes:
    - ConcurrentModificationError once the retry budget is exhausted,
      chained to the last WriteConflictError (which wraps the database
      error).
    - DuplicateVoucherNumberError instead when the last failure was a
      voucher-number unique violation.
    - TransactionTimeoutError for the time budget or a PostgreSQL
      statement timeout (SQLSTATE 57014).
    - PersistenceUnavailableError for any other OperationalError.
    - Domain errors propagate unchanged after rollback.

Audit relevance:
    ``posting_started``, ``posting_completed`` (with duration_ms and
    attempts), ``posting_retry`` and ``posting_failed`` are logged under a
    bound LogContext carrying operation, actor and source kind.
"""

import random
import re
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from datetime import date, datetime
from enum import Enum
from typing import Any, Callable, TypeVar
from uuid import UUID

from sqlalchemy import select, text
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session, sessionmaker

from bullion_kernel.db.engine import session_scope
from bullion_kernel.domain.clock import Clock
from bullion_kernel.domain.events import event_parties
from bullion_kernel.domain.plan import PartyView, PostingContext, PostingPlan, SourceKind, SourceRef
from bullion_kernel.exceptions import (
    ConcurrentModificationError,
    DuplicateVoucherNumberError,
    EntityNotFoundError,
    PersistenceUnavailableError,
    TransactionTimeoutError,
    WriteConflictError,
)
from bullion_kernel.logging_config import LogContext, get_logger
from bullion_kernel.posting_rules.registry import PostingRuleRegistry
from bullion_kernel.selectors.registry_selector import RegistrySelector
from bullion_kernel.services.balance_projector import BalancePolicy, BalanceProjector
from bullion_kernel.services.cash_account_service import CashAccountService
from bullion_kernel.services.id_generator import TransactionIdGenerator
from bullion_kernel.services.metal_stock_service import MetalStockService
from bullion_kernel.services.registry_journal import RegistryJournal
from bullion_kernel.services.sequence_service import SequenceService
from bullion_kernel.services.voucher_allocator import VoucherAllocation, VoucherAllocator
from bullion_kernel.services.voucher_config_cache import VoucherConfigProvider
from bullion_kernel.settings import BullionSettings, PostingSettings

logger = get_logger("services.posting_orchestrator")

T = TypeVar("T")

# PostgreSQL SQLSTATEs
_RETRYABLE_PGCODES = frozenset({"40001", "40P01"})
_STATEMENT_TIMEOUT_PGCODE = "57014"
_VOUCHER_KEY = re.compile(r"\(voucher_number\)=\(([^)]*)\)")


class PostingStatus(str, Enum):
    """Outcome of an orchestrated operation."""

    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    CANCELLED = "cancelled"
    RESTORED = "restored"


@dataclass(frozen=True)
class PostingResult:
    """Result of one orchestrated operation."""

    status: PostingStatus
    source_kind: SourceKind
    entity_id: UUID
    voucher_number: str
    transaction_id: str | None = None
    rows_written: int = 0
    rows_retracted: int = 0
    attempts: int = 1


@dataclass
class PostingUnit:
    """The services of one attempt, all bound to the attempt's session."""

    session: Session
    clock: Clock
    settings: PostingSettings
    allocator: VoucherAllocator
    projector: BalanceProjector
    journal: RegistryJournal
    cash_accounts: CashAccountService
    metal_stocks: MetalStockService
    id_generator: TransactionIdGenerator
    selector: RegistrySelector


class SourceHandler(ABC):
    """
    Per-kind persistence hooks used by TransactionOrchestrator.

    Contract:
        ``to_event(persist(...))`` yields an event whose plan equals the
        plan of the submitted event, so reverse-and-reapply is exact.
    """

    source_kind: SourceKind
    entity_name: str
    model: Any

    @abstractmethod
    def voucher_key(self, event: Any) -> str:
        """Key under vouchers.modules[source_kind] naming the voucher module."""

    def voucher_transaction_type(self, event: Any) -> str | None:
        return self.voucher_key(event)

    def find_existing(self, unit: PostingUnit, event: Any) -> Any | None:
        """An entity a create should update instead of duplicating."""
        return None

    def new_transaction_id(self, unit: PostingUnit, event: Any) -> str | None:
        return None

    @abstractmethod
    def persist(
        self,
        unit: PostingUnit,
        event: Any,
        allocation: VoucherAllocation,
        business_id: str | None,
        parties: dict[UUID, PartyView],
        actor_id: UUID,
    ) -> Any:
        """Insert the entity and return it flushed."""

    @abstractmethod
    def replace(
        self,
        unit: PostingUnit,
        entity: Any,
        event: Any,
        parties: dict[UUID, PartyView],
        actor_id: UUID,
    ) -> None:
        """Overwrite the entity's content with ``event``, keeping its voucher."""

    @abstractmethod
    def to_event(self, entity: Any) -> Any:
        """Rebuild the posting event from the stored entity."""

    def load(self, unit: PostingUnit, entity_id: UUID, for_update: bool = True) -> Any:
        query = select(self.model).where(self.model.id == entity_id)
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        entity = unit.session.execute(query).scalar_one_or_none()
        if entity is None:
            raise EntityNotFoundError(self.entity_name, str(entity_id))
        return entity

    def remove(self, unit: PostingUnit, entity: Any) -> None:
        unit.session.delete(entity)
        unit.session.flush()

    def transaction_date(self, unit: PostingUnit, entity: Any) -> datetime:
        return unit.clock.now()

    def business_transaction_id(self, entity: Any) -> str | None:
        return None

    def cancel_entity(self, unit: PostingUnit, entity: Any, actor_id: UUID) -> None:
        raise NotImplementedError(f"{self.entity_name} does not support cancel")

    def restore_entity(self, unit: PostingUnit, entity: Any, actor_id: UUID) -> None:
        raise NotImplementedError(f"{self.entity_name} does not support restore")


def _pgcode(exc: Exception) -> str | None:
    return getattr(getattr(exc, "orig", None), "pgcode", None)


def _is_retryable(exc: OperationalError) -> bool:
    if _pgcode(exc) in _RETRYABLE_PGCODES:
        return True
    return "database is locked" in str(exc.orig or exc).lower()


def _conflict(operation: str, exc: IntegrityError | OperationalError) -> WriteConflictError:
    conflict = WriteConflictError(operation, str(exc.orig or exc))
    conflict.__cause__ = exc
    return conflict


def _voucher_collision(exc: BaseException | None) -> str | None:
    """
    The voucher number of a voucher-number unique violation, "" when the
    driver does not report it, None for any other failure.

    PostgreSQL reports ``Key (voucher_number)=(MS0002)``; SQLite reports
    ``UNIQUE constraint failed: metal_transactions.voucher_number``.
    """
    if not isinstance(exc, IntegrityError):
        return None
    message = str(exc.orig or exc)
    if "voucher_number" not in message:
        return None
    match = _VOUCHER_KEY.search(message)
    return match.group(1) if match else ""


class TransactionOrchestrator:
    """
    Coordinates posting operations inside retried transactions.

    Contract:
        Every public operation commits exactly once on success and leaves
        no trace on failure.

    Non-goals:
        - Does NOT compute rows or deltas (posting rules do).
        - Does NOT validate event payloads (event construction does).
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        clock: Clock,
        config_provider: VoucherConfigProvider,
        rules: PostingRuleRegistry,
        settings: BullionSettings,
        policy: BalancePolicy | None = None,
        sleep: Callable[[float], None] = time.sleep,
        rng: random.Random | None = None,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        self._session_factory = session_factory
        self._clock = clock
        self._provider = config_provider
        self._rules = rules
        self._settings = settings
        self._policy = policy
        self._sleep = sleep
        self._rng = rng or random.Random()
        self._monotonic = monotonic

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def config_provider(self) -> VoucherConfigProvider:
        return self._provider

    # -- transaction runner -------------------------------------------------

    def unit_for(self, session: Session) -> PostingUnit:
        selector = RegistrySelector(session)
        return PostingUnit(
            session=session,
            clock=self._clock,
            settings=self._settings.posting,
            allocator=VoucherAllocator(
                session, self._provider, self._clock, self._settings.vouchers
            ),
            projector=BalanceProjector(session, self._clock, self._policy),
            journal=RegistryJournal(session, self._clock, SequenceService(session), selector),
            cash_accounts=CashAccountService(session, self._clock),
            metal_stocks=MetalStockService(session, self._clock),
            id_generator=TransactionIdGenerator(session, self._clock, self._rng),
            selector=selector,
        )

    def _backoff(self, attempt: int) -> float:
        posting = self._settings.posting
        delay = min(
            posting.retry_max_delay_seconds,
            posting.retry_base_delay_seconds * (2 ** (attempt - 1)),
        )
        return self._rng.uniform(delay / 2, delay)

    def _set_statement_timeout(self, session: Session) -> None:
        if session.get_bind().dialect.name != "postgresql":
            return
        timeout_ms = int(self._settings.posting.transaction_timeout_seconds * 1000)
        session.execute(text(f"SET LOCAL statement_timeout = {timeout_ms}"))

    def _run(self, operation: str, work: Callable[[PostingUnit], T]) -> tuple[T, int]:
        posting = self._settings.posting
        last_error: WriteConflictError | None = None

        for attempt in range(1, posting.max_attempts + 1):
            started = self._monotonic()
            try:
                with session_scope(self._session_factory) as session:
                    self._set_statement_timeout(session)
                    result = work(self.unit_for(session))
                    if self._monotonic() - started > posting.transaction_timeout_seconds:
                        raise TransactionTimeoutError(
                            operation, posting.transaction_timeout_seconds
                        )
                return result, attempt
            except IntegrityError as exc:
                last_error = _conflict(operation, exc)
            except OperationalError as exc:
                if _pgcode(exc) == _STATEMENT_TIMEOUT_PGCODE:
                    raise TransactionTimeoutError(
                        operation, posting.transaction_timeout_seconds
                    ) from exc
                if not _is_retryable(exc):
                    raise PersistenceUnavailableError(operation, str(exc.orig or exc)) from exc
                last_error = _conflict(operation, exc)

            if attempt < posting.max_attempts:
                delay = self._backoff(attempt)
                logger.warning(
                    "posting_retry",
                    extra={
                        "attempt": attempt,
                        "delay_seconds": round(delay, 4),
                        "error": type(last_error.__cause__).__name__,
                    },
                )
                self._sleep(delay)

        voucher_number = _voucher_collision(last_error.__cause__)
        if voucher_number is not None:
            cause = last_error.__cause__
            raise DuplicateVoucherNumberError(operation, voucher_number or None) from cause
        raise ConcurrentModificationError(operation, posting.max_attempts) from last_error

    def run_in_transaction(self, operation: str, work: Callable[[PostingUnit], T]) -> T:
        """Run ``work`` in a retried transaction and return its result."""
        result, _ = self._logged(operation, None, None, work)
        return result

    def _logged(
        self,
        operation: str,
        handler: SourceHandler | None,
        actor_id: UUID | None,
        work: Callable[[PostingUnit], T],
    ) -> tuple[T, int]:
        source_kind = handler.source_kind.value if handler is not None else None
        with LogContext.bind(
            operation=operation,
            actor_id=str(actor_id) if actor_id else None,
            source_kind=source_kind,
        ):
            started = self._monotonic()
            logger.info("posting_started", extra={"operation": operation})
            try:
                result, attempts = self._run(operation, work)
            except Exception as exc:
                logger.error(
                    "posting_failed",
                    extra={
                        "operation": operation,
                        "error_code": getattr(exc, "code", type(exc).__name__),
                        "error": str(exc),
                        "duration_ms": round((self._monotonic() - started) * 1000, 2),
                    },
                )
                raise
            extra = {
                "operation": operation,
                "attempts": attempts,
                "duration_ms": round((self._monotonic() - started) * 1000, 2),
            }
            if isinstance(result, PostingResult):
                extra.update(
                    status=result.status.value,
                    entity_id=str(result.entity_id),
                    voucher_number=result.voucher_number,
                    rows_written=result.rows_written,
                    rows_retracted=result.rows_retracted,
                )
            logger.info("posting_completed", extra=extra)
            return result, attempts

    def _execute(
        self,
        operation: str,
        handler: SourceHandler,
        actor_id: UUID,
        work: Callable[[PostingUnit], PostingResult],
    ) -> PostingResult:
        result, attempts = self._logged(
            f"{handler.source_kind.value}.{operation}", handler, actor_id, work
        )
        return replace(result, attempts=attempts)

    # -- plan helpers ---------------------------------------------------------

    def _parties(
        self, unit: PostingUnit, event: Any, require_active: bool = True
    ) -> dict[UUID, PartyView]:
        return {
            party_id: unit.projector.party_view(party_id, require_active=require_active)
            for party_id in event_parties(event)
        }

    def _plan(
        self,
        unit: PostingUnit,
        event: Any,
        source: SourceRef,
        parties: dict[UUID, PartyView],
        business_id: str | None,
        transaction_date: datetime,
    ) -> PostingPlan:
        context = PostingContext(
            source=source,
            voucher_date=event.voucher_date,
            transaction_date=transaction_date,
            parties=parties,
            base_currency=unit.settings.base_currency,
            cash_decimal_places=unit.settings.cash_decimal_places,
            transaction_id=business_id,
        )
        return self._rules.compute_plan(event, context)

    def _apply(
        self,
        unit: PostingUnit,
        plan: PostingPlan,
        source: SourceRef,
        actor_id: UUID,
        voucher_date: date,
        transaction_date: datetime,
        inverted: bool = False,
    ) -> list:
        unit.journal.check_rows(plan.rows)

        for delta in plan.party_deltas:
            unit.projector.apply(delta, enforce_policy=not inverted)

        entry_id = source.id if source.kind == SourceKind.ENTRY else None
        for movement in plan.cash_account_movements:
            unit.cash_accounts.apply_movement(
                movement, actor_id, reference=source.voucher_number, entry_id=entry_id
            )

        for movement in plan.inventory_movements:
            unit.metal_stocks.apply_movement(movement, source, voucher_date, actor_id)

        rows = unit.journal.append(plan.rows, source, actor_id, transaction_date)
        unit.journal.record_fixing_prices(plan.fixing_prices, source, actor_id, transaction_date)
        return rows

    def _reverse(self, unit: PostingUnit, handler: SourceHandler, entity: Any, actor_id: UUID) -> int:
        """Apply the inverse of the entity's stored plan and retract its rows."""
        stored = handler.to_event(entity)
        source = SourceRef(handler.source_kind, entity.id, entity.voucher_number)
        plan = self._plan(
            unit,
            stored,
            source,
            self._parties(unit, stored, require_active=False),
            handler.business_transaction_id(entity),
            handler.transaction_date(unit, entity),
        )
        self._apply(
            unit,
            plan.inverted(),
            source,
            actor_id,
            stored.voucher_date,
            handler.transaction_date(unit, entity),
            inverted=True,
        )
        return unit.journal.retract_by_source(handler.source_kind, entity.id)

    def _post(
        self, unit: PostingUnit, handler: SourceHandler, entity: Any, actor_id: UUID
    ) -> tuple[str | None, int]:
        """Derive the entity's plan and apply it.  Returns (transaction id, rows)."""
        stored = handler.to_event(entity)
        source = SourceRef(handler.source_kind, entity.id, entity.voucher_number)
        business_id = handler.business_transaction_id(entity)
        when = handler.transaction_date(unit, entity)
        plan = self._plan(unit, stored, source, self._parties(unit, stored), business_id, when)
        rows = self._apply(unit, plan, source, actor_id, stored.voucher_date, when)
        return business_id or (rows[0].transaction_id if rows else None), len(rows)

    # -- operations ------------------------------------------------------------

    def _create_in(
        self, unit: PostingUnit, handler: SourceHandler, event: Any, actor_id: UUID
    ) -> PostingResult:
        parties = self._parties(unit, event)

        existing = handler.find_existing(unit, event)
        if existing is not None:
            return self._update_in(unit, handler, existing.id, event, actor_id)

        module = voucher_module_for(self._settings, handler, event)
        allocation = unit.allocator.allocate(
            module, handler.voucher_transaction_type(event), event.voucher_date
        )
        business_id = handler.new_transaction_id(unit, event)
        entity = handler.persist(unit, event, allocation, business_id, parties, actor_id)

        with LogContext.bind(source_id=str(entity.id), voucher_number=entity.voucher_number):
            transaction_id, written = self._post(unit, handler, entity, actor_id)
        return PostingResult(
            status=PostingStatus.CREATED,
            source_kind=handler.source_kind,
            entity_id=entity.id,
            voucher_number=entity.voucher_number,
            transaction_id=transaction_id,
            rows_written=written,
        )

    def _update_in(
        self,
        unit: PostingUnit,
        handler: SourceHandler,
        entity_id: UUID,
        event: Any,
        actor_id: UUID,
    ) -> PostingResult:
        entity = handler.load(unit, entity_id)
        with LogContext.bind(source_id=str(entity.id), voucher_number=entity.voucher_number):
            retracted = self._reverse(unit, handler, entity, actor_id)
            handler.replace(unit, entity, event, self._parties(unit, event), actor_id)
            unit.session.flush()
            transaction_id, written = self._post(unit, handler, entity, actor_id)
        return PostingResult(
            status=PostingStatus.UPDATED,
            source_kind=handler.source_kind,
            entity_id=entity.id,
            voucher_number=entity.voucher_number,
            transaction_id=transaction_id,
            rows_written=written,
            rows_retracted=retracted,
        )

    def create(self, handler: SourceHandler, event: Any, actor_id: UUID) -> PostingResult:
        return self._execute(
            "create", handler, actor_id,
            lambda unit: self._create_in(unit, handler, event, actor_id),
        )

    def update(
        self, handler: SourceHandler, entity_id: UUID, event: Any, actor_id: UUID
    ) -> PostingResult:
        return self._execute(
            "update", handler, actor_id,
            lambda unit: self._update_in(unit, handler, entity_id, event, actor_id),
        )

    def delete(self, handler: SourceHandler, entity_id: UUID, actor_id: UUID) -> PostingResult:
        def work(unit: PostingUnit) -> PostingResult:
            entity = handler.load(unit, entity_id)
            voucher_number = entity.voucher_number
            business_id = handler.business_transaction_id(entity)
            with LogContext.bind(source_id=str(entity.id), voucher_number=voucher_number):
                retracted = self._reverse(unit, handler, entity, actor_id)
                handler.remove(unit, entity)
            return PostingResult(
                status=PostingStatus.DELETED,
                source_kind=handler.source_kind,
                entity_id=entity_id,
                voucher_number=voucher_number,
                transaction_id=business_id,
                rows_retracted=retracted,
            )

        return self._execute("delete", handler, actor_id, work)

    def cancel(self, handler: SourceHandler, entity_id: UUID, actor_id: UUID) -> PostingResult:
        def work(unit: PostingUnit) -> PostingResult:
            entity = handler.load(unit, entity_id)
            handler.cancel_entity(unit, entity, actor_id)
            unit.session.flush()
            return PostingResult(
                status=PostingStatus.CANCELLED,
                source_kind=handler.source_kind,
                entity_id=entity.id,
                voucher_number=entity.voucher_number,
                transaction_id=handler.business_transaction_id(entity),
            )

        return self._execute("cancel", handler, actor_id, work)

    def restore(self, handler: SourceHandler, entity_id: UUID, actor_id: UUID) -> PostingResult:
        def work(unit: PostingUnit) -> PostingResult:
            entity = handler.load(unit, entity_id)
            handler.restore_entity(unit, entity, actor_id)
            unit.session.flush()
            return PostingResult(
                status=PostingStatus.RESTORED,
                source_kind=handler.source_kind,
                entity_id=entity.id,
                voucher_number=entity.voucher_number,
                transaction_id=handler.business_transaction_id(entity),
            )

        return self._execute("restore", handler, actor_id, work)


def voucher_module_for(settings: BullionSettings, handler: SourceHandler, event: Any) -> str:
    """Voucher module of ``event`` from the configured kind -> module map."""
    return settings.vouchers.module_for(handler.source_kind.value, handler.voucher_key(event))
