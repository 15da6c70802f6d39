"""
BalanceProjector -- applies signed balance deltas to party accounts.

Responsibility:
    Mechanically applies a BalanceDelta (gold grams plus a per-currency
    cash map) to one party account inside the caller's transaction.
    Posting rules decide the signs; the projector never interprets them.

Architecture position:
    Kernel > Services -- imperative shell.  Called by
    TransactionOrchestrator for every party delta of a plan and of its
    inversion.

Invariants enforced:
    - The party row is locked FOR UPDATE before it is read, so concurrent
      postings against one party serialize on PostgreSQL.
    - Currency coverage: on every touch the cash vector is extended to the
      account-definition currencies plus the delta's currencies.  Missing
      entries are created at zero with is_default=False, then the delta is
      applied.
    - Balances are freely signed.  The BalancePolicy hook may reject a
      resulting balance; inversions never consult it.
    - last_updated of every touched cash entry and last_balance_update of
      the party are refreshed from the injected clock.

Failure modes:
    - PartyNotFoundError for an unknown party id.
    - PartyInactiveError from party_view(require_active=True).
    - CreditLimitExceededError (or any PolicyError) from the policy hook.

Audit relevance:
    Each application is logged as ``balance_applied`` with the delta and
    the resulting balances.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Mapping
from uuid import UUID

from sqlalchemy.orm import Session

from bullion_kernel.db.types import ZERO
from bullion_kernel.domain.clock import Clock
from bullion_kernel.domain.plan import BalanceDelta, PartyView
from bullion_kernel.exceptions import (
    CreditLimitExceededError,
    PartyInactiveError,
    PartyNotFoundError,
)
from bullion_kernel.logging_config import get_logger
from bullion_kernel.models.account import CashBalance, PartyAccount
from bullion_kernel.services.base import BaseService

logger = get_logger("services.balance_projector")


@dataclass(frozen=True)
class BalanceSnapshot:
    """Gold grams and per-currency cash of one party at a point in time."""

    party_id: UUID
    account_code: str
    gold: Decimal
    cash: dict[str, Decimal] = field(default_factory=dict)
    last_balance_update: datetime | None = None

    def cash_for(self, currency: str) -> Decimal:
        return self.cash.get(currency, ZERO)

    @classmethod
    def from_account(cls, account: PartyAccount) -> "BalanceSnapshot":
        return cls(
            party_id=account.id,
            account_code=account.account_code,
            gold=account.gold_total_grams,
            cash={b.currency_code: b.amount for b in account.cash_balances},
            last_balance_update=account.last_balance_update,
        )


class BalancePolicy(ABC):
    """Hook consulted after a delta is applied, before the transaction commits."""

    @abstractmethod
    def check(self, snapshot: BalanceSnapshot, delta: BalanceDelta) -> None:
        """Raise a PolicyError to reject the resulting balances."""


class PermissiveBalancePolicy(BalancePolicy):
    """Negative balances are allowed; nothing is ever rejected."""

    def check(self, snapshot: BalanceSnapshot, delta: BalanceDelta) -> None:
        return None


class CreditLimitPolicy(BalancePolicy):
    """
    Rejects a posting that leaves a party owing more than a limit.

    A negative balance is a receivable.  Only axes the delta moves towards
    the receivable side are checked, so postings that reduce an existing
    overdraft always pass.
    """

    def __init__(
        self,
        gold_limit: Decimal | None = None,
        cash_limits: Mapping[str, Decimal] | None = None,
    ):
        self._gold_limit = gold_limit
        self._cash_limits = dict(cash_limits or {})

    def check(self, snapshot: BalanceSnapshot, delta: BalanceDelta) -> None:
        if self._gold_limit is not None and delta.gold < ZERO:
            if snapshot.gold < -self._gold_limit:
                raise CreditLimitExceededError(
                    snapshot.account_code, "gold", snapshot.gold, self._gold_limit
                )
        for currency, amount in delta.cash.items():
            limit = self._cash_limits.get(currency)
            if limit is None or amount >= ZERO:
                continue
            balance = snapshot.cash_for(currency)
            if balance < -limit:
                raise CreditLimitExceededError(
                    snapshot.account_code, f"cash:{currency}", balance, limit
                )


class BalanceProjector(BaseService[PartyAccount]):
    """
    Applies deltas to party balances.

    Contract:
        ``apply(delta)`` returns the party's balances after the delta.
        The caller's transaction owns commit and rollback.

    Non-goals:
        - Does NOT derive deltas (posting rules do).
        - Does NOT write Registry rows (RegistryJournal does).
    """

    model = PartyAccount

    def __init__(
        self,
        session: Session,
        clock: Clock,
        policy: BalancePolicy | None = None,
    ):
        super().__init__(session)
        self._clock = clock
        self._policy = policy or PermissiveBalancePolicy()

    def lock(self, party_id: UUID) -> PartyAccount:
        account = self._fetch(party_id, for_update=True)
        if account is None:
            raise PartyNotFoundError(str(party_id))
        return account

    def ensure_currencies(
        self,
        party: UUID | PartyAccount,
        currencies: Iterable[str] = (),
    ) -> list[str]:
        """
        Materialize missing cash entries at zero.

        Returns:
            The currency codes that were created.
        """
        account = party if isinstance(party, PartyAccount) else self.lock(party)
        wanted = [c.currency_code for c in account.currencies] + list(currencies)
        existing = {b.currency_code for b in account.cash_balances}
        now = self._clock.now()

        created: list[str] = []
        for currency in wanted:
            if currency in existing:
                continue
            account.cash_balances.append(
                CashBalance(
                    currency_code=currency,
                    amount=ZERO,
                    is_default=False,
                    last_updated=now,
                )
            )
            existing.add(currency)
            created.append(currency)

        if created:
            self.session.flush()
            logger.debug(
                "cash_currencies_materialized",
                extra={"party_id": str(account.id), "currencies": created},
            )
        return created

    def apply(self, delta: BalanceDelta, enforce_policy: bool = True) -> BalanceSnapshot:
        """Apply ``delta`` to its party and return the resulting balances."""
        account = self.lock(delta.party_id)
        self.ensure_currencies(account, delta.currencies)
        now = self._clock.now()

        if delta.gold != ZERO:
            account.gold_total_grams = account.gold_total_grams + delta.gold
            account.gold_last_updated = now

        for currency, amount in delta.cash.items():
            balance = account.cash_balance_for(currency)
            balance.amount = balance.amount + amount
            balance.last_updated = now

        account.last_balance_update = now
        self.session.flush()

        snapshot = BalanceSnapshot.from_account(account)
        if enforce_policy:
            self._policy.check(snapshot, delta)

        logger.info(
            "balance_applied",
            extra={
                "party_id": str(account.id),
                "account_code": account.account_code,
                "gold_delta": str(delta.gold),
                "cash_delta": {c: str(a) for c, a in delta.cash.items()},
                "gold_balance": str(snapshot.gold),
                "enforce_policy": enforce_policy,
            },
        )
        return snapshot

    def snapshot(self, party_id: UUID) -> BalanceSnapshot:
        account = self.session.get(PartyAccount, party_id)
        if account is None:
            raise PartyNotFoundError(str(party_id))
        return BalanceSnapshot.from_account(account)

    def party_view(self, party_id: UUID, require_active: bool = True) -> PartyView:
        """Pre-event snapshot of a party, as handed to posting rules."""
        account = self.session.get(PartyAccount, party_id)
        if account is None:
            raise PartyNotFoundError(str(party_id))
        if require_active and not account.can_transact:
            raise PartyInactiveError(account.account_code)
        return PartyView(
            id=account.id,
            account_code=account.account_code,
            name=account.display_name,
            default_currency=account.default_currency,
            gold_balance=account.gold_total_grams,
            cash_balances={b.currency_code: b.amount for b in account.cash_balances},
        )
