"""
Service layer for house cash accounts.

Cash receipts and payments move the referenced cash account's running
balance (stored in ``opening_balance``) and append one AccountLog row per
movement.  Reversals write an ``adjustment`` row instead of deleting the
original log.
"""

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from bullion_kernel.db.types import ZERO, to_decimal
from bullion_kernel.domain.clock import Clock
from bullion_kernel.domain.plan import CashAccountMovement
from bullion_kernel.exceptions import (
    CashAccountNotFoundError,
    DuplicateCodeError,
    MissingFieldError,
)
from bullion_kernel.logging_config import get_logger
from bullion_kernel.models.cash_account import (
    AccountLog,
    AccountLogAction,
    AccountLogType,
    CashAccount,
)
from bullion_kernel.services.base import BaseService

logger = get_logger("services.cash_account")


@dataclass(frozen=True)
class CashAccountInfo:
    id: UUID
    name: str
    balance: Decimal
    deleted: bool


@dataclass(frozen=True)
class AccountLogInfo:
    id: UUID
    cash_account_id: UUID
    transaction_type: str
    action: str
    amount: Decimal
    balance_after: Decimal
    reference: str
    note: str
    entry_id: UUID | None


def _classify(movement: CashAccountMovement) -> tuple[AccountLogAction, AccountLogType]:
    if movement.is_reversal:
        action = AccountLogAction.ADD if movement.amount > ZERO else AccountLogAction.SUBTRACT
        return action, AccountLogType.ADJUSTMENT
    if movement.amount >= ZERO:
        return AccountLogAction.ADD, AccountLogType.DEPOSIT
    return AccountLogAction.SUBTRACT, AccountLogType.WITHDRAWAL


class CashAccountService(BaseService[CashAccount]):
    model = CashAccount

    def __init__(self, session: Session, clock: Clock):
        super().__init__(session)
        self._clock = clock

    def _to_dto(self, account: CashAccount) -> CashAccountInfo:
        return CashAccountInfo(
            id=account.id,
            name=account.name,
            balance=account.opening_balance,
            deleted=account.deleted,
        )

    def create(
        self,
        actor_id: UUID,
        name: str,
        opening_balance: Decimal | str | int = ZERO,
    ) -> CashAccountInfo:
        """
        Create a cash account.

        Raises:
            MissingFieldError: Blank name.
            DuplicateCodeError: Name already taken.
        """
        name = (name or "").strip()
        if not name:
            raise MissingFieldError("name")
        existing = self.session.execute(
            select(CashAccount.id).where(CashAccount.name == name)
        ).first()
        if existing is not None:
            raise DuplicateCodeError("CashAccount", name)

        account = CashAccount(
            name=name,
            opening_balance=to_decimal(opening_balance, "opening_balance"),
            created_by_id=actor_id,
        )
        self.session.add(account)
        self.session.flush()
        logger.info(
            "cash_account_created",
            extra={"cash_account_id": str(account.id), "cash_account_name": name},
        )
        return self._to_dto(account)

    def get(self, cash_account_id: UUID) -> CashAccountInfo:
        account = self._fetch(cash_account_id)
        if account is None or account.deleted:
            raise CashAccountNotFoundError(str(cash_account_id))
        return self._to_dto(account)

    def lock(self, cash_account_id: UUID) -> CashAccount:
        account = self._fetch(cash_account_id, for_update=True)
        if account is None or account.deleted:
            raise CashAccountNotFoundError(str(cash_account_id))
        return account

    def apply_movement(
        self,
        movement: CashAccountMovement,
        actor_id: UUID,
        reference: str = "",
        entry_id: UUID | None = None,
    ) -> AccountLogInfo:
        """Move the account balance by ``movement.amount`` and log it."""
        account = self.lock(movement.cash_account_id)
        account.opening_balance = account.opening_balance + movement.amount
        account.mark_updated(actor_id)

        action, log_type = _classify(movement)
        note = movement.note
        if movement.is_reversal:
            note = f"Reversal: {note}" if note else "Reversal"

        log = AccountLog(
            cash_account_id=account.id,
            transaction_type=log_type.value,
            action=action.value,
            amount=abs(movement.amount),
            balance_after=account.opening_balance,
            reference=reference,
            note=note,
            entry_id=entry_id,
            logged_at=self._clock.now(),
            created_by_id=actor_id,
        )
        self.session.add(log)
        self.session.flush()

        logger.info(
            "cash_account_moved",
            extra={
                "cash_account_id": str(account.id),
                "amount": str(movement.amount),
                "currency": movement.currency_code,
                "balance_after": str(account.opening_balance),
                "log_type": log_type.value,
            },
        )
        return AccountLogInfo(
            id=log.id,
            cash_account_id=log.cash_account_id,
            transaction_type=log.transaction_type,
            action=log.action,
            amount=log.amount,
            balance_after=log.balance_after,
            reference=log.reference,
            note=log.note,
            entry_id=log.entry_id,
        )

    def logs_for(self, cash_account_id: UUID) -> list[AccountLogInfo]:
        logs = self.session.execute(
            select(AccountLog)
            .where(AccountLog.cash_account_id == cash_account_id)
            .order_by(AccountLog.logged_at, AccountLog.created_at)
        ).scalars()
        return [
            AccountLogInfo(
                id=log.id,
                cash_account_id=log.cash_account_id,
                transaction_type=log.transaction_type,
                action=log.action,
                amount=log.amount,
                balance_after=log.balance_after,
                reference=log.reference,
                note=log.note,
                entry_id=log.entry_id,
            )
            for log in logs
        ]
