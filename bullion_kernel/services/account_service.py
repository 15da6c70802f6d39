"""
Service layer for party accounts.

Creates and reads the counterparties that postings move balances on.
Returns PartyAccountInfo DTOs instead of ORM entities.
"""

import re
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from bullion_kernel.db.types import ZERO, to_decimal, validate_currency
from bullion_kernel.domain.clock import Clock
from bullion_kernel.domain.validation import parse_enum
from bullion_kernel.exceptions import (
    DuplicateCodeError,
    InvalidIdentifierError,
    MissingFieldError,
    PartyNotFoundError,
    RequiredCurrencyMissingError,
    VatNumberRequiredError,
)
from bullion_kernel.logging_config import get_logger
from bullion_kernel.models.account import (
    AccountCurrency,
    AccountStatus,
    CashBalance,
    PartyAccount,
    VatStatus,
)
from bullion_kernel.services.balance_projector import BalanceSnapshot
from bullion_kernel.services.base import BaseService
from bullion_kernel.settings import PostingSettings

logger = get_logger("services.account")

_ACCOUNT_CODE_RE = re.compile(r"^[A-Z0-9_-]+$")
MAX_ACCOUNT_CODE_LENGTH = 10


@dataclass(frozen=True)
class AccountCurrencySpec:
    """One currency of an account definition."""

    currency_code: str
    is_default: bool = False
    purchase_price: Decimal = Decimal("1")
    sell_price: Decimal = Decimal("1")
    convert_rate: Decimal = Decimal("1")


@dataclass(frozen=True)
class PartyAccountInfo:
    id: UUID
    account_code: str
    account_type: str
    customer_name: str
    status: str
    is_active: bool
    vat_status: str
    vat_number: str | None
    default_currency: str | None
    currencies: tuple[str, ...]

    @property
    def can_transact(self) -> bool:
        return self.is_active and self.status == AccountStatus.ACTIVE.value


def normalize_account_code(account_code: str | None) -> str:
    code = (account_code or "").strip().upper()
    if not code:
        raise MissingFieldError("account_code")
    if len(code) > MAX_ACCOUNT_CODE_LENGTH or not _ACCOUNT_CODE_RE.match(code):
        raise InvalidIdentifierError(
            "account_code",
            account_code,
            f"must match {_ACCOUNT_CODE_RE.pattern} and be at most "
            f"{MAX_ACCOUNT_CODE_LENGTH} characters",
        )
    return code


def _currency_spec(value: Any) -> AccountCurrencySpec:
    if isinstance(value, AccountCurrencySpec):
        spec = value
    elif isinstance(value, str):
        spec = AccountCurrencySpec(currency_code=value)
    else:
        spec = AccountCurrencySpec(**value)
    return AccountCurrencySpec(
        currency_code=validate_currency(spec.currency_code),
        is_default=bool(spec.is_default),
        purchase_price=to_decimal(spec.purchase_price, "purchase_price"),
        sell_price=to_decimal(spec.sell_price, "sell_price"),
        convert_rate=to_decimal(spec.convert_rate, "convert_rate"),
    )


class AccountService(BaseService[PartyAccount]):
    """
    Creates, reads and deactivates party accounts.

    Guarantees:
        - Every created account defines the required currencies and has a
          zero cash entry for each of them.
        - At most one currency is flagged as default.
    """

    model = PartyAccount

    def __init__(
        self,
        session: Session,
        clock: Clock,
        settings: PostingSettings | None = None,
    ):
        super().__init__(session)
        self._clock = clock
        self._settings = settings or PostingSettings()

    def _to_dto(self, account: PartyAccount) -> PartyAccountInfo:
        return PartyAccountInfo(
            id=account.id,
            account_code=account.account_code,
            account_type=account.account_type,
            customer_name=account.customer_name,
            status=account.status,
            is_active=account.is_active,
            vat_status=account.vat_status,
            vat_number=account.vat_number,
            default_currency=account.default_currency,
            currencies=tuple(c.currency_code for c in account.currencies),
        )

    def _get(self, party_id: UUID) -> PartyAccount:
        account = self._fetch(party_id)
        if account is None:
            raise PartyNotFoundError(str(party_id))
        return account

    def get(self, party_id: UUID) -> PartyAccountInfo:
        return self._to_dto(self._get(party_id))

    def get_by_code(self, account_code: str) -> PartyAccountInfo:
        code = (account_code or "").strip().upper()
        account = self.session.execute(
            select(PartyAccount).where(PartyAccount.account_code == code)
        ).scalar_one_or_none()
        if account is None:
            raise PartyNotFoundError(code)
        return self._to_dto(account)

    def create_account(
        self,
        actor_id: UUID,
        account_code: str,
        customer_name: str,
        currencies: Sequence[AccountCurrencySpec | dict | str],
        account_type: str = "CUSTOMER",
        vat_status: str = VatStatus.UNREGISTERED.value,
        vat_number: str | None = None,
    ) -> PartyAccountInfo:
        """
        Create a party account with its currency definition.

        Raises:
            InvalidIdentifierError: Malformed account code.
            DuplicateCodeError: Account code already exists.
            RequiredCurrencyMissingError: A required currency is absent.
            VatNumberRequiredError: REGISTERED without a VAT number.
        """
        code = normalize_account_code(account_code)
        if not (customer_name or "").strip():
            raise MissingFieldError("customer_name")

        vat = parse_enum(VatStatus, vat_status, "vat_status", case_insensitive=True)
        if vat == VatStatus.REGISTERED and not (vat_number or "").strip():
            raise VatNumberRequiredError(code)

        specs: list[AccountCurrencySpec] = []
        seen: set[str] = set()
        for raw in currencies:
            spec = _currency_spec(raw)
            if spec.currency_code not in seen:
                seen.add(spec.currency_code)
                specs.append(spec)

        missing = [c for c in self._settings.required_currencies if c not in seen]
        if missing:
            raise RequiredCurrencyMissingError(code, missing)

        existing = self.session.execute(
            select(PartyAccount.id).where(PartyAccount.account_code == code)
        ).first()
        if existing is not None:
            raise DuplicateCodeError("PartyAccount", code)

        default_seen = False
        now = self._clock.now()
        account = PartyAccount(
            account_code=code,
            account_type=account_type,
            customer_name=customer_name.strip(),
            gold_total_grams=ZERO,
            gold_total_value=ZERO,
            vat_status=vat.value,
            vat_number=(vat_number or "").strip() or None,
            status=AccountStatus.ACTIVE.value,
            is_active=True,
            last_balance_update=now,
            created_by_id=actor_id,
        )
        for spec in specs:
            is_default = spec.is_default and not default_seen
            default_seen = default_seen or is_default
            account.currencies.append(
                AccountCurrency(
                    currency_code=spec.currency_code,
                    is_default=is_default,
                    purchase_price=spec.purchase_price,
                    sell_price=spec.sell_price,
                    convert_rate=spec.convert_rate,
                )
            )
            account.cash_balances.append(
                CashBalance(
                    currency_code=spec.currency_code,
                    amount=ZERO,
                    is_default=is_default,
                    last_updated=now,
                )
            )

        self.session.add(account)
        self.session.flush()
        logger.info(
            "party_account_created",
            extra={
                "party_id": str(account.id),
                "account_code": code,
                "currencies": [s.currency_code for s in specs],
            },
        )
        return self._to_dto(account)

    def deactivate(self, party_id: UUID, actor_id: UUID) -> PartyAccountInfo:
        account = self._get(party_id)
        account.is_active = False
        account.status = AccountStatus.INACTIVE.value
        account.mark_updated(actor_id)
        self.session.flush()
        logger.info(
            "party_account_deactivated",
            extra={"party_id": str(party_id), "account_code": account.account_code},
        )
        return self._to_dto(account)

    def balance_snapshot(self, party_id: UUID) -> BalanceSnapshot:
        return BalanceSnapshot.from_account(self._get(party_id))

    def last_balance_update(self, party_id: UUID) -> datetime | None:
        return self._get(party_id).last_balance_update
