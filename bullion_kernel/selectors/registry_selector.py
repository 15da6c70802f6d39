"""
Module: bullion_kernel.selectors.registry_selector
Responsibility: Read-only Registry queries: the rows written for one source,
    a party's rows, and the party-axis totals that must reconcile with the
    stored balances.
Architecture position: Kernel > Selectors.  May import from models/ and
    selectors/base.py.

Invariants enforced:
    - Party-axis totals are computed over party-side row types only:
      gold = sum(gold_credit - gold_debit), cash per currency =
      sum(cash_credit - cash_debit).  For a party with no opening state
      these equal the stored balances.

Audit relevance:
    party_axis_totals() is the reconciliation read used by the invariant
    tests and by operational balance checks.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from bullion_kernel.models.registry import (
    PARTY_SIDE_ROW_TYPES,
    SOURCE_BACKREF_COLUMNS,
    RegistryRow,
)
from bullion_kernel.selectors.base import BaseSelector, null_safe_equals

ZERO = Decimal("0")


@dataclass(frozen=True)
class RegistryRowDTO:
    """Immutable view of one Registry row."""

    id: UUID
    seq: int
    transaction_id: str
    transaction_type: str | None
    row_type: str
    description: str
    party_id: UUID | None
    value: Decimal
    debit: Decimal
    credit: Decimal
    gold_debit: Decimal
    gold_credit: Decimal
    cash_debit: Decimal
    cash_credit: Decimal
    currency_code: str | None
    cost_center: str | None
    running_balance: Decimal | None
    previous_balance: Decimal | None
    reference: str
    transaction_date: datetime


@dataclass(frozen=True)
class PartyAxisTotals:
    """Ledger-derived gold and per-currency cash position of a party."""

    party_id: UUID
    gold: Decimal = ZERO
    cash: dict[str, Decimal] = field(default_factory=dict)

    def cash_for(self, currency: str) -> Decimal:
        return self.cash.get(currency, ZERO)


def _to_dto(row: RegistryRow) -> RegistryRowDTO:
    return RegistryRowDTO(
        id=row.id,
        seq=row.seq,
        transaction_id=row.transaction_id,
        transaction_type=row.transaction_type,
        row_type=row.row_type,
        description=row.description,
        party_id=row.party_id,
        value=row.value,
        debit=row.debit,
        credit=row.credit,
        gold_debit=row.gold_debit,
        gold_credit=row.gold_credit,
        cash_debit=row.cash_debit,
        cash_credit=row.cash_credit,
        currency_code=row.currency_code,
        cost_center=row.cost_center,
        running_balance=row.running_balance,
        previous_balance=row.previous_balance,
        reference=row.reference,
        transaction_date=row.transaction_date,
    )


class RegistrySelector(BaseSelector[RegistryRow]):
    """Read-only queries over registry_rows."""

    model = RegistryRow

    def rows_for_source(self, source_kind: str, source_id: UUID) -> list[RegistryRowDTO]:
        """Rows back-referencing one business entity, in journal order."""
        column = getattr(RegistryRow, SOURCE_BACKREF_COLUMNS[str(source_kind)])
        return self._all(
            select(RegistryRow).where(column == source_id).order_by(RegistryRow.seq), _to_dto
        )

    def rows_for_party(
        self,
        party_id: UUID,
        row_types: frozenset[str] | None = None,
    ) -> list[RegistryRowDTO]:
        query = select(RegistryRow).where(RegistryRow.party_id == party_id)
        if row_types is not None:
            query = query.where(RegistryRow.row_type.in_(row_types))
        return self._all(query.order_by(RegistryRow.seq), _to_dto)

    def party_axis_totals(self, party_id: UUID) -> PartyAxisTotals:
        """Sum the party-side rows of ``party_id`` per axis."""
        party_side = RegistryRow.row_type.in_(PARTY_SIDE_ROW_TYPES)

        gold = self.session.execute(
            select(
                func.coalesce(func.sum(RegistryRow.gold_credit), 0)
                - func.coalesce(func.sum(RegistryRow.gold_debit), 0)
            ).where(RegistryRow.party_id == party_id, party_side)
        ).scalar_one()

        cash_rows = self.session.execute(
            select(
                RegistryRow.currency_code,
                func.coalesce(func.sum(RegistryRow.cash_credit), 0),
                func.coalesce(func.sum(RegistryRow.cash_debit), 0),
            )
            .where(
                RegistryRow.party_id == party_id,
                party_side,
                RegistryRow.currency_code.is_not(None),
            )
            .group_by(RegistryRow.currency_code)
        ).all()

        cash = {
            currency: Decimal(str(credit)) - Decimal(str(debit))
            for currency, credit, debit in cash_rows
        }
        return PartyAxisTotals(party_id=party_id, gold=Decimal(str(gold)), cash=cash)

    def latest_running_balance(
        self,
        cost_center: str,
        party_id: UUID | None,
        currency_code: str | None,
    ) -> Decimal | None:
        """Running balance of the latest row for a (cost center, party, currency) key."""
        query = select(RegistryRow.running_balance).where(
            RegistryRow.cost_center == cost_center,
            RegistryRow.running_balance.is_not(None),
            null_safe_equals(RegistryRow.party_id, party_id),
            null_safe_equals(RegistryRow.currency_code, currency_code),
        )
        return self.session.execute(
            query.order_by(RegistryRow.seq.desc()).limit(1)
        ).scalar_one_or_none()
