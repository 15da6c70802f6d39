"""Fixtures shared by the posting rule tests.  No database involved."""

from datetime import date, datetime, timezone
from uuid import uuid4

import pytest

from bullion_kernel.domain.plan import PartyView, PostingContext, SourceKind, SourceRef
from bullion_kernel.posting_rules.registry import build_default_registry


@pytest.fixture
def party():
    return PartyView(id=uuid4(), account_code="C001", name="Acme Gold", default_currency="AED")


@pytest.fixture
def other_party():
    return PartyView(id=uuid4(), account_code="C002", name="Beta Bullion", default_currency="USD")


@pytest.fixture
def make_context(party, other_party):
    """Build a PostingContext over ``party`` and ``other_party``."""

    def _make(kind: SourceKind = SourceKind.METAL_TRANSACTION, **overrides) -> PostingContext:
        values = dict(
            source=SourceRef(kind=kind, id=uuid4(), voucher_number="TST0001"),
            voucher_date=date(2024, 3, 15),
            transaction_date=datetime(2024, 3, 15, 10, 0, tzinfo=timezone.utc),
            parties={party.id: party, other_party.id: other_party},
        )
        values.update(overrides)
        return PostingContext(**values)

    return _make


@pytest.fixture
def rules():
    return build_default_registry()


def rows_of(plan, row_type):
    return [row for row in plan.rows if row.row_type == row_type]


@pytest.fixture
def rows_by_type():
    return rows_of
