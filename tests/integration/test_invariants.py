"""
Cross-cutting ledger invariants.

Invariants tested:
- For every party, the sum of its party-side Registry rows per axis equals
  its stored gold and cash balances.
- An update leaves the books equal to a fresh create of the new document.
- No Registry row carries both sides of any axis.
"""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import select

from bullion_kernel.domain.events import (
    EntryCashLine,
    EntryEvent,
    FixingOrder,
    FundTransferEvent,
    MetalTransactionEvent,
    StockItem,
    TransactionFixingEvent,
)
from bullion_kernel.models.registry import RegistryRow
from bullion_kernel.selectors.registry_selector import RegistrySelector

VOUCHER_DATE = date(2024, 3, 15)


def _sale(party_id, pure_weight, total, transaction_type="sale", **item):
    return MetalTransactionEvent(
        transaction_type=transaction_type,
        party_id=party_id,
        voucher_date=VOUCHER_DATE,
        stock_items=[
            StockItem(pure_weight=pure_weight, total_amount=total, **item),
        ],
    )


def _fixing(party_id, fixing_type, pure_weight, price, currency="AED"):
    return TransactionFixingEvent(
        fixing_type=fixing_type,
        party_id=party_id,
        voucher_date=VOUCHER_DATE,
        orders=[FixingOrder(price=price, selected_currency=currency, pure_weight=pure_weight)],
    )


def _reconciles(session_factory, posting_engine, party_id) -> None:
    with session_factory() as session:
        totals = RegistrySelector(session).party_axis_totals(party_id)
    balances = posting_engine.balance_snapshot(party_id)
    assert totals.gold == balances.gold
    for currency in set(totals.cash) | set(balances.cash):
        assert totals.cash_for(currency) == balances.cash_for(currency), currency


@pytest.fixture
def parties(create_party):
    return create_party("C001", "Acme Gold"), create_party("C002", "Beta Bullion")


class TestReconciliation:
    def test_mixed_activity_reconciles(
        self,
        posting_engine,
        session_factory,
        parties,
        create_cash_account,
        test_actor_id,
    ):
        acme, beta = parties
        till = create_cash_account()

        sale = posting_engine.metal_transaction.create(
            _sale(acme.id, "100", "1000", making_charges="25", vat_amount="5"), test_actor_id
        )
        posting_engine.metal_transaction.create(
            _sale(beta.id, "40", "400", "purchase", premium="-3"), test_actor_id
        )
        posting_engine.transaction_fixing.create(
            _fixing(acme.id, "SALE", "60", "800"), test_actor_id
        )
        posting_engine.transaction_fixing.create(
            _fixing(beta.id, "PURCHASE", "15", "150", currency="USD"), test_actor_id
        )
        posting_engine.entry.create(
            EntryEvent(
                entry_type="cash-receipt",
                party_id=acme.id,
                voucher_date=VOUCHER_DATE,
                cash_lines=[
                    EntryCashLine(
                        cash_account_id=till.id, currency="USD", amount="70", vat_amount="3"
                    )
                ],
            ),
            test_actor_id,
        )
        posting_engine.fund_transfer.create(
            FundTransferEvent(
                transfer_type="TRANSFER",
                asset_type="GOLD",
                value="-12.5",
                sending_party_id=acme.id,
                receiving_party_id=beta.id,
                voucher_date=VOUCHER_DATE,
            ),
            test_actor_id,
        )
        posting_engine.fund_transfer.create_opening_balance(
            FundTransferEvent(
                transfer_type="OPENING-BALANCE",
                asset_type="CASH",
                value="250",
                currency="AED",
                receiving_party_id=beta.id,
                voucher_date=date(2024, 1, 1),
            ),
            test_actor_id,
        )
        posting_engine.metal_transaction.update(
            sale.entity_id, _sale(acme.id, "90", "950"), test_actor_id
        )

        _reconciles(session_factory, posting_engine, acme.id)
        _reconciles(session_factory, posting_engine, beta.id)

    def test_no_split_rows(self, posting_engine, session_factory, parties, test_actor_id):
        acme, _ = parties
        posting_engine.metal_transaction.create(
            _sale(acme.id, "10", "100", making_charges="5"), test_actor_id
        )
        posting_engine.transaction_fixing.create(
            _fixing(acme.id, "PURCHASE", "10", "100"), test_actor_id
        )
        with session_factory() as session:
            rows = session.execute(select(RegistryRow)).scalars().all()
        assert rows
        for row in rows:
            assert not (row.debit > 0 and row.credit > 0), row.row_type
            assert not (row.gold_debit > 0 and row.gold_credit > 0), row.row_type
            assert not (row.cash_debit > 0 and row.cash_credit > 0), row.row_type


class TestReverseAndReapply:
    """Update(old -> new) is indistinguishable from create(new)."""

    def _effects(self, session_factory, posting_engine, party_id, entity_id):
        with session_factory() as session:
            rows = RegistrySelector(session).rows_for_source("metal_transaction", entity_id)
        shape = [
            (
                row.row_type,
                row.value,
                row.debit,
                row.credit,
                row.gold_debit,
                row.gold_credit,
                row.cash_debit,
                row.cash_credit,
                row.currency_code,
            )
            for row in rows
        ]
        balances = posting_engine.balance_snapshot(party_id)
        return shape, balances.gold, dict(balances.cash)

    def test_update_matches_fresh_create(
        self, posting_engine, session_factory, parties, test_actor_id
    ):
        acme, beta = parties

        def new_event(party_id):
            return _sale(party_id, "50", "500", making_charges="10")

        created = posting_engine.metal_transaction.create(
            _sale(acme.id, "100", "1000", premium="20"), test_actor_id
        )
        posting_engine.metal_transaction.update(
            created.entity_id, new_event(acme.id), test_actor_id
        )
        fresh = posting_engine.metal_transaction.create(new_event(beta.id), test_actor_id)

        updated_shape, updated_gold, updated_cash = self._effects(
            session_factory, posting_engine, acme.id, created.entity_id
        )
        fresh_shape, fresh_gold, fresh_cash = self._effects(
            session_factory, posting_engine, beta.id, fresh.entity_id
        )
        assert updated_shape == fresh_shape
        assert updated_gold == fresh_gold == Decimal("50")
        assert updated_cash == fresh_cash

    def test_update_to_same_event_is_idempotent(
        self, posting_engine, session_factory, parties, test_actor_id
    ):
        acme, _ = parties
        event = _sale(acme.id, "30", "300")
        created = posting_engine.metal_transaction.create(event, test_actor_id)
        before = self._effects(session_factory, posting_engine, acme.id, created.entity_id)

        posting_engine.metal_transaction.update(created.entity_id, event, test_actor_id)
        posting_engine.metal_transaction.update(created.entity_id, event, test_actor_id)
        assert self._effects(session_factory, posting_engine, acme.id, created.entity_id) == before
