"""
Tests for posting plans (``bullion_kernel.domain.plan``).

Invariants tested:
- PlanBuilder folds every party-side row into that party's delta.
- ``inverted()`` negates deltas and movements and drops rows and
  FixingPrice specs.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from bullion_kernel.domain.plan import (
    BalanceDelta,
    CashAccountMovement,
    FixingPriceSpec,
    InventoryMovement,
    PlanBuilder,
    PostingPlan,
    RegistryRowSpec,
)


def _row(**kwargs) -> RegistryRowSpec:
    values = {"row_type": "PARTY_GOLD_BALANCE", "description": "test", "value": Decimal("1")}
    values.update(kwargs)
    return RegistryRowSpec(**values)


class TestRegistryRowSpec:
    """Tests for row nets and split detection."""

    def test_nets(self):
        row = _row(gold_debit=Decimal("3"), cash_credit=Decimal("10"))
        assert row.gold_net == Decimal("-3")
        assert row.cash_net == Decimal("10")

    def test_single_sided_row_is_not_split(self):
        assert _row(gold_debit=Decimal("3"), cash_credit=Decimal("10")).split_axis() is None

    def test_split_axis_detected(self):
        assert _row(cash_debit=Decimal("1"), cash_credit=Decimal("1")).split_axis() == "cash"
        assert _row(debit=Decimal("1"), credit=Decimal("1")).split_axis() == "plain"


class TestPlanBuilder:
    """Tests for PlanBuilder delta folding."""

    def test_party_rows_fold_into_deltas(self):
        party = uuid4()
        builder = PlanBuilder()
        builder.party_row(_row(party_id=party, gold_credit=Decimal("100")))
        builder.party_row(
            _row(
                row_type="PARTY_CASH_BALANCE",
                party_id=party,
                cash_debit=Decimal("1000"),
                currency_code="AED",
            )
        )
        builder.party_row(_row(party_id=party, gold_debit=Decimal("40")))
        plan = builder.build()

        delta = plan.delta_for(party)
        assert delta.gold == Decimal("60")
        assert delta.cash == {"AED": Decimal("-1000")}
        assert len(plan.rows) == 3

    def test_house_rows_do_not_touch_deltas(self):
        builder = PlanBuilder()
        builder.row(_row(row_type="GOLD", gold_debit=Decimal("5")))
        plan = builder.build()
        assert plan.party_deltas == ()
        assert len(plan.rows) == 1

    def test_row_if_skips_non_positive(self):
        builder = PlanBuilder()
        builder.row_if(Decimal("0"), _row(row_type="VAT_AMOUNT"))
        builder.row_if(Decimal("2"), _row(row_type="MAKING_CHARGES"))
        assert [r.row_type for r in builder.build().rows] == ["MAKING_CHARGES"]

    def test_party_row_requires_party(self):
        with pytest.raises(ValueError):
            PlanBuilder().party_row(_row(gold_credit=Decimal("1")))

    def test_party_cash_row_requires_currency(self):
        with pytest.raises(ValueError):
            PlanBuilder().party_row(_row(party_id=uuid4(), cash_credit=Decimal("1")))

    def test_delta_order_follows_first_touch(self):
        a, b = uuid4(), uuid4()
        builder = PlanBuilder()
        builder.party_row(_row(party_id=b, gold_credit=Decimal("1")))
        builder.party_row(_row(party_id=a, gold_debit=Decimal("1")))
        assert [d.party_id for d in builder.build().party_deltas] == [b, a]


class TestPostingPlan:
    """Tests for plan inversion and lookups."""

    def _plan(self, party):
        return PostingPlan(
            rows=(_row(party_id=party, gold_credit=Decimal("1")),),
            party_deltas=(
                BalanceDelta(party_id=party, gold=Decimal("1"), cash={"USD": Decimal("-5")}),
            ),
            cash_account_movements=(
                CashAccountMovement(cash_account_id=uuid4(), amount=Decimal("5"), currency_code="USD"),
            ),
            fixing_prices=(FixingPriceSpec(transaction_type="SALE-FIXING", rate_in_gram=Decimal("2")),),
            inventory_movements=(
                InventoryMovement(
                    transaction_type="purchase",
                    direction=1,
                    pure_weight=Decimal("1"),
                    gross_weight=Decimal("1"),
                ),
            ),
        )

    def test_inverted(self):
        party = uuid4()
        inverted = self._plan(party).inverted()
        assert inverted.rows == ()
        assert inverted.fixing_prices == ()
        assert inverted.delta_for(party).gold == Decimal("-1")
        assert inverted.delta_for(party).cash == {"USD": Decimal("5")}
        movement = inverted.cash_account_movements[0]
        assert movement.amount == Decimal("-5")
        assert movement.is_reversal
        stock = inverted.inventory_movements[0]
        assert stock.direction == -1
        assert stock.write_log is False

    def test_double_inversion_restores_deltas(self):
        party = uuid4()
        plan = self._plan(party)
        assert plan.inverted().inverted().party_deltas == plan.party_deltas

    def test_delta_for_unknown_party_is_zero(self):
        assert PostingPlan().delta_for(uuid4()).is_zero

    def test_is_empty(self):
        assert PostingPlan().is_empty
        assert not self._plan(uuid4()).is_empty

    def test_delta_currencies_sorted(self):
        delta = BalanceDelta(party_id=uuid4(), cash={"USD": Decimal("1"), "AED": Decimal("2")})
        assert delta.currencies == ("AED", "USD")
