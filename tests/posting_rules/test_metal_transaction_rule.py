"""
Tests for the metal transaction posting rule.

Invariants tested:
- Inbound kinds (purchase, sale return) take gold from the party and
  credit it cash; outbound kinds do the opposite.
- Party-side rows net exactly to the party delta.
- No row carries both sides of an axis.
- Import/export kinds post like their base kind.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from bullion_kernel.domain.events import MetalTransactionEvent, MetalTransactionType, StockItem
from bullion_kernel.models.registry import PARTY_SIDE_ROW_TYPES
from bullion_kernel.posting_rules.metal_transaction import (
    MetalTransactionRule,
    resolve_party_currency,
)


def _event(party, transaction_type="sale", currency=None, **item):
    values = {"pure_weight": "100", "total_amount": "1000"}
    values.update(item)
    return MetalTransactionEvent(
        transaction_type=transaction_type,
        party_id=party.id,
        voucher_date=date(2024, 3, 15),
        stock_items=[StockItem(**values)],
        party_currency=currency,
    )


class TestMetalTransactionDeltas:
    """Party balance effects per direction."""

    def test_sale_moves_gold_to_party_and_cash_from_party(self, rules, party, make_context):
        """A sale: party gold +pw, party cash -total in the party currency."""
        plan = rules.compute_plan(_event(party, "sale"), make_context())
        delta = plan.delta_for(party.id)
        assert delta.gold == Decimal("100")
        assert delta.cash == {"AED": Decimal("-1000")}

    def test_purchase_is_the_mirror(self, rules, party, make_context):
        plan = rules.compute_plan(_event(party, "purchase"), make_context())
        delta = plan.delta_for(party.id)
        assert delta.gold == Decimal("-100")
        assert delta.cash == {"AED": Decimal("1000")}

    @pytest.mark.parametrize(
        "transaction_type, gold_sign",
        [
            ("importPurchase", -1),
            ("exportSale", 1),
            ("purchaseReturn", 1),
            ("saleReturn", -1),
            ("exportSaleReturn", -1),
            ("importPurchaseReturn", 1),
        ],
    )
    def test_every_kind_direction(self, rules, party, make_context, transaction_type, gold_sign):
        """Each kind moves party gold in the direction of its base kind."""
        plan = rules.compute_plan(_event(party, transaction_type), make_context())
        assert plan.delta_for(party.id).gold == Decimal("100") * gold_sign

    def test_party_rows_net_to_delta(self, rules, party, make_context):
        plan = rules.compute_plan(
            _event(party, "sale", making_charges="10", vat_amount="5", total_amount="1015"),
            make_context(),
        )
        party_rows = [r for r in plan.rows if r.row_type in PARTY_SIDE_ROW_TYPES]
        assert sum(r.gold_net for r in party_rows) == plan.delta_for(party.id).gold
        assert sum(r.cash_net for r in party_rows) == plan.delta_for(party.id).cash["AED"]

    def test_no_split_rows(self, rules, party, make_context):
        plan = rules.compute_plan(
            _event(party, "purchase", making_charges="10", premium="-3", total_amount="1007"),
            make_context(),
        )
        assert all(row.split_axis() is None for row in plan.rows)


class TestMetalTransactionRows:
    """Row layout of a single stock item."""

    def test_row_order(self, rules, party, make_context):
        """Stock, gold (party then house), cash (party then house), analytics."""
        plan = rules.compute_plan(
            _event(party, "sale", making_charges="10", total_amount="1010"),
            make_context(),
        )
        assert [r.row_type for r in plan.rows] == [
            "STOCK_BALANCE",
            "PARTY_GOLD_BALANCE",
            "GOLD",
            "PARTY_CASH_BALANCE",
            "CASH",
            "GOLD_STOCK",
            "MAKING_CHARGES",
        ]

    def test_zero_total_emits_no_cash_rows(self, rules, party, make_context, rows_by_type):
        plan = rules.compute_plan(_event(party, "sale", total_amount="0"), make_context())
        assert rows_by_type(plan, "PARTY_CASH_BALANCE") == []
        assert plan.delta_for(party.id).cash == {}

    def test_negative_premium_is_discount(self, rules, party, make_context, rows_by_type):
        """A sale discount posts as a debit, opposite the sale's credits."""
        plan = rules.compute_plan(
            _event(party, "sale", premium="-25", total_amount="975"), make_context()
        )
        (discount,) = rows_by_type(plan, "PREMIUM")
        assert discount.description.startswith("Discount - ")
        assert discount.debit == Decimal("25")
        assert discount.credit == Decimal("0")

    def test_positive_premium_follows_direction(self, rules, party, make_context, rows_by_type):
        plan = rules.compute_plan(
            _event(party, "sale", premium="25", total_amount="1025"), make_context()
        )
        (premium,) = rows_by_type(plan, "PREMIUM")
        assert premium.credit == Decimal("25")

    def test_description_names_party(self, rules, party, make_context, rows_by_type):
        plan = rules.compute_plan(_event(party, "purchase"), make_context())
        (gold,) = rows_by_type(plan, "PARTY_GOLD_BALANCE")
        assert gold.description == "Party gold - Purchase from Acme Gold"

    def test_cash_rounded(self, rules, party, make_context, rows_by_type):
        plan = rules.compute_plan(_event(party, "sale", total_amount="10.005"), make_context())
        (cash,) = rows_by_type(plan, "PARTY_CASH_BALANCE")
        assert cash.cash_debit == Decimal("10.01")


class TestMetalTransactionCurrency:
    """Party currency resolution."""

    def test_event_currency_wins(self, rules, party, make_context):
        plan = rules.compute_plan(_event(party, "sale", currency="USD"), make_context())
        assert plan.delta_for(party.id).cash == {"USD": Decimal("-1000")}

    def test_party_default_then_base(self, party, other_party):
        event = _event(party, "sale")
        assert resolve_party_currency(event, party, "AED") == "AED"
        assert resolve_party_currency(event, other_party, "AED") == "USD"
        no_default = type(party)(id=party.id, account_code="X", name="X")
        assert resolve_party_currency(event, no_default, "GBP") == "GBP"


class TestMetalTransactionInventory:
    """Inventory movements are produced only for stock-linked items."""

    def test_no_stock_reference_no_movement(self, rules, party, make_context):
        plan = rules.compute_plan(_event(party, "sale"), make_context())
        assert plan.inventory_movements == ()

    def test_stock_code_produces_movement(self, rules, party, make_context):
        plan = rules.compute_plan(
            _event(party, "purchase", stock_code="GB1KG", gross_weight="110", pieces=2),
            make_context(),
        )
        (movement,) = plan.inventory_movements
        assert movement.direction == 1
        assert movement.gross_weight == Decimal("110")
        assert movement.pieces == 2
        assert movement.stock_code == "GB1KG"

    def test_sale_removes_stock(self, rules, party, make_context):
        plan = rules.compute_plan(
            _event(party, "sale", metal_stock_id=uuid4()), make_context()
        )
        assert plan.inventory_movements[0].direction == -1


class TestMetalTransactionRule:
    def test_kind_mismatch_rejected(self, party, make_context):
        rule = MetalTransactionRule(MetalTransactionType.PURCHASE)
        with pytest.raises(ValueError):
            rule.compute_plan(_event(party, "sale"), make_context())

    def test_deterministic(self, rules, party, make_context):
        """Same event and context, same plan."""
        event = _event(party, "sale", making_charges="10", total_amount="1010")
        context = make_context()
        assert rules.compute_plan(event, context) == rules.compute_plan(event, context)
