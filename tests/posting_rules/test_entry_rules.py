"""
Tests for metal and cash entry posting rules.

Invariants tested:
- Only approved entries post.
- Receipts credit the party, payments debit it.
- Cash entries move the house cash account by the same signed amount.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

from bullion_kernel.domain.events import EntryCashLine, EntryEvent, EntryStockLine
from bullion_kernel.domain.plan import SourceKind


def _metal(party, entry_type="metal-receipt", status="approved", **line):
    values = {"pure_weight": "25", "gross_weight": "26"}
    values.update(line)
    return EntryEvent(
        entry_type=entry_type,
        party_id=party.id,
        voucher_date=date(2024, 3, 15),
        stock_lines=[EntryStockLine(**values)],
        status=status,
    )


def _cash(party, entry_type="cash-receipt", amount="200", remarks="", **line):
    return EntryEvent(
        entry_type=entry_type,
        party_id=party.id,
        voucher_date=date(2024, 3, 15),
        cash_lines=[EntryCashLine(currency="USD", amount=amount, **line)],
        remarks=remarks,
    )


class TestMetalEntryRule:
    """Metal receipts and payments."""

    def test_receipt_credits_party_gold(self, rules, party, make_context):
        plan = rules.compute_plan(_metal(party), make_context(SourceKind.ENTRY))
        assert plan.delta_for(party.id).gold == Decimal("25")
        assert [r.row_type for r in plan.rows] == [
            "STOCK_BALANCE",
            "PARTY_GOLD_BALANCE",
            "GOLD",
            "GOLD_STOCK",
        ]

    def test_payment_debits_party_gold(self, rules, party, make_context):
        plan = rules.compute_plan(_metal(party, "metal-payment"), make_context(SourceKind.ENTRY))
        assert plan.delta_for(party.id).gold == Decimal("-25")

    def test_unapproved_entry_posts_nothing(self, rules, party, make_context):
        plan = rules.compute_plan(_metal(party, status="draft"), make_context(SourceKind.ENTRY))
        assert plan.is_empty

    def test_stock_line_produces_inventory(self, rules, party, make_context):
        plan = rules.compute_plan(
            _metal(party, "metal-payment", stock_code="GB1KG"), make_context(SourceKind.ENTRY)
        )
        (movement,) = plan.inventory_movements
        assert movement.transaction_type == "metalPayment"
        assert movement.direction == -1


class TestCashEntryRule:
    """Cash and currency receipts and payments."""

    def test_receipt(self, rules, party, make_context, rows_by_type):
        account = uuid4()
        plan = rules.compute_plan(
            _cash(party, cash_account_id=account), make_context(SourceKind.ENTRY)
        )
        assert plan.delta_for(party.id).cash == {"USD": Decimal("200")}
        (movement,) = plan.cash_account_movements
        assert movement.cash_account_id == account
        assert movement.amount == Decimal("200")
        assert movement.note == "Cash receipt"
        (house,) = rows_by_type(plan, "CASH")
        assert house.cash_debit == Decimal("200")

    def test_payment_subtracts_from_account(self, rules, party, make_context):
        plan = rules.compute_plan(
            _cash(party, "cash-payment", cash_account_id=uuid4()), make_context(SourceKind.ENTRY)
        )
        assert plan.delta_for(party.id).cash == {"USD": Decimal("-200")}
        assert plan.cash_account_movements[0].amount == Decimal("-200")
        assert plan.cash_account_movements[0].note == "Cash payment"

    def test_currency_receipt_posts_like_cash_receipt(self, rules, party, make_context):
        plan = rules.compute_plan(
            _cash(party, "currency-receipt", cash_account_id=uuid4()),
            make_context(SourceKind.ENTRY),
        )
        assert plan.delta_for(party.id).cash == {"USD": Decimal("200")}

    def test_vat_row(self, rules, party, make_context, rows_by_type):
        plan = rules.compute_plan(
            _cash(party, cash_account_id=uuid4(), vat_amount="10"),
            make_context(SourceKind.ENTRY),
        )
        (vat,) = rows_by_type(plan, "VAT")
        assert vat.credit == Decimal("10")

    def test_note_prefers_event_remarks(self, rules, party, make_context):
        plan = rules.compute_plan(
            _cash(party, cash_account_id=uuid4(), remarks="March settlement"),
            make_context(SourceKind.ENTRY),
        )
        assert plan.cash_account_movements[0].note == "March settlement"

    def test_note_falls_back_to_line_remarks(self, rules, party, make_context):
        event = EntryEvent(
            entry_type="cash-receipt",
            party_id=party.id,
            voucher_date=date(2024, 3, 15),
            cash_lines=[
                EntryCashLine(
                    cash_account_id=uuid4(), currency="USD", amount="5", remarks="line note"
                )
            ],
        )
        plan = rules.compute_plan(event, make_context(SourceKind.ENTRY))
        assert plan.cash_account_movements[0].note == "line note"
