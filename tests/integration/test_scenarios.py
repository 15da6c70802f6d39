"""
End-to-end posting scenarios through the PostingEngine.

Each scenario drives the public facades against a real database and
checks party balances, Registry rows, cash accounts, inventory and voucher
numbering after every step.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from bullion_kernel.domain.events import (
    EntryCashLine,
    EntryEvent,
    EntryStockLine,
    FixingOrder,
    FundTransferEvent,
    MetalTransactionEvent,
    StockItem,
    TransactionFixingEvent,
)
from bullion_kernel.domain.forex import build_forex_value
from bullion_kernel.exceptions import (
    EntityAlreadyCancelledError,
    EntityNotFoundError,
    InvalidEnumError,
    MetalStockNotFoundError,
    PartyInactiveError,
    PartyNotFoundError,
)
from bullion_kernel.models.cash_account import AccountLog
from bullion_kernel.models.fixing import FixingPrice, TransactionFixing
from bullion_kernel.models.inventory import InventoryLog
from bullion_kernel.models.metal_transaction import MetalTransaction
from bullion_kernel.models.registry import RegistryRow
from bullion_kernel.selectors.registry_selector import RegistrySelector
from bullion_kernel.services.posting_orchestrator import PostingStatus

VOUCHER_DATE = date(2024, 3, 15)


def metal_event(party_id, transaction_type="sale", pure_weight="100", total="1000", **kwargs):
    item_fields = {
        key: kwargs.pop(key) for key in ("stock_code", "metal_stock_id") if key in kwargs
    }
    return MetalTransactionEvent(
        transaction_type=transaction_type,
        party_id=party_id,
        voucher_date=VOUCHER_DATE,
        stock_items=[StockItem(pure_weight=pure_weight, total_amount=total, **item_fields)],
        **kwargs,
    )


def fixing_event(party_id, fixing_type="SALE", **order):
    values = {"price": "800", "selected_currency": "AED", "pure_weight": "60"}
    values.update(order)
    return TransactionFixingEvent(
        fixing_type=fixing_type,
        party_id=party_id,
        voucher_date=VOUCHER_DATE,
        orders=[FixingOrder(**values)],
    )


def cash_entry(party_id, cash_account_id, amount="200", entry_type="cash-receipt", **kwargs):
    return EntryEvent(
        entry_type=entry_type,
        party_id=party_id,
        voucher_date=VOUCHER_DATE,
        cash_lines=[EntryCashLine(cash_account_id=cash_account_id, currency="USD", amount=amount)],
        **kwargs,
    )


@pytest.fixture
def read(session_factory):
    """Run a read-only callable against a fresh session."""

    def _read(fn):
        with session_factory() as session:
            return fn(session)

    return _read


@pytest.fixture
def party(create_party):
    return create_party()


class TestSaleThenFixing:
    """An unfixed sale followed by a sale fixing on the same party."""

    def test_balances_accumulate(self, posting_engine, party, snapshot, test_actor_id):
        sale = posting_engine.metal_transaction.create(metal_event(party.id), test_actor_id)
        assert sale.status == PostingStatus.CREATED
        assert sale.voucher_number == "MS0001"

        after_sale = snapshot(party.id)
        assert after_sale.gold == Decimal("100")
        assert after_sale.cash_for("AED") == Decimal("-1000")

        fixing = posting_engine.transaction_fixing.create(fixing_event(party.id), test_actor_id)
        assert fixing.voucher_number == "SF0001"
        assert fixing.transaction_id.startswith("SEL")

        after_fixing = snapshot(party.id)
        assert after_fixing.gold == Decimal("160")
        assert after_fixing.cash_for("AED") == Decimal("-1800")
        assert after_fixing.cash_for("USD") == Decimal("0")

    def test_rows_carry_voucher_and_batch(self, posting_engine, party, read, test_actor_id):
        sale = posting_engine.metal_transaction.create(metal_event(party.id), test_actor_id)
        rows = read(
            lambda s: RegistrySelector(s).rows_for_source("metal_transaction", sale.entity_id)
        )
        assert len(rows) == sale.rows_written
        assert {row.reference for row in rows} == {"MS0001"}
        assert {row.transaction_id for row in rows} == {sale.transaction_id}
        assert sale.transaction_id.startswith("TXN2024")
        assert [row.seq for row in rows] == sorted(row.seq for row in rows)

    def test_deleting_the_fixing_restores_sale_position(
        self, posting_engine, party, snapshot, read, test_actor_id
    ):
        posting_engine.metal_transaction.create(metal_event(party.id), test_actor_id)
        fixing = posting_engine.transaction_fixing.create(fixing_event(party.id), test_actor_id)
        assert read(lambda s: s.execute(select(func.count(FixingPrice.id))).scalar_one()) == 1

        result = posting_engine.transaction_fixing.delete(fixing.entity_id, test_actor_id)
        assert result.status == PostingStatus.DELETED
        assert result.rows_retracted == fixing.rows_written

        current = snapshot(party.id)
        assert current.gold == Decimal("100")
        assert current.cash_for("AED") == Decimal("-1000")
        assert read(lambda s: s.execute(select(func.count(FixingPrice.id))).scalar_one()) == 0
        assert read(lambda s: s.get(TransactionFixing, fixing.entity_id)) is None


class TestPartyCurrency:
    def test_purchase_posts_in_party_default_currency(
        self, posting_engine, create_party, snapshot, test_actor_id
    ):
        party = create_party(
            "C010",
            "Dollar Trader",
            currencies=[{"currency_code": "USD", "is_default": True}, "AED"],
        )
        result = posting_engine.metal_transaction.create(
            metal_event(party.id, "purchase", total="500"), test_actor_id
        )
        assert result.voucher_number == "MP0001"

        current = snapshot(party.id)
        assert current.gold == Decimal("-100")
        assert current.cash_for("USD") == Decimal("500")
        assert current.cash_for("AED") == Decimal("0")

    def test_explicit_currency_wins(self, posting_engine, party, snapshot, test_actor_id):
        posting_engine.metal_transaction.create(
            metal_event(party.id, party_currency="GBP"), test_actor_id
        )
        current = snapshot(party.id)
        assert current.cash_for("GBP") == Decimal("-1000")
        assert current.cash_for("AED") == Decimal("0")


class TestVoucherNumbering:
    def test_numbering_per_transaction_type(self, posting_engine, party, test_actor_id):
        first = posting_engine.metal_transaction.create(metal_event(party.id), test_actor_id)
        purchase = posting_engine.metal_transaction.create(
            metal_event(party.id, "purchase"), test_actor_id
        )
        second = posting_engine.metal_transaction.create(metal_event(party.id), test_actor_id)
        assert (first.voucher_number, second.voucher_number) == ("MS0001", "MS0002")
        assert purchase.voucher_number == "MP0001"

    def test_no_reuse_after_delete(self, posting_engine, party, test_actor_id):
        first = posting_engine.metal_transaction.create(metal_event(party.id), test_actor_id)
        second = posting_engine.metal_transaction.create(metal_event(party.id), test_actor_id)
        posting_engine.metal_transaction.delete(first.entity_id, test_actor_id)
        third = posting_engine.metal_transaction.create(metal_event(party.id), test_actor_id)
        assert second.voucher_number == "MS0002"
        assert third.voucher_number == "MS0003"

    def test_latest_number_not_reissued_after_its_delete(
        self, posting_engine, party, test_actor_id
    ):
        posting_engine.metal_transaction.create(metal_event(party.id), test_actor_id)
        latest = posting_engine.metal_transaction.create(metal_event(party.id), test_actor_id)
        posting_engine.metal_transaction.delete(latest.entity_id, test_actor_id)

        assert posting_engine.voucher.info("metal-sale", "sale").next_voucher_number == "MS0003"
        again = posting_engine.metal_transaction.create(metal_event(party.id), test_actor_id)
        assert again.voucher_number == "MS0003"

    def test_info_tracks_created_documents(self, posting_engine, party, test_actor_id):
        posting_engine.metal_transaction.create(metal_event(party.id), test_actor_id)
        info = posting_engine.voucher.info("metal-sale", "sale")
        assert info.current_count == 1
        assert info.next_voucher_number == "MS0002"


class TestUpdateAndDelete:
    """Reverse-and-reapply."""

    def test_update_replaces_effects(self, posting_engine, party, snapshot, read, test_actor_id):
        created = posting_engine.metal_transaction.create(metal_event(party.id), test_actor_id)
        updated = posting_engine.metal_transaction.update(
            created.entity_id, metal_event(party.id, pure_weight="50", total="500"), test_actor_id
        )
        assert updated.status == PostingStatus.UPDATED
        assert updated.voucher_number == created.voucher_number
        assert updated.rows_retracted == created.rows_written

        current = snapshot(party.id)
        assert current.gold == Decimal("50")
        assert current.cash_for("AED") == Decimal("-500")

        rows = read(
            lambda s: RegistrySelector(s).rows_for_source("metal_transaction", created.entity_id)
        )
        assert len(rows) == updated.rows_written
        stored = posting_engine.metal_transaction.get(created.entity_id)
        assert stored.total_pure_weight == Decimal("50")

    def test_update_may_change_party(
        self, posting_engine, party, create_party, snapshot, test_actor_id
    ):
        other = create_party("C002", "Other Customer")
        created = posting_engine.metal_transaction.create(metal_event(party.id), test_actor_id)
        posting_engine.metal_transaction.update(
            created.entity_id, metal_event(other.id), test_actor_id
        )
        assert snapshot(party.id).gold == Decimal("0")
        assert snapshot(other.id).gold == Decimal("100")

    def test_delete_zeroes_everything(self, posting_engine, party, snapshot, read, test_actor_id):
        created = posting_engine.metal_transaction.create(metal_event(party.id), test_actor_id)
        result = posting_engine.metal_transaction.delete(created.entity_id, test_actor_id)
        assert result.voucher_number == "MS0001"

        current = snapshot(party.id)
        assert current.gold == Decimal("0")
        assert current.cash_for("AED") == Decimal("0")
        assert read(lambda s: RegistrySelector(s).count()) == 0
        assert (
            read(
                lambda s: RegistrySelector(s).count(
                    RegistryRow.metal_transaction_id == created.entity_id
                )
            )
            == 0
        )
        assert read(lambda s: s.get(MetalTransaction, created.entity_id)) is None

    def test_unknown_entity(self, posting_engine, party, test_actor_id):
        with pytest.raises(EntityNotFoundError):
            posting_engine.metal_transaction.delete(party.id, test_actor_id)


class TestCancel:
    def test_metal_cancel_is_status_only(self, posting_engine, party, snapshot, test_actor_id):
        created = posting_engine.metal_transaction.create(metal_event(party.id), test_actor_id)
        result = posting_engine.metal_transaction.cancel(created.entity_id, test_actor_id)
        assert result.status == PostingStatus.CANCELLED
        assert posting_engine.metal_transaction.get(created.entity_id).status.value == "cancelled"
        assert snapshot(party.id).gold == Decimal("100")

        with pytest.raises(EntityAlreadyCancelledError):
            posting_engine.metal_transaction.cancel(created.entity_id, test_actor_id)

    def test_fixing_cancel_and_restore(self, posting_engine, party, read, test_actor_id):
        created = posting_engine.transaction_fixing.create(fixing_event(party.id), test_actor_id)
        posting_engine.transaction_fixing.cancel(created.entity_id, test_actor_id)
        fixing = read(lambda s: s.get(TransactionFixing, created.entity_id))
        assert fixing.status == "cancelled"
        assert not fixing.is_active

        restored = posting_engine.transaction_fixing.restore(created.entity_id, test_actor_id)
        assert restored.status == PostingStatus.RESTORED
        assert read(lambda s: s.get(TransactionFixing, created.entity_id)).is_active


class TestCashEntries:
    def test_cash_receipt_moves_till_and_party(
        self, posting_engine, party, create_cash_account, snapshot, read, test_actor_id
    ):
        till = create_cash_account()
        result = posting_engine.entry.create(cash_entry(party.id, till.id), test_actor_id)
        assert result.voucher_number == "CE0001"

        assert snapshot(party.id).cash_for("USD") == Decimal("200")
        log = read(lambda s: s.execute(select(AccountLog)).scalar_one())
        assert log.action == "add"
        assert log.transaction_type == "deposit"
        assert log.balance_after == Decimal("200")
        assert log.reference == "CE0001"
        assert log.entry_id == result.entity_id

    def test_cash_payment_and_delete(
        self, posting_engine, party, create_cash_account, snapshot, read, test_actor_id
    ):
        till = create_cash_account(opening_balance="1000")
        result = posting_engine.entry.create(
            cash_entry(party.id, till.id, "300", entry_type="cash-payment"), test_actor_id
        )
        assert snapshot(party.id).cash_for("USD") == Decimal("-300")

        posting_engine.entry.delete(result.entity_id, test_actor_id)
        assert snapshot(party.id).cash_for("USD") == Decimal("0")
        logs = read(lambda s: s.execute(select(AccountLog)).scalars().all())
        assert sorted(log.transaction_type for log in logs) == ["adjustment", "withdrawal"]
        assert min(log.balance_after for log in logs) == Decimal("700")

    def test_draft_entry_posts_nothing_until_approved(
        self, posting_engine, party, create_cash_account, snapshot, test_actor_id
    ):
        till = create_cash_account()
        draft = posting_engine.entry.create(
            cash_entry(party.id, till.id, status="draft"), test_actor_id
        )
        assert draft.rows_written == 0
        assert snapshot(party.id).cash_for("USD") == Decimal("0")

        approved = posting_engine.entry.update(
            draft.entity_id, cash_entry(party.id, till.id), test_actor_id
        )
        assert approved.rows_written > 0
        assert snapshot(party.id).cash_for("USD") == Decimal("200")


class TestMetalEntriesAndInventory:
    def test_metal_receipt_adds_stock(
        self, posting_engine, party, create_metal_stock, snapshot, read, test_actor_id
    ):
        stock = create_metal_stock()
        result = posting_engine.entry.create(
            EntryEvent(
                entry_type="metal-receipt",
                party_id=party.id,
                voucher_date=VOUCHER_DATE,
                stock_lines=[EntryStockLine(pure_weight="25", stock_code="GB1KG")],
            ),
            test_actor_id,
        )
        assert result.voucher_number == "MR0001"
        assert snapshot(party.id).gold == Decimal("25")

        with posting_engine.reference_data() as ref:
            assert ref.metal_stocks.on_hand(stock.code) == Decimal("25")

    def test_purchase_delete_restores_stock(
        self, posting_engine, party, create_metal_stock, read, test_actor_id
    ):
        create_metal_stock()
        created = posting_engine.metal_transaction.create(
            metal_event(party.id, "purchase", stock_code="GB1KG"), test_actor_id
        )
        with posting_engine.reference_data() as ref:
            assert ref.metal_stocks.on_hand("GB1KG") == Decimal("100")

        posting_engine.metal_transaction.delete(created.entity_id, test_actor_id)
        with posting_engine.reference_data() as ref:
            assert ref.metal_stocks.on_hand("GB1KG") == Decimal("0")
        assert read(lambda s: s.execute(select(func.count(InventoryLog.id))).scalar_one()) == 0

    def test_unknown_stock_rolls_back(self, posting_engine, party, snapshot, test_actor_id):
        with pytest.raises(MetalStockNotFoundError):
            posting_engine.metal_transaction.create(
                metal_event(party.id, stock_code="NOPE"), test_actor_id
            )
        assert snapshot(party.id).gold == Decimal("0")
        assert posting_engine.voucher.info("metal-sale", "sale").next_voucher_number == "MS0001"


class TestFixingWithForex:
    def test_purchase_fixing_with_forex_gain(
        self, posting_engine, party, snapshot, read, test_actor_id
    ):
        result = posting_engine.transaction_fixing.create(
            fixing_event(
                party.id,
                "PURCHASE",
                price="100",
                selected_currency="USD",
                pure_weight="10",
                currency_rate="1.02",
                forex=build_forex_value("PURCHASE", "105", "100"),
            ),
            test_actor_id,
        )
        assert result.voucher_number == "PF0001"
        assert result.transaction_id.startswith("PUR")

        current = snapshot(party.id)
        assert current.gold == Decimal("-10")
        assert current.cash_for("USD") == Decimal("102")

        rows = read(
            lambda s: RegistrySelector(s).rows_for_source("transaction_fixing", result.entity_id)
        )
        (fx,) = [row for row in rows if row.row_type == "FX_EXCHANGE"]
        assert fx.credit == Decimal("5")

    def test_forex_survives_update(self, posting_engine, party, read, test_actor_id):
        forex = build_forex_value("PURCHASE", "105", "100")
        created = posting_engine.transaction_fixing.create(
            fixing_event(party.id, "PURCHASE", forex=forex), test_actor_id
        )
        updated = posting_engine.transaction_fixing.update(
            created.entity_id, fixing_event(party.id, "PURCHASE", forex=forex), test_actor_id
        )
        assert updated.transaction_id == created.transaction_id
        rows = read(
            lambda s: RegistrySelector(s).rows_for_source("transaction_fixing", created.entity_id)
        )
        assert len([row for row in rows if row.row_type == "FX_EXCHANGE"]) == 1


class TestTransfers:
    def test_cash_transfer(self, posting_engine, party, create_party, snapshot, test_actor_id):
        other = create_party("C002", "Other Customer")
        result = posting_engine.fund_transfer.create(
            FundTransferEvent(
                transfer_type="TRANSFER",
                asset_type="CASH",
                value="100",
                currency="USD",
                sending_party_id=party.id,
                receiving_party_id=other.id,
                voucher_date=VOUCHER_DATE,
            ),
            test_actor_id,
        )
        assert result.voucher_number == "FT0001"
        assert result.transaction_id.startswith("TXN-2024-")
        assert snapshot(party.id).cash_for("USD") == Decimal("-100")
        assert snapshot(other.id).cash_for("USD") == Decimal("100")

    def test_running_balance_chains(self, posting_engine, party, create_party, read, test_actor_id):
        other = create_party("C002", "Other Customer")
        event = FundTransferEvent(
            transfer_type="TRANSFER",
            asset_type="GOLD",
            value="10",
            sending_party_id=party.id,
            receiving_party_id=other.id,
            voucher_date=VOUCHER_DATE,
        )
        posting_engine.fund_transfer.create(event, test_actor_id)
        posting_engine.fund_transfer.create(event, test_actor_id)

        rows = read(lambda s: RegistrySelector(s).rows_for_party(party.id))
        assert [row.previous_balance for row in rows] == [Decimal("0"), Decimal("-10")]
        assert [row.running_balance for row in rows] == [Decimal("-10"), Decimal("-20")]

    def test_inactive_party_rejected(
        self, posting_engine, party, create_party, snapshot, test_actor_id
    ):
        other = create_party("C002", "Other Customer")
        with posting_engine.reference_data() as ref:
            ref.accounts.deactivate(other.id, test_actor_id)
        with pytest.raises(PartyInactiveError):
            posting_engine.fund_transfer.create(
                FundTransferEvent(
                    transfer_type="TRANSFER",
                    asset_type="GOLD",
                    value="10",
                    sending_party_id=party.id,
                    receiving_party_id=other.id,
                    voucher_date=VOUCHER_DATE,
                ),
                test_actor_id,
            )
        assert snapshot(party.id).gold == Decimal("0")

    def test_unknown_party(self, posting_engine, test_actor_id):
        with pytest.raises(PartyNotFoundError):
            posting_engine.metal_transaction.create(metal_event(uuid4()), test_actor_id)


class TestOpeningBalance:
    def _opening(self, party_id, value):
        return FundTransferEvent(
            transfer_type="OPENING-BALANCE",
            asset_type="GOLD",
            value=value,
            receiving_party_id=party_id,
            voucher_date=date(2024, 1, 1),
        )

    def test_upsert(self, posting_engine, party, snapshot, test_actor_id):
        first = posting_engine.fund_transfer.create_opening_balance(
            self._opening(party.id, "500"), test_actor_id
        )
        assert first.status == PostingStatus.CREATED
        assert first.voucher_number == "OB0001"

        second = posting_engine.fund_transfer.create_opening_balance(
            self._opening(party.id, "-200"), test_actor_id
        )
        assert second.status == PostingStatus.UPDATED
        assert second.entity_id == first.entity_id
        assert second.voucher_number == "OB0001"
        assert snapshot(party.id).gold == Decimal("-200")

    def test_rejects_plain_transfer(self, posting_engine, party, create_party, test_actor_id):
        other = create_party("C002", "Other Customer")
        with pytest.raises(InvalidEnumError):
            posting_engine.fund_transfer.create_opening_balance(
                FundTransferEvent(
                    transfer_type="TRANSFER",
                    asset_type="GOLD",
                    value="1",
                    sending_party_id=party.id,
                    receiving_party_id=other.id,
                    voucher_date=VOUCHER_DATE,
                ),
                test_actor_id,
            )


class TestDrafts:
    def test_draft_numbering(self, posting_engine, party, test_actor_id):
        first = posting_engine.create_draft(
            test_actor_id, party_id=party.id, gross_weight="10", purity="0.9999"
        )
        second = posting_engine.create_draft(test_actor_id)
        assert (first.voucher_code, second.voucher_code) == ("DM0001", "DM0002")
        assert first.pure_weight == Decimal("9.999")

        posting_engine.delete_draft(second.id, test_actor_id)
        assert posting_engine.create_draft(test_actor_id).voucher_code == "DM0003"
