"""
Tests for house cash accounts and metal stock.

Invariants tested:
- Each cash movement changes the balance by its signed amount and writes
  one AccountLog row carrying the balance after the movement.
- Reversals write an adjustment row; the original log stays.
- Inverted inventory movements adjust on-hand quantities without logging.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from bullion_kernel.domain.plan import CashAccountMovement, InventoryMovement, SourceKind, SourceRef
from bullion_kernel.exceptions import (
    CashAccountNotFoundError,
    DuplicateCodeError,
    MetalStockNotFoundError,
    MissingFieldError,
)
from bullion_kernel.models.inventory import InventoryLog
from bullion_kernel.services.cash_account_service import CashAccountService
from bullion_kernel.services.metal_stock_service import MetalStockService


@pytest.fixture
def cash_accounts(session, deterministic_clock):
    return CashAccountService(session, deterministic_clock)


@pytest.fixture
def stocks(session, deterministic_clock):
    return MetalStockService(session, deterministic_clock)


class TestCashAccountService:
    """Cash account creation and movements."""

    def test_create(self, cash_accounts, test_actor_id):
        info = cash_accounts.create(test_actor_id, " Main Till ", "50")
        assert info.name == "Main Till"
        assert info.balance == Decimal("50")
        assert not info.deleted

    def test_blank_name(self, cash_accounts, test_actor_id):
        with pytest.raises(MissingFieldError):
            cash_accounts.create(test_actor_id, "  ")

    def test_duplicate_name(self, cash_accounts, test_actor_id):
        cash_accounts.create(test_actor_id, "Main Till")
        with pytest.raises(DuplicateCodeError):
            cash_accounts.create(test_actor_id, "Main Till")

    def test_unknown_account(self, cash_accounts):
        with pytest.raises(CashAccountNotFoundError):
            cash_accounts.get(uuid4())

    def test_deposit(self, cash_accounts, test_actor_id):
        account = cash_accounts.create(test_actor_id, "Main Till")
        log = cash_accounts.apply_movement(
            CashAccountMovement(
                cash_account_id=account.id,
                amount=Decimal("200"),
                currency_code="USD",
                note="Cash receipt",
            ),
            test_actor_id,
            reference="CE0001",
        )
        assert log.action == "add"
        assert log.transaction_type == "deposit"
        assert log.amount == Decimal("200")
        assert log.balance_after == Decimal("200")
        assert log.reference == "CE0001"
        assert cash_accounts.get(account.id).balance == Decimal("200")

    def test_withdrawal(self, cash_accounts, test_actor_id):
        account = cash_accounts.create(test_actor_id, "Main Till", "500")
        log = cash_accounts.apply_movement(
            CashAccountMovement(
                cash_account_id=account.id, amount=Decimal("-120"), currency_code="AED"
            ),
            test_actor_id,
        )
        assert log.action == "subtract"
        assert log.transaction_type == "withdrawal"
        assert log.amount == Decimal("120")
        assert log.balance_after == Decimal("380")

    def test_reversal_is_adjustment(self, cash_accounts, test_actor_id):
        account = cash_accounts.create(test_actor_id, "Main Till")
        movement = CashAccountMovement(
            cash_account_id=account.id,
            amount=Decimal("200"),
            currency_code="USD",
            note="Cash receipt",
        )
        cash_accounts.apply_movement(movement, test_actor_id)
        reversal = cash_accounts.apply_movement(movement.negated(), test_actor_id)
        assert reversal.transaction_type == "adjustment"
        assert reversal.action == "subtract"
        assert reversal.note == "Reversal: Cash receipt"
        assert reversal.balance_after == Decimal("0")
        assert len(cash_accounts.logs_for(account.id)) == 2


class TestMetalStockService:
    """Metal stock definitions and on-hand movements."""

    def _source(self):
        return SourceRef(kind=SourceKind.METAL_TRANSACTION, id=uuid4(), voucher_number="MP0001")

    def test_create(self, stocks, test_actor_id):
        info = stocks.create(test_actor_id, "gb1kg", "1kg bar", standard_purity="0.9999")
        assert info.code == "GB1KG"
        assert info.standard_purity == Decimal("0.9999")
        assert info.on_hand_pure_weight == Decimal("0")
        assert stocks.get_by_code("GB1KG").id == info.id

    def test_duplicate_code(self, stocks, test_actor_id):
        stocks.create(test_actor_id, "GB1KG")
        with pytest.raises(DuplicateCodeError):
            stocks.create(test_actor_id, "gb1kg")

    def test_movement_adjusts_and_logs(self, session, stocks, test_actor_id):
        info = stocks.create(test_actor_id, "GB1KG")
        source = self._source()
        stocks.apply_movement(
            InventoryMovement(
                transaction_type="purchase",
                direction=1,
                pure_weight=Decimal("100"),
                gross_weight=Decimal("110"),
                pieces=2,
                metal_stock_id=info.id,
            ),
            source,
            date(2024, 3, 15),
            test_actor_id,
        )
        current = stocks.get(info.id)
        assert current.on_hand_pure_weight == Decimal("100")
        assert current.on_hand_gross_weight == Decimal("110")
        assert current.on_hand_pieces == 2

        log = session.execute(select(InventoryLog)).scalar_one()
        assert log.action == "add"
        assert log.voucher_code == "MP0001"
        assert log.source_kind == "metal_transaction"
        assert log.source_id == source.id

    def test_inverted_movement_does_not_log(self, session, stocks, test_actor_id):
        stocks.create(test_actor_id, "GB1KG")
        movement = InventoryMovement(
            transaction_type="sale",
            direction=-1,
            pure_weight=Decimal("10"),
            gross_weight=Decimal("10"),
            stock_code="gb1kg",
        )
        source = self._source()
        stocks.apply_movement(movement, source, None, test_actor_id)
        stocks.apply_movement(movement.negated(), source, None, test_actor_id)
        assert stocks.on_hand("GB1KG") == Decimal("0")
        count = session.execute(select(func.count()).select_from(InventoryLog)).scalar_one()
        assert count == 1

    def test_unknown_stock(self, stocks, test_actor_id):
        with pytest.raises(MetalStockNotFoundError):
            stocks.apply_movement(
                InventoryMovement(
                    transaction_type="sale",
                    direction=-1,
                    pure_weight=Decimal("1"),
                    gross_weight=Decimal("1"),
                    stock_code="NOPE",
                ),
                self._source(),
                None,
                test_actor_id,
            )

    def test_on_hand_unknown_is_zero(self, stocks):
        assert stocks.on_hand("NOPE") == Decimal("0")
