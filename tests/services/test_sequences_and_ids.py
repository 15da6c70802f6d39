"""
Tests for sequence counters, business transaction ids and the journal
pre-checks.
"""

import random
from datetime import date
from decimal import Decimal

import pytest

from bullion_kernel.domain.events import FixingOrder, FixingType, TransactionFixingEvent
from bullion_kernel.domain.plan import RegistryRowSpec
from bullion_kernel.exceptions import SplitRegistryRowError, TransactionIdExhaustedError
from bullion_kernel.services.id_generator import TransactionIdGenerator
from bullion_kernel.services.registry_journal import RegistryJournal, batch_transaction_id
from bullion_kernel.services.sequence_service import SequenceService


class ScriptedRandom:
    """Returns queued integers from randint, then the lower bound."""

    def __init__(self, values):
        self._values = list(values)

    def randint(self, a, b):
        if self._values:
            return self._values.pop(0)
        return a


class TestSequenceService:
    def test_starts_at_one(self, session):
        sequences = SequenceService(session)
        assert sequences.current_value("registry_row") is None
        assert sequences.next_value("registry_row") == 1
        assert sequences.next_value("registry_row") == 2
        assert sequences.current_value("registry_row") == 2

    def test_counters_are_independent(self, session):
        sequences = SequenceService(session)
        sequences.next_value(SequenceService.REGISTRY_ROW)
        sequences.next_value(SequenceService.REGISTRY_ROW)
        assert sequences.next_value(SequenceService.REGISTRY_BATCH) == 1

    def test_reset(self, session):
        sequences = SequenceService(session)
        sequences.reset("custom", 41)
        assert sequences.next_value("custom") == 42
        sequences.reset("custom")
        assert sequences.next_value("custom") == 1

    def test_block_is_consecutive(self, session):
        sequences = SequenceService(session)
        sequences.next_value(SequenceService.REGISTRY_ROW)
        block = sequences.next_block(SequenceService.REGISTRY_ROW, 3)
        assert list(block) == [2, 3, 4]
        assert sequences.next_value(SequenceService.REGISTRY_ROW) == 5

    def test_advance_to_never_lowers(self, session):
        sequences = SequenceService(session)
        assert sequences.advance_to("voucher:metal-sale:sale", 3) == 3
        assert sequences.advance_to("voucher:metal-sale:sale", 2) == 3
        assert sequences.next_value("voucher:metal-sale:sale") == 4

    def test_empty_block_rejected(self, session):
        with pytest.raises(ValueError):
            SequenceService(session).next_block("custom", 0)
        assert SequenceService(session).current_value("custom") is None


class TestTransactionIdGenerator:
    """Random business ids with existence retry."""

    def test_fixing_prefixes(self, session, deterministic_clock):
        ids = TransactionIdGenerator(session, deterministic_clock, ScriptedRandom([12345, 54321]))
        assert ids.fixing_id(FixingType.PURCHASE) == "PUR12345"
        assert ids.fixing_id(FixingType.SALE) == "SEL54321"

    def test_transfer_id_uses_clock_year(self, session, deterministic_clock):
        ids = TransactionIdGenerator(session, deterministic_clock, ScriptedRandom([512]))
        assert ids.transfer_id() == "TXN-2024-512"

    def test_seeded_draws_are_in_range(self, session, deterministic_clock):
        ids = TransactionIdGenerator(session, deterministic_clock, random.Random(99))
        value = ids.fixing_id(FixingType.PURCHASE)
        assert value.startswith("PUR")
        assert 10000 <= int(value[3:]) <= 99999

    def test_taken_id_is_redrawn(
        self, posting_engine, session_factory, create_party, deterministic_clock, test_actor_id
    ):
        party = create_party()
        result = posting_engine.transaction_fixing.create(
            TransactionFixingEvent(
                fixing_type="PURCHASE",
                party_id=party.id,
                voucher_date=date(2024, 3, 15),
                orders=[FixingOrder(price="100", selected_currency="USD", pure_weight="1")],
            ),
            test_actor_id,
        )
        taken = int(result.transaction_id[3:])
        fresh = 10000 if taken != 10000 else 10001

        with session_factory() as session:
            ids = TransactionIdGenerator(
                session, deterministic_clock, ScriptedRandom([taken, taken, fresh])
            )
            assert ids.fixing_id(FixingType.PURCHASE) == f"PUR{fresh}"

            exhausted = TransactionIdGenerator(
                session,
                deterministic_clock,
                ScriptedRandom([taken] * TransactionIdGenerator.MAX_ATTEMPTS),
            )
            with pytest.raises(TransactionIdExhaustedError):
                exhausted.fixing_id(FixingType.PURCHASE)


class TestRegistryJournalChecks:
    def test_batch_transaction_id(self):
        assert batch_transaction_id(2024, 42) == "TXN20240000042"

    def test_split_row_rejected_before_insert(self, session, deterministic_clock):
        sequences = SequenceService(session)
        journal = RegistryJournal(session, deterministic_clock, sequences)
        rows = [
            RegistryRowSpec(
                row_type="GOLD", description="ok", value=Decimal("1"), debit=Decimal("1")
            ),
            RegistryRowSpec(
                row_type="CASH",
                description="split",
                value=Decimal("1"),
                cash_debit=Decimal("1"),
                cash_credit=Decimal("1"),
            ),
        ]
        with pytest.raises(SplitRegistryRowError):
            journal.check_rows(rows)
        assert sequences.current_value(SequenceService.REGISTRY_BATCH) is None

    def test_empty_append_writes_nothing(self, session, deterministic_clock):
        sequences = SequenceService(session)
        journal = RegistryJournal(session, deterministic_clock, sequences)
        assert journal.append([], None, None) == []
        assert sequences.current_value(SequenceService.REGISTRY_BATCH) is None
