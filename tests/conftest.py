"""
Shared fixtures.

Tests run against in-memory SQLite unless DATABASE_URL names another
database (PostgreSQL in CI).  Every test gets fresh tables, a clock pinned
to 2024-03-15 10:00 UTC, a seeded RNG, retries that never sleep, and a
voucher master for each numbered module.
"""

import json
import logging
import os
import random
from datetime import datetime, timezone
from typing import Iterator
from uuid import UUID, uuid4

import pytest
from sqlalchemy.orm import Session

from bullion_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from bullion_kernel.domain.clock import DeterministicClock
from bullion_kernel.logging_config import (
    ROOT_LOGGER,
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from bullion_kernel.services.posting_engine import PostingEngine
from bullion_kernel.settings import load_settings

TEST_ACTOR_ID = uuid4()

VOUCHER_MODULES = {
    "metal-purchase": ("Metal Purchase", "MP"),
    "metal-sale": ("Metal Sale", "MS"),
    "purchase-return": ("Purchase Return", "PR"),
    "sales-return": ("Sales Return", "SR"),
    "metal-receipt": ("Metal Receipt", "MR"),
    "metal-payment": ("Metal Payment", "MPY"),
    "entry": ("Cash Entry", "CE"),
    "currency-receipt": ("Currency Receipt", "CR"),
    "purchase-fixing": ("Purchase Fixing", "PF"),
    "sales-fixing": ("Sales Fixing", "SF"),
    "transfer": ("Fund Transfer", "FT"),
    "opening-balance": ("Opening Balance", "OB"),
    "draft-metal": ("Draft Metal", "DM"),
}


class _JsonCapture(logging.Handler):
    """Keeps every record as the dict StructuredFormatter would emit."""

    def __init__(self):
        super().__init__(level=logging.DEBUG)
        self.setFormatter(StructuredFormatter())
        self.records: list[dict] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(json.loads(self.format(record)))


# -- logging ------------------------------------------------------------------


@pytest.fixture(autouse=True, scope="session")
def _suite_logging():
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _fresh_log_context():
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Call the fixture to get the kernel's records so far, as parsed JSON::

        assert "posting_completed" in [r["message"] for r in captured_logs()]
    """
    capture = _JsonCapture()
    kernel_logger = logging.getLogger(ROOT_LOGGER)
    level = kernel_logger.level
    kernel_logger.setLevel(logging.DEBUG)
    kernel_logger.addHandler(capture)
    yield lambda: list(capture.records)
    kernel_logger.removeHandler(capture)
    kernel_logger.setLevel(level)


# -- database -----------------------------------------------------------------


@pytest.fixture(scope="session")
def db_engine():
    engine = init_engine_from_url(os.environ.get("DATABASE_URL", "sqlite:///:memory:"))
    yield engine
    reset_engine()


@pytest.fixture
def session_factory(db_engine):
    drop_tables()
    create_tables()
    yield get_session_factory()
    drop_tables()


@pytest.fixture
def session(session_factory) -> Iterator[Session]:
    """A bare session for service tests.  Rolled back, never committed."""
    sess = session_factory()
    try:
        yield sess
    finally:
        sess.rollback()
        sess.close()


@pytest.fixture
def test_actor_id() -> UUID:
    return TEST_ACTOR_ID


@pytest.fixture
def deterministic_clock():
    return DeterministicClock(datetime(2024, 3, 15, 10, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def test_settings():
    """Packaged defaults, isolated from the caller's environment."""
    return load_settings(env={})


# =============================================================================
# Engine and factories
# =============================================================================


@pytest.fixture
def posting_engine(session_factory, deterministic_clock, test_settings, seed_voucher_masters):
    """A PostingEngine with no retry sleeps and a seeded RNG."""
    return seed_voucher_masters(
        PostingEngine(
            session_factory,
            clock=deterministic_clock,
            settings=test_settings,
            sleep=lambda seconds: None,
            rng=random.Random(1234),
        )
    )


@pytest.fixture
def seed_voucher_masters(test_actor_id):
    """Create a voucher master for every module the kernel numbers."""

    def _seed(engine: PostingEngine) -> PostingEngine:
        with engine.reference_data() as ref:
            for module, (voucher_type, prefix) in VOUCHER_MODULES.items():
                ref.voucher_masters.create(
                    test_actor_id,
                    voucher_type=voucher_type,
                    module=module,
                    prefix=prefix,
                )
        return engine

    return _seed


@pytest.fixture
def create_party(posting_engine, test_actor_id):
    """Factory for party accounts holding USD and AED."""

    def _create(
        account_code: str = "C001",
        customer_name: str = "Test Customer",
        currencies=("USD", "AED"),
        **kwargs,
    ):
        with posting_engine.reference_data() as ref:
            return ref.accounts.create_account(
                test_actor_id, account_code, customer_name, list(currencies), **kwargs
            )

    return _create


@pytest.fixture
def create_cash_account(posting_engine, test_actor_id):
    def _create(name: str = "Main Till", opening_balance="0"):
        with posting_engine.reference_data() as ref:
            return ref.cash_accounts.create(test_actor_id, name, opening_balance)

    return _create


@pytest.fixture
def create_metal_stock(posting_engine, test_actor_id):
    def _create(code: str = "GB1KG", description: str = "1kg gold bar", **kwargs):
        with posting_engine.reference_data() as ref:
            return ref.metal_stocks.create(test_actor_id, code, description, **kwargs)

    return _create


@pytest.fixture
def snapshot(posting_engine):
    """Shortcut for the current balance snapshot of a party."""

    def _snapshot(party_id: UUID):
        return posting_engine.balance_snapshot(party_id)

    return _snapshot
