"""
PostingEngine -- the wired entrypoint of the bullion posting kernel.

Responsibility:
    Builds the TransactionOrchestrator from settings, a session factory
    and a clock, and exposes one facade per business-event family plus
    the voucher facade.  Reference data (parties, cash accounts, metal
    stock, voucher masters) is maintained through ``reference_data()``.

Architecture position:
    Kernel > Services -- outermost kernel layer.  Adapters (HTTP, batch)
    call this; nothing inside the kernel imports it.

Usage:

    from bullion_kernel.db.engine import get_session_factory, init_engine_from_settings
    from bullion_kernel.services.posting_engine import PostingEngine

    init_engine_from_settings()  # database section of settings.yaml
    engine = PostingEngine(get_session_factory())

    with engine.reference_data() as ref:
        party = ref.accounts.create_account(actor_id, "C001", "Acme", ["USD", "AED"])

    result = engine.metal_transaction.create(event, actor_id)
"""

import random
import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Callable
from uuid import UUID

from sqlalchemy.orm import Session, sessionmaker

from bullion_kernel.db.engine import session_scope
from bullion_kernel.domain.clock import Clock, SystemClock
from bullion_kernel.logging_config import configure_logging
from bullion_kernel.posting_rules.registry import PostingRuleRegistry, build_default_registry
from bullion_kernel.services.account_service import AccountService
from bullion_kernel.services.balance_projector import BalancePolicy, BalanceSnapshot
from bullion_kernel.services.cash_account_service import CashAccountService
from bullion_kernel.services.drafting_service import DraftInfo, DraftingService
from bullion_kernel.services.entry_service import EntryService
from bullion_kernel.services.fund_transfer_service import FundTransferService
from bullion_kernel.services.metal_stock_service import MetalStockService
from bullion_kernel.services.metal_transaction_service import MetalTransactionService
from bullion_kernel.services.posting_orchestrator import TransactionOrchestrator
from bullion_kernel.services.transaction_fixing_service import TransactionFixingService
from bullion_kernel.services.voucher_config_cache import (
    CachingVoucherConfigProvider,
    VoucherConfigProvider,
)
from bullion_kernel.services.voucher_master_service import VoucherMasterService
from bullion_kernel.services.voucher_service import VoucherService
from bullion_kernel.settings import BullionSettings, get_settings


@dataclass
class ReferenceData:
    """Reference-data services bound to one committed session."""

    session: Session
    accounts: AccountService
    cash_accounts: CashAccountService
    metal_stocks: MetalStockService
    voucher_masters: VoucherMasterService


class PostingEngine:
    """
    Facade over every posting operation.

    Contract:
        Each facade call is one atomic, retried transaction; see
        TransactionOrchestrator.

    Non-goals:
        - Does NOT authenticate ``actor_id``; callers pass a trusted id.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        clock: Clock | None = None,
        settings: BullionSettings | None = None,
        config_provider: VoucherConfigProvider | None = None,
        rules: PostingRuleRegistry | None = None,
        policy: BalancePolicy | None = None,
        sleep: Callable[[float], None] = time.sleep,
        rng: random.Random | None = None,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        self._session_factory = session_factory
        self.clock = clock or SystemClock()
        self.settings = settings or get_settings()
        configure_logging(level=self.settings.logging.level)
        self.config_provider = config_provider or CachingVoucherConfigProvider(
            ttl_seconds=self.settings.vouchers.cache_ttl_seconds,
            monotonic=monotonic,
        )
        self.orchestrator = TransactionOrchestrator(
            session_factory,
            self.clock,
            self.config_provider,
            rules or build_default_registry(),
            self.settings,
            policy=policy,
            sleep=sleep,
            rng=rng,
            monotonic=monotonic,
        )

        self.metal_transaction = MetalTransactionService(self.orchestrator)
        self.entry = EntryService(self.orchestrator)
        self.transaction_fixing = TransactionFixingService(self.orchestrator)
        self.fund_transfer = FundTransferService(self.orchestrator)
        self.voucher = VoucherService(self.orchestrator)

    @contextmanager
    def reference_data(self) -> Iterator[ReferenceData]:
        """Reference-data services in one session; commits on clean exit."""
        with session_scope(self._session_factory) as session:
            yield ReferenceData(
                session=session,
                accounts=AccountService(session, self.clock, self.settings.posting),
                cash_accounts=CashAccountService(session, self.clock),
                metal_stocks=MetalStockService(session, self.clock),
                voucher_masters=VoucherMasterService(
                    session, self.clock, self.config_provider
                ),
            )

    def balance_snapshot(self, party_id: UUID) -> BalanceSnapshot:
        return self.orchestrator.run_in_transaction(
            "party.snapshot",
            lambda unit: unit.projector.snapshot(party_id),
        )

    # -- drafts ---------------------------------------------------------------

    def create_draft(
        self,
        actor_id: UUID,
        party_id: UUID | None = None,
        stock_code: str | None = None,
        gross_weight: Decimal | str = Decimal("0"),
        purity: Decimal | str = Decimal("0"),
        voucher_date: date | None = None,
        certificate_number: str | None = None,
        remarks: str = "",
    ) -> DraftInfo:
        return self.orchestrator.run_in_transaction(
            "drafting.create",
            lambda unit: DraftingService(unit.session, unit.clock, unit.allocator).create(
                actor_id,
                party_id=party_id,
                stock_code=stock_code,
                gross_weight=gross_weight,
                purity=purity,
                voucher_date=voucher_date,
                certificate_number=certificate_number,
                remarks=remarks,
            ),
        )

    def delete_draft(self, draft_id: UUID, actor_id: UUID) -> None:
        self.orchestrator.run_in_transaction(
            "drafting.delete",
            lambda unit: DraftingService(unit.session, unit.clock, unit.allocator).delete(
                draft_id, actor_id
            ),
        )
