"""Services for the bullion posting kernel (write side)."""

from bullion_kernel.services.account_service import AccountService, PartyAccountInfo
from bullion_kernel.services.balance_projector import (
    BalancePolicy,
    BalanceProjector,
    BalanceSnapshot,
    CreditLimitPolicy,
    PermissiveBalancePolicy,
)
from bullion_kernel.services.cash_account_service import CashAccountService
from bullion_kernel.services.metal_stock_service import MetalStockService
from bullion_kernel.services.posting_engine import PostingEngine, ReferenceData
from bullion_kernel.services.posting_orchestrator import (
    PostingResult,
    PostingStatus,
    TransactionOrchestrator,
)
from bullion_kernel.services.registry_journal import RegistryJournal
from bullion_kernel.services.sequence_service import SequenceService
from bullion_kernel.services.voucher_allocator import VoucherAllocation, VoucherAllocator, VoucherInfo
from bullion_kernel.services.voucher_config_cache import (
    CachingVoucherConfigProvider,
    UncachedVoucherConfigProvider,
    VoucherConfig,
)
from bullion_kernel.services.voucher_master_service import VoucherMasterService

__all__ = [
    "AccountService",
    "BalancePolicy",
    "BalanceProjector",
    "BalanceSnapshot",
    "CachingVoucherConfigProvider",
    "CashAccountService",
    "CreditLimitPolicy",
    "MetalStockService",
    "PartyAccountInfo",
    "PermissiveBalancePolicy",
    "PostingEngine",
    "PostingResult",
    "PostingStatus",
    "ReferenceData",
    "RegistryJournal",
    "SequenceService",
    "TransactionOrchestrator",
    "UncachedVoucherConfigProvider",
    "VoucherAllocation",
    "VoucherAllocator",
    "VoucherConfig",
    "VoucherInfo",
    "VoucherMasterService",
]
