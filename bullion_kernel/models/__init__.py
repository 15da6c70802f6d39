"""Persistence models for the bullion posting kernel."""

from bullion_kernel.models.account import (
    AccountCurrency,
    AccountStatus,
    CashBalance,
    PartyAccount,
    VatStatus,
)
from bullion_kernel.models.cash_account import (
    AccountLog,
    AccountLogAction,
    AccountLogType,
    CashAccount,
)
from bullion_kernel.models.drafting import Drafting, DraftStatus
from bullion_kernel.models.entry import Entry, EntryCashLine, EntryStockLine
from bullion_kernel.models.fixing import (
    FixingOrder,
    FixingPrice,
    FixingStatus,
    TransactionFixing,
)
from bullion_kernel.models.fund_transfer import FundTransfer
from bullion_kernel.models.inventory import InventoryLog, MetalStock
from bullion_kernel.models.metal_transaction import (
    MetalTransaction,
    MetalTransactionItem,
)
from bullion_kernel.models.registry import (
    PARTY_SIDE_ROW_TYPES,
    SOURCE_BACKREF_COLUMNS,
    RegistryRow,
    RegistryRowType,
)
from bullion_kernel.models.voucher import VoucherDateFormat, VoucherMaster

__all__ = [
    "AccountCurrency",
    "AccountLog",
    "AccountLogAction",
    "AccountLogType",
    "AccountStatus",
    "CashAccount",
    "CashBalance",
    "DraftStatus",
    "Drafting",
    "Entry",
    "EntryCashLine",
    "EntryStockLine",
    "FixingOrder",
    "FixingPrice",
    "FixingStatus",
    "FundTransfer",
    "InventoryLog",
    "MetalStock",
    "MetalTransaction",
    "MetalTransactionItem",
    "PARTY_SIDE_ROW_TYPES",
    "PartyAccount",
    "RegistryRow",
    "RegistryRowType",
    "SOURCE_BACKREF_COLUMNS",
    "VatStatus",
    "VoucherDateFormat",
    "VoucherMaster",
]
