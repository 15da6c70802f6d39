"""
Pure domain layer.

Event variants, posting-plan value objects and rendering helpers with NO
dependencies on the ORM, the database or I/O.  All domain objects are
immutable and deterministic.
"""

from bullion_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from bullion_kernel.domain.events import (
    AssetType,
    EntryCashLine,
    EntryEvent,
    EntryStatus,
    EntryStockLine,
    EntryType,
    FixingOrder,
    FixingType,
    FundTransferEvent,
    MetalTransactionEvent,
    MetalTransactionStatus,
    MetalTransactionType,
    PostingEvent,
    StockItem,
    TransactionFixingEvent,
    TransferType,
)
from bullion_kernel.domain.forex import ForexValue, build_forex_value
from bullion_kernel.domain.plan import (
    BalanceDelta,
    CashAccountMovement,
    FixingPriceSpec,
    InventoryMovement,
    PartyView,
    PlanBuilder,
    PostingContext,
    PostingPlan,
    RegistryRowSpec,
    SourceKind,
    SourceRef,
)

__all__ = [
    "AssetType",
    "BalanceDelta",
    "CashAccountMovement",
    "Clock",
    "DeterministicClock",
    "EntryCashLine",
    "EntryEvent",
    "EntryStatus",
    "EntryStockLine",
    "EntryType",
    "FixingOrder",
    "FixingPriceSpec",
    "FixingType",
    "ForexValue",
    "FundTransferEvent",
    "InventoryMovement",
    "MetalTransactionEvent",
    "MetalTransactionStatus",
    "MetalTransactionType",
    "PartyView",
    "PlanBuilder",
    "PostingContext",
    "PostingEvent",
    "PostingPlan",
    "RegistryRowSpec",
    "SourceKind",
    "SourceRef",
    "StockItem",
    "SystemClock",
    "TransactionFixingEvent",
    "TransferType",
    "build_forex_value",
]
