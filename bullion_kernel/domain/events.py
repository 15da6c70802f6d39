"""
Events -- tagged business-event variants consumed by the posting engine.

Responsibility:
    One frozen dataclass per business-event family (metal transaction,
    entry, transaction fixing, fund transfer).  Each instance exposes a
    ``kind`` tag that selects its posting rule; field-presence checks that
    a shape-dispatched payload would need are replaced by construction-time
    validation here.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  Imported by
    posting_rules/ and services/.

Invariants enforced:
    - Numbers are Decimal.  Non-finite or non-numeric input raises
      InvalidNumberError before any mutation.
    - An entry carries stock lines (metal kinds) or cash lines (cash
      kinds), never both (InvalidEntryPayloadError).
    - A fund transfer value is never zero; a TRANSFER needs a sending party.
    - Every fixing order resolves an effective weight (MissingWeightError).

Failure modes:
    - ValidationError subclasses naming the offending field.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from bullion_kernel.db.types import ZERO, optional_decimal, to_decimal, validate_currency
from bullion_kernel.domain.forex import ForexValue
from bullion_kernel.domain.validation import (
    non_negative,
    optional_currency,
    optional_non_negative,
    optional_uuid,
    parse_enum,
    positive,
    positive_price,
    require,
    require_uuid,
)
from bullion_kernel.exceptions import (
    InvalidEntryPayloadError,
    InvalidGoldBidError,
    InvalidTransferValueError,
    MissingFieldError,
    MissingWeightError,
)

ONE = Decimal("1")


# =============================================================================
# Tags
# =============================================================================


class MetalTransactionType(str, Enum):
    """The eight metal transaction kinds."""

    PURCHASE = "purchase"
    SALE = "sale"
    PURCHASE_RETURN = "purchaseReturn"
    SALE_RETURN = "saleReturn"
    EXPORT_SALE = "exportSale"
    IMPORT_PURCHASE = "importPurchase"
    EXPORT_SALE_RETURN = "exportSaleReturn"
    IMPORT_PURCHASE_RETURN = "importPurchaseReturn"

    @property
    def base(self) -> "MetalTransactionType":
        """The kind this one posts like (import/export collapse to their base)."""
        return _METAL_BASE[self]

    @property
    def stock_inbound(self) -> bool:
        """True when metal enters our stock: purchases and sale returns."""
        return self.base in (MetalTransactionType.PURCHASE, MetalTransactionType.SALE_RETURN)

    @property
    def is_return(self) -> bool:
        return self.base in (
            MetalTransactionType.PURCHASE_RETURN,
            MetalTransactionType.SALE_RETURN,
        )


_METAL_BASE = {
    MetalTransactionType.PURCHASE: MetalTransactionType.PURCHASE,
    MetalTransactionType.IMPORT_PURCHASE: MetalTransactionType.PURCHASE,
    MetalTransactionType.SALE: MetalTransactionType.SALE,
    MetalTransactionType.EXPORT_SALE: MetalTransactionType.SALE,
    MetalTransactionType.PURCHASE_RETURN: MetalTransactionType.PURCHASE_RETURN,
    MetalTransactionType.IMPORT_PURCHASE_RETURN: MetalTransactionType.PURCHASE_RETURN,
    MetalTransactionType.SALE_RETURN: MetalTransactionType.SALE_RETURN,
    MetalTransactionType.EXPORT_SALE_RETURN: MetalTransactionType.SALE_RETURN,
}


class MetalTransactionStatus(str, Enum):
    DRAFT = "draft"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class EntryType(str, Enum):
    METAL_RECEIPT = "metal-receipt"
    METAL_PAYMENT = "metal-payment"
    CASH_RECEIPT = "cash-receipt"
    CASH_PAYMENT = "cash-payment"
    CURRENCY_RECEIPT = "currency-receipt"

    @property
    def is_metal(self) -> bool:
        return self in (EntryType.METAL_RECEIPT, EntryType.METAL_PAYMENT)

    @property
    def is_receipt(self) -> bool:
        return self in (
            EntryType.METAL_RECEIPT,
            EntryType.CASH_RECEIPT,
            EntryType.CURRENCY_RECEIPT,
        )


class EntryStatus(str, Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    CANCELLED = "cancelled"


class FixingType(str, Enum):
    PURCHASE = "PURCHASE"
    SALE = "SALE"


class TransferType(str, Enum):
    TRANSFER = "TRANSFER"
    OPENING_BALANCE = "OPENING-BALANCE"


class AssetType(str, Enum):
    CASH = "CASH"
    GOLD = "GOLD"


# =============================================================================
# Metal transactions
# =============================================================================


@dataclass(frozen=True)
class StockItem:
    """
    One stock line of a metal transaction.  Amounts are in party currency.

    ``total_amount`` defaults to base + making + premium + other + VAT;
    when only the total is given, ``base_amount`` is back-derived from it.
    A negative premium is a discount.  ``gross_weight`` defaults to the
    pure weight.
    """

    pure_weight: Decimal
    gross_weight: Decimal | None = None
    purity: Decimal = ZERO
    metal_stock_id: UUID | None = None
    stock_code: str | None = None
    description: str = ""
    pieces: int = 0
    metal_rate: Decimal = ZERO
    bid_value: Decimal = ZERO
    base_amount: Decimal | None = None
    making_charges: Decimal = ZERO
    premium: Decimal = ZERO
    other_charges: Decimal = ZERO
    vat_percentage: Decimal = ZERO
    vat_amount: Decimal = ZERO
    total_amount: Decimal | None = None

    def __post_init__(self) -> None:
        pure = positive(self.pure_weight, "pure_weight")
        object.__setattr__(self, "pure_weight", pure)
        gross = optional_non_negative(self.gross_weight, "gross_weight")
        object.__setattr__(self, "gross_weight", pure if gross is None else gross)
        object.__setattr__(self, "purity", non_negative(self.purity, "purity"))
        object.__setattr__(self, "metal_stock_id", optional_uuid(self.metal_stock_id, "metal_stock_id"))
        object.__setattr__(self, "pieces", int(self.pieces or 0))
        object.__setattr__(self, "metal_rate", non_negative(self.metal_rate, "metal_rate"))
        object.__setattr__(self, "bid_value", non_negative(self.bid_value, "bid_value"))
        for name in ("making_charges", "other_charges", "vat_percentage", "vat_amount"):
            object.__setattr__(self, name, non_negative(getattr(self, name), name))
        object.__setattr__(self, "premium", to_decimal(self.premium, "premium"))

        charges = self.making_charges + self.premium + self.other_charges + self.vat_amount
        base = optional_non_negative(self.base_amount, "base_amount")
        total = optional_non_negative(self.total_amount, "total_amount")
        if base is None and total is None:
            raise MissingFieldError("total_amount")
        if total is None:
            total = base + charges
        if base is None:
            base = total - charges
        object.__setattr__(self, "base_amount", base)
        object.__setattr__(self, "total_amount", total)


@dataclass(frozen=True)
class MetalTransactionEvent:
    """A purchase, sale, return, import or export of metal against one party."""

    transaction_type: MetalTransactionType
    party_id: UUID
    voucher_date: date
    stock_items: tuple[StockItem, ...]
    party_currency: str | None = None
    party_currency_rate: Decimal = ONE
    voucher_type: str | None = None
    fixed: bool = False
    status: MetalTransactionStatus = MetalTransactionStatus.CONFIRMED
    remarks: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "transaction_type",
            parse_enum(MetalTransactionType, self.transaction_type, "transaction_type"),
        )
        object.__setattr__(self, "party_id", require_uuid(self.party_id, "party_id"))
        require(self.voucher_date, "voucher_date")
        if not self.stock_items:
            raise MissingFieldError("stock_items")
        object.__setattr__(self, "stock_items", tuple(self.stock_items))
        object.__setattr__(self, "party_currency", optional_currency(self.party_currency))
        object.__setattr__(
            self,
            "party_currency_rate",
            positive_price(self.party_currency_rate, "party_currency_rate"),
        )
        object.__setattr__(
            self,
            "status",
            parse_enum(MetalTransactionStatus, self.status, "status", case_insensitive=True),
        )

    @property
    def kind(self) -> str:
        return f"metal_transaction:{self.transaction_type.value}"

    @property
    def total_pure_weight(self) -> Decimal:
        return sum((item.pure_weight for item in self.stock_items), ZERO)

    @property
    def total_amount(self) -> Decimal:
        return sum((item.total_amount for item in self.stock_items), ZERO)


# =============================================================================
# Entries
# =============================================================================


@dataclass(frozen=True)
class EntryStockLine:
    """A metal line of a metal receipt or payment."""

    pure_weight: Decimal
    gross_weight: Decimal | None = None
    purity: Decimal = ZERO
    metal_stock_id: UUID | None = None
    stock_code: str | None = None
    pieces: int = 0
    remarks: str = ""

    def __post_init__(self) -> None:
        pure = positive(self.pure_weight, "pure_weight")
        object.__setattr__(self, "pure_weight", pure)
        gross = optional_non_negative(self.gross_weight, "gross_weight")
        object.__setattr__(self, "gross_weight", pure if gross is None else gross)
        object.__setattr__(self, "purity", non_negative(self.purity, "purity"))
        object.__setattr__(self, "metal_stock_id", optional_uuid(self.metal_stock_id, "metal_stock_id"))
        object.__setattr__(self, "pieces", int(self.pieces or 0))


@dataclass(frozen=True)
class EntryCashLine:
    """A cash line routed through a house cash account (the cash type)."""

    cash_account_id: UUID
    currency: str
    amount: Decimal
    vat_amount: Decimal = ZERO
    payment_mode: str = "cash"
    remarks: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "cash_account_id", require_uuid(self.cash_account_id, "cash_account_id"))
        object.__setattr__(self, "currency", validate_currency(self.currency))
        object.__setattr__(self, "amount", positive(self.amount, "amount"))
        object.__setattr__(self, "vat_amount", non_negative(self.vat_amount, "vat_amount"))


@dataclass(frozen=True)
class EntryEvent:
    """A metal or cash receipt/payment.  Only approved entries post."""

    entry_type: EntryType
    party_id: UUID
    voucher_date: date
    stock_lines: tuple[EntryStockLine, ...] = ()
    cash_lines: tuple[EntryCashLine, ...] = ()
    status: EntryStatus = EntryStatus.APPROVED
    remarks: str = ""

    def __post_init__(self) -> None:
        entry_type = parse_enum(EntryType, self.entry_type, "entry_type")
        object.__setattr__(self, "entry_type", entry_type)
        object.__setattr__(self, "party_id", require_uuid(self.party_id, "party_id"))
        require(self.voucher_date, "voucher_date")
        object.__setattr__(self, "stock_lines", tuple(self.stock_lines))
        object.__setattr__(self, "cash_lines", tuple(self.cash_lines))
        object.__setattr__(
            self,
            "status",
            parse_enum(EntryStatus, self.status, "status", case_insensitive=True),
        )

        if entry_type.is_metal:
            if self.cash_lines:
                raise InvalidEntryPayloadError(entry_type.value, "metal entry carries cash lines")
            if not self.stock_lines:
                raise MissingFieldError("stock_lines")
        else:
            if self.stock_lines:
                raise InvalidEntryPayloadError(entry_type.value, "cash entry carries stock lines")
            if not self.cash_lines:
                raise MissingFieldError("cash_lines")

    @property
    def kind(self) -> str:
        return f"entry:{self.entry_type.value}"

    @property
    def posts(self) -> bool:
        return self.status == EntryStatus.APPROVED

    @property
    def total_amount(self) -> Decimal:
        if self.entry_type.is_metal:
            return sum((line.pure_weight for line in self.stock_lines), ZERO)
        return sum((line.amount for line in self.cash_lines), ZERO)


# =============================================================================
# Transaction fixings
# =============================================================================


@dataclass(frozen=True)
class FixingOrder:
    """
    One order of a fixing.

    The effective pure weight is ``pure_weight``, else ``quantity_gm``,
    else ``gross_weight``.  The effective currency rate is
    ``currency_rate``, else ``item_currency_rate``, else 1.
    """

    price: Decimal
    selected_currency: str
    pure_weight: Decimal | None = None
    quantity_gm: Decimal | None = None
    gross_weight: Decimal | None = None
    one_gram_rate: Decimal = ZERO
    bid_value: Decimal = ZERO
    current_bid_value: Decimal | None = None
    item_currency_rate: Decimal | None = None
    currency_rate: Decimal | None = None
    metal_type: str = "GOLD"
    metal_rate_id: UUID | None = None
    forex: ForexValue | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "price", positive_price(self.price, "price"))
        object.__setattr__(self, "selected_currency", validate_currency(self.selected_currency))
        for name in ("pure_weight", "quantity_gm", "gross_weight"):
            object.__setattr__(self, name, optional_non_negative(getattr(self, name), name))
        object.__setattr__(self, "one_gram_rate", non_negative(self.one_gram_rate, "one_gram_rate"))
        bid = to_decimal(self.bid_value, "bid_value")
        if bid < ZERO:
            raise InvalidGoldBidError(self.bid_value)
        object.__setattr__(self, "bid_value", bid)
        object.__setattr__(
            self,
            "current_bid_value",
            optional_non_negative(self.current_bid_value, "current_bid_value"),
        )
        for name in ("item_currency_rate", "currency_rate"):
            value = optional_decimal(getattr(self, name), name)
            if value is not None:
                value = positive_price(value, name)
            object.__setattr__(self, name, value)
        object.__setattr__(self, "metal_rate_id", optional_uuid(self.metal_rate_id, "metal_rate_id"))

    def effective_weight(self, index: int = 0) -> Decimal:
        for candidate in (self.pure_weight, self.quantity_gm, self.gross_weight):
            if candidate is not None and candidate > ZERO:
                return candidate
        raise MissingWeightError(index)

    @property
    def effective_rate(self) -> Decimal:
        if self.currency_rate is not None:
            return self.currency_rate
        if self.item_currency_rate is not None:
            return self.item_currency_rate
        return ONE


@dataclass(frozen=True)
class TransactionFixingEvent:
    """A PURCHASE or SALE price lock against a party's unfixed metal."""

    fixing_type: FixingType
    party_id: UUID
    voucher_date: date
    orders: tuple[FixingOrder, ...]
    reference_number: str = ""
    remarks: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "fixing_type",
            parse_enum(FixingType, self.fixing_type, "fixing_type", case_insensitive=True),
        )
        object.__setattr__(self, "party_id", require_uuid(self.party_id, "party_id"))
        require(self.voucher_date, "voucher_date")
        if not self.orders:
            raise MissingFieldError("orders")
        object.__setattr__(self, "orders", tuple(self.orders))
        # Resolve weights eagerly so a missing weight fails before mutation
        for index, order in enumerate(self.orders):
            order.effective_weight(index)

    @property
    def kind(self) -> str:
        return f"transaction_fixing:{self.fixing_type.value}"


# =============================================================================
# Fund transfers
# =============================================================================


@dataclass(frozen=True)
class FundTransferEvent:
    """
    A party-to-party cash or gold transfer, or an opening balance.

    ``value`` is signed: a negative transfer value swaps the roles of the
    sending and receiving parties.  ``currency`` applies to CASH only and
    defaults to the base currency when posting.
    """

    transfer_type: TransferType
    asset_type: AssetType
    value: Decimal
    receiving_party_id: UUID
    voucher_date: date
    sending_party_id: UUID | None = None
    currency: str | None = None
    description: str = ""

    def __post_init__(self) -> None:
        transfer_type = parse_enum(
            TransferType, self.transfer_type, "transfer_type", case_insensitive=True
        )
        object.__setattr__(self, "transfer_type", transfer_type)
        object.__setattr__(
            self,
            "asset_type",
            parse_enum(AssetType, self.asset_type, "asset_type", case_insensitive=True),
        )
        value = to_decimal(self.value, "value")
        if value == ZERO:
            raise InvalidTransferValueError(self.value)
        object.__setattr__(self, "value", value)
        object.__setattr__(
            self, "receiving_party_id", require_uuid(self.receiving_party_id, "receiving_party_id")
        )
        require(self.voucher_date, "voucher_date")
        if transfer_type == TransferType.TRANSFER:
            object.__setattr__(
                self, "sending_party_id", require_uuid(self.sending_party_id, "sending_party_id")
            )
        else:
            object.__setattr__(self, "sending_party_id", None)
        object.__setattr__(self, "currency", optional_currency(self.currency))

    @property
    def kind(self) -> str:
        return f"fund_transfer:{self.transfer_type.value}"

    @property
    def magnitude(self) -> Decimal:
        return abs(self.value)


PostingEvent = MetalTransactionEvent | EntryEvent | TransactionFixingEvent | FundTransferEvent


def event_parties(event: Any) -> tuple[UUID, ...]:
    """Every party an event touches, in a stable order."""
    if isinstance(event, FundTransferEvent):
        if event.sending_party_id is not None:
            return tuple(sorted({event.sending_party_id, event.receiving_party_id}, key=str))
        return (event.receiving_party_id,)
    return (event.party_id,)
