"""
Plan -- the output of a posting rule.

Responsibility:
    Value objects describing everything one business event does to the
    books: Registry row specs, per-party balance deltas, cash-account
    movements, FixingPrice snapshots and inventory movements.  A plan is
    a pure description; services apply it.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  Produced by
    posting_rules/, consumed by the orchestrator, BalanceProjector,
    RegistryJournal, CashAccountService and MetalStockService.

Invariants enforced:
    - Party-side rows balance the deltas: per posting and per party,
      sum(gold_credit - gold_debit) over party-side rows equals the gold
      delta, and likewise per currency for cash.  PlanBuilder keeps the two
      in step by construction.
    - ``inverted()`` negates every delta and movement and carries no rows
      and no FixingPrice specs (those are retracted, not inverted).

Audit relevance:
    Update and delete re-derive the plan from the stored entity and apply
    ``plan.inverted()``, so the plan is the unit of reverse-and-reapply.
"""

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from bullion_kernel.db.types import ZERO

_AXES = ("plain", "gold", "cash")


class SourceKind(str, Enum):
    """Business-entity family a posting belongs to."""

    METAL_TRANSACTION = "metal_transaction"
    ENTRY = "entry"
    TRANSACTION_FIXING = "transaction_fixing"
    FUND_TRANSFER = "fund_transfer"


@dataclass(frozen=True)
class SourceRef:
    kind: SourceKind
    id: UUID
    voucher_number: str


@dataclass(frozen=True)
class PartyView:
    """Read-only snapshot of a party as seen by a posting rule."""

    id: UUID
    account_code: str
    name: str
    default_currency: str | None = None
    gold_balance: Decimal = ZERO
    cash_balances: dict[str, Decimal] = field(default_factory=dict)


@dataclass(frozen=True)
class PostingContext:
    """
    Everything a rule may read besides the event itself.

    ``parties`` holds the pre-event snapshot of every party the event
    touches.  ``transaction_id`` is the business transaction id
    (PUR/SEL for fixings, TXN-YYYY-NNN for transfers) or None.
    """

    source: SourceRef
    voucher_date: date
    transaction_date: datetime
    parties: dict[UUID, PartyView]
    base_currency: str = "AED"
    cash_decimal_places: int = 2
    transaction_id: str | None = None

    @property
    def voucher_number(self) -> str:
        return self.source.voucher_number

    def party(self, party_id: UUID) -> PartyView:
        return self.parties[party_id]


@dataclass(frozen=True)
class RegistryRowSpec:
    """
    One Registry row to insert.  Axis amounts are non-negative magnitudes.
    """

    row_type: str
    description: str
    value: Decimal
    party_id: UUID | None = None
    debit: Decimal = ZERO
    credit: Decimal = ZERO
    gold_debit: Decimal = ZERO
    gold_credit: Decimal = ZERO
    cash_debit: Decimal = ZERO
    cash_credit: Decimal = ZERO
    gold_bid_value: Decimal | None = None
    purity: Decimal | None = None
    pure_weight: Decimal | None = None
    gross_weight: Decimal | None = None
    metal_stock_id: UUID | None = None
    asset_type: str | None = None
    currency_code: str | None = None
    currency_rate: Decimal | None = None
    cost_center: str | None = None
    transaction_type: str | None = None

    def split_axis(self) -> str | None:
        """Name of the first axis with both sides positive, else None."""
        pairs = (
            (self.debit, self.credit),
            (self.gold_debit, self.gold_credit),
            (self.cash_debit, self.cash_credit),
        )
        for axis, (dr, cr) in zip(_AXES, pairs):
            if dr > ZERO and cr > ZERO:
                return axis
        return None

    @property
    def gold_net(self) -> Decimal:
        return self.gold_credit - self.gold_debit

    @property
    def cash_net(self) -> Decimal:
        return self.cash_credit - self.cash_debit


@dataclass(frozen=True)
class BalanceDelta:
    """Signed change to one party: gold grams plus a per-currency cash map."""

    party_id: UUID
    gold: Decimal = ZERO
    cash: dict[str, Decimal] = field(default_factory=dict)

    def negated(self) -> "BalanceDelta":
        return BalanceDelta(
            party_id=self.party_id,
            gold=-self.gold,
            cash={currency: -amount for currency, amount in self.cash.items()},
        )

    @property
    def currencies(self) -> tuple[str, ...]:
        return tuple(sorted(self.cash))

    @property
    def is_zero(self) -> bool:
        return self.gold == ZERO and all(amount == ZERO for amount in self.cash.values())


@dataclass(frozen=True)
class CashAccountMovement:
    """Signed movement of a house cash account (receipts add, payments subtract)."""

    cash_account_id: UUID
    amount: Decimal
    currency_code: str
    note: str = ""
    is_reversal: bool = False

    def negated(self) -> "CashAccountMovement":
        return replace(self, amount=-self.amount, is_reversal=not self.is_reversal)


@dataclass(frozen=True)
class FixingPriceSpec:
    transaction_type: str
    rate_in_gram: Decimal
    bid_value: Decimal | None = None
    current_bid_value: Decimal | None = None
    metal_rate_id: UUID | None = None


@dataclass(frozen=True)
class InventoryMovement:
    """
    Stock movement of one line.  ``direction`` is +1 (stock in) or -1.

    Inverted movements adjust on-hand quantities without writing a log
    row; the original log row is retracted with the source.
    """

    transaction_type: str
    direction: int
    pure_weight: Decimal
    gross_weight: Decimal
    pieces: int = 0
    metal_stock_id: UUID | None = None
    stock_code: str | None = None
    party_id: UUID | None = None
    write_log: bool = True

    def negated(self) -> "InventoryMovement":
        return replace(self, direction=-self.direction, write_log=False)


@dataclass(frozen=True)
class PostingPlan:
    rows: tuple[RegistryRowSpec, ...] = ()
    party_deltas: tuple[BalanceDelta, ...] = ()
    cash_account_movements: tuple[CashAccountMovement, ...] = ()
    fixing_prices: tuple[FixingPriceSpec, ...] = ()
    inventory_movements: tuple[InventoryMovement, ...] = ()

    def inverted(self) -> "PostingPlan":
        return PostingPlan(
            rows=(),
            party_deltas=tuple(delta.negated() for delta in self.party_deltas),
            cash_account_movements=tuple(m.negated() for m in self.cash_account_movements),
            fixing_prices=(),
            inventory_movements=tuple(m.negated() for m in self.inventory_movements),
        )

    def delta_for(self, party_id: UUID) -> BalanceDelta:
        for delta in self.party_deltas:
            if delta.party_id == party_id:
                return delta
        return BalanceDelta(party_id=party_id)

    @property
    def is_empty(self) -> bool:
        return not (
            self.rows
            or self.party_deltas
            or self.cash_account_movements
            or self.fixing_prices
            or self.inventory_movements
        )


class PlanBuilder:
    """
    Accumulates a PostingPlan.

    ``party_row`` records a party-side row and folds its net effect into
    that party's delta, so rows and deltas cannot drift apart.  House and
    analytic rows go through ``row`` and never touch deltas.
    """

    def __init__(self) -> None:
        self._rows: list[RegistryRowSpec] = []
        self._gold: dict[UUID, Decimal] = {}
        self._cash: dict[UUID, dict[str, Decimal]] = {}
        self._party_order: list[UUID] = []
        self._cash_movements: list[CashAccountMovement] = []
        self._fixing_prices: list[FixingPriceSpec] = []
        self._inventory: list[InventoryMovement] = []

    def _touch(self, party_id: UUID) -> None:
        if party_id not in self._gold:
            self._party_order.append(party_id)
            self._gold[party_id] = ZERO
            self._cash[party_id] = {}

    def party_row(self, spec: RegistryRowSpec) -> None:
        if spec.party_id is None:
            raise ValueError(f"party-side row {spec.row_type} requires a party_id")
        self._touch(spec.party_id)
        self._rows.append(spec)
        self._gold[spec.party_id] += spec.gold_net
        if spec.cash_debit > ZERO or spec.cash_credit > ZERO:
            if spec.currency_code is None:
                raise ValueError(f"party-side cash row {spec.row_type} requires a currency")
            party_cash = self._cash[spec.party_id]
            party_cash[spec.currency_code] = party_cash.get(spec.currency_code, ZERO) + spec.cash_net

    def row(self, spec: RegistryRowSpec) -> None:
        self._rows.append(spec)

    def row_if(self, amount: Decimal, spec: RegistryRowSpec) -> None:
        """Append ``spec`` only when ``amount`` is positive."""
        if amount > ZERO:
            self._rows.append(spec)

    def cash_movement(self, movement: CashAccountMovement) -> None:
        self._cash_movements.append(movement)

    def fixing_price(self, spec: FixingPriceSpec) -> None:
        self._fixing_prices.append(spec)

    def inventory(self, movement: InventoryMovement) -> None:
        self._inventory.append(movement)

    def build(self) -> PostingPlan:
        deltas = tuple(
            BalanceDelta(
                party_id=party_id,
                gold=self._gold[party_id],
                cash=dict(self._cash[party_id]),
            )
            for party_id in self._party_order
        )
        return PostingPlan(
            rows=tuple(self._rows),
            party_deltas=deltas,
            cash_account_movements=tuple(self._cash_movements),
            fixing_prices=tuple(self._fixing_prices),
            inventory_movements=tuple(self._inventory),
        )
