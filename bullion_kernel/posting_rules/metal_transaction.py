"""
Metal transaction posting rule.

One rule instance per metal transaction kind.  Purchases and sale returns
bring metal into stock; sales and purchase returns send it out.  Import
and export kinds post exactly like their base kind.

Per stock item, rows are emitted in the order stock, gold (party then
house), cash (party then house), analytics.  Inbound items:

    STOCK_BALANCE       gold_credit  pure_weight
    PARTY_GOLD_BALANCE  gold_debit   pure_weight   (party gold -pw)
    GOLD                gold_debit   pure_weight
    PARTY_CASH_BALANCE  cash_credit  total         (party cash +total)
    CASH                cash_debit   total
    GOLD_STOCK / MAKING_CHARGES / PREMIUM / OTHER_CHARGES / VAT   debit

Outbound items flip every side.  A negative premium is a discount and
posts on the opposite side of the other analytics.
"""

from decimal import Decimal

from bullion_kernel.db.types import ZERO
from bullion_kernel.domain.events import (
    MetalTransactionEvent,
    MetalTransactionType,
    StockItem,
)
from bullion_kernel.domain.plan import (
    InventoryMovement,
    PartyView,
    PlanBuilder,
    PostingContext,
    PostingPlan,
    RegistryRowSpec,
)
from bullion_kernel.models.registry import RegistryRowType
from bullion_kernel.posting_rules.base import BasePostingRule

_VERBS = {
    MetalTransactionType.PURCHASE: "Purchase from",
    MetalTransactionType.SALE: "Sale to",
    MetalTransactionType.PURCHASE_RETURN: "Purchase return to",
    MetalTransactionType.SALE_RETURN: "Sale return from",
}


def resolve_party_currency(
    event: MetalTransactionEvent,
    party: PartyView,
    base_currency: str,
) -> str:
    """Event currency, else the party's default currency, else base."""
    return event.party_currency or party.default_currency or base_currency


class MetalTransactionRule(BasePostingRule):
    """Posting rule for one MetalTransactionType."""

    def __init__(self, transaction_type: MetalTransactionType):
        self._transaction_type = transaction_type

    @property
    def kind(self) -> str:
        return f"metal_transaction:{self._transaction_type.value}"

    def compute_plan(
        self, event: MetalTransactionEvent, context: PostingContext
    ) -> PostingPlan:
        self.validate_event(event)
        party = context.party(event.party_id)
        currency = resolve_party_currency(event, party, context.base_currency)
        inbound = event.transaction_type.stock_inbound
        label = f"{_VERBS[event.transaction_type.base]} {party.name}"

        builder = PlanBuilder()
        for item in event.stock_items:
            self._item_rows(builder, event, context, item, party, currency, inbound, label)
            if item.metal_stock_id is not None or item.stock_code:
                builder.inventory(
                    InventoryMovement(
                        transaction_type=event.transaction_type.value,
                        direction=1 if inbound else -1,
                        pure_weight=item.pure_weight,
                        gross_weight=item.gross_weight,
                        pieces=item.pieces,
                        metal_stock_id=item.metal_stock_id,
                        stock_code=item.stock_code,
                        party_id=party.id,
                    )
                )
        return builder.build()

    def _item_rows(
        self,
        builder: PlanBuilder,
        event: MetalTransactionEvent,
        context: PostingContext,
        item: StockItem,
        party: PartyView,
        currency: str,
        inbound: bool,
        label: str,
    ) -> None:
        pw = item.pure_weight
        total = self.money(item.total_amount, context)
        common = dict(
            transaction_type=event.transaction_type.value,
            pure_weight=pw,
            gross_weight=item.gross_weight,
            purity=item.purity,
            metal_stock_id=item.metal_stock_id,
            gold_bid_value=item.bid_value if item.bid_value > ZERO else None,
        )
        gold_side = "gold_debit" if inbound else "gold_credit"
        gold_other = "gold_credit" if inbound else "gold_debit"

        # Stock
        builder.row(
            RegistryRowSpec(
                row_type=RegistryRowType.STOCK_BALANCE.value,
                description=f"Stock - {label}",
                value=pw,
                asset_type="GOLD",
                **{gold_other: pw},
                **common,
            )
        )

        # Gold: party then house
        builder.party_row(
            RegistryRowSpec(
                row_type=RegistryRowType.PARTY_GOLD_BALANCE.value,
                description=f"Party gold - {label}",
                value=pw,
                party_id=party.id,
                asset_type="GOLD",
                **{gold_side: pw},
                **common,
            )
        )
        builder.row(
            RegistryRowSpec(
                row_type=RegistryRowType.GOLD.value,
                description=f"Gold - {label}",
                value=pw,
                party_id=party.id,
                asset_type="GOLD",
                **{gold_side: pw},
                **common,
            )
        )

        # Cash: party then house
        if total > ZERO:
            cash_fields = dict(
                currency_code=currency,
                currency_rate=event.party_currency_rate,
                asset_type="CASH",
                **common,
            )
            builder.party_row(
                RegistryRowSpec(
                    row_type=RegistryRowType.PARTY_CASH_BALANCE.value,
                    description=f"Party cash - {label}",
                    value=total,
                    party_id=party.id,
                    **({"cash_credit": total} if inbound else {"cash_debit": total}),
                    **cash_fields,
                )
            )
            builder.row(
                RegistryRowSpec(
                    row_type=RegistryRowType.CASH.value,
                    description=f"Cash - {label}",
                    value=total,
                    party_id=party.id,
                    **({"cash_debit": total} if inbound else {"cash_credit": total}),
                    **cash_fields,
                )
            )

        # Analytics
        self._analytic(
            builder, RegistryRowType.GOLD_STOCK, f"Gold stock - {label}",
            item.gross_weight, inbound, party, None, common,
        )
        for row_type, amount, text in (
            (RegistryRowType.MAKING_CHARGES, item.making_charges, "Making charges"),
            (RegistryRowType.PREMIUM, item.premium, "Premium"),
            (RegistryRowType.OTHER_CHARGES, item.other_charges, "Other charges"),
            (RegistryRowType.VAT, item.vat_amount, "VAT"),
        ):
            if row_type is RegistryRowType.PREMIUM and amount < ZERO:
                self._analytic(
                    builder, row_type, f"Discount - {label}",
                    self.money(-amount, context), not inbound, party, currency, common,
                )
                continue
            self._analytic(
                builder, row_type, f"{text} - {label}",
                self.money(amount, context), inbound, party, currency, common,
            )

    @staticmethod
    def _analytic(
        builder: PlanBuilder,
        row_type: RegistryRowType,
        description: str,
        amount: Decimal,
        debit_side: bool,
        party: PartyView,
        currency: str | None,
        common: dict,
    ) -> None:
        builder.row_if(
            amount,
            RegistryRowSpec(
                row_type=row_type.value,
                description=description,
                value=amount,
                party_id=party.id,
                currency_code=currency,
                **({"debit": amount} if debit_side else {"credit": amount}),
                **common,
            ),
        )
