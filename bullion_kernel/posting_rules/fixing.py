"""
Transaction fixing posting rule.

For each order the effective pure weight is resolved (pure weight, then
quantity in grams, then gross weight) and the cash value is
``price x currency_rate`` in the order's selected currency.

PURCHASE, per order:
    PARTY_PURCHASE_FIX  gold_debit pw,   cash_credit value   (party -pw, +value)
    purchase-fixing     gold_credit pw,  cash_debit value
SALE mirrors it with PARTY_SALE_FIX / sales-fixing (party +pw, -value).

A forex gain adds an FX_EXCHANGE row with credit = cash_credit = gain; a
loss adds one with debit = cash_debit = loss.  FX rows carry the party for
reporting but never move party balances.  Every order also yields one
FixingPrice snapshot.
"""

from bullion_kernel.db.types import ZERO
from bullion_kernel.domain.events import FixingType, TransactionFixingEvent
from bullion_kernel.domain.plan import (
    FixingPriceSpec,
    PlanBuilder,
    PostingContext,
    PostingPlan,
    RegistryRowSpec,
)
from bullion_kernel.models.registry import RegistryRowType
from bullion_kernel.posting_rules.base import BasePostingRule


class TransactionFixingRule(BasePostingRule):
    def __init__(self, fixing_type: FixingType):
        self._fixing_type = fixing_type

    @property
    def kind(self) -> str:
        return f"transaction_fixing:{self._fixing_type.value}"

    def compute_plan(
        self, event: TransactionFixingEvent, context: PostingContext
    ) -> PostingPlan:
        self.validate_event(event)
        party = context.party(event.party_id)
        purchase = event.fixing_type == FixingType.PURCHASE
        builder = PlanBuilder()

        for index, order in enumerate(event.orders):
            pw = order.effective_weight(index)
            rate = order.effective_rate
            value = self.money(order.price * rate, context)
            direction = "Purchase from" if purchase else "Sale to"
            description = f"{pw:.3f}g @ {order.bid_value:.2f}oz - {direction} {party.name}"
            common = dict(
                transaction_type=event.fixing_type.value,
                pure_weight=pw,
                gross_weight=order.gross_weight,
                gold_bid_value=order.bid_value,
                currency_code=order.selected_currency,
                currency_rate=rate,
                asset_type="GOLD",
            )

            if purchase:
                builder.party_row(
                    RegistryRowSpec(
                        row_type=RegistryRowType.PARTY_PURCHASE_FIX.value,
                        description=description,
                        value=pw,
                        party_id=party.id,
                        gold_debit=pw,
                        cash_credit=value,
                        **common,
                    )
                )
                builder.row(
                    RegistryRowSpec(
                        row_type=RegistryRowType.PURCHASE_FIXING.value,
                        description=description,
                        value=pw,
                        party_id=party.id,
                        gold_credit=pw,
                        cash_debit=value,
                        **common,
                    )
                )
            else:
                builder.party_row(
                    RegistryRowSpec(
                        row_type=RegistryRowType.PARTY_SALE_FIX.value,
                        description=description,
                        value=pw,
                        party_id=party.id,
                        gold_credit=pw,
                        cash_debit=value,
                        **common,
                    )
                )
                builder.row(
                    RegistryRowSpec(
                        row_type=RegistryRowType.SALES_FIXING.value,
                        description=description,
                        value=pw,
                        party_id=party.id,
                        gold_debit=pw,
                        cash_credit=value,
                        **common,
                    )
                )

            forex = order.forex
            if forex is not None:
                gain = self.money(forex.fx_gain, context)
                loss = self.money(forex.fx_loss, context)
                fx_common = dict(
                    transaction_type=event.fixing_type.value,
                    currency_code=order.selected_currency,
                    currency_rate=rate,
                    asset_type="CASH",
                )
                builder.row_if(
                    gain,
                    RegistryRowSpec(
                        row_type=RegistryRowType.FX_EXCHANGE.value,
                        description=f"Foreign Exchange Gain - {description}",
                        value=gain,
                        party_id=party.id,
                        credit=gain,
                        cash_credit=gain,
                        **fx_common,
                    ),
                )
                builder.row_if(
                    loss,
                    RegistryRowSpec(
                        row_type=RegistryRowType.FX_EXCHANGE.value,
                        description=f"Foreign Exchange Loss - {description}",
                        value=loss,
                        party_id=party.id,
                        debit=loss,
                        cash_debit=loss,
                        **fx_common,
                    ),
                )

            builder.fixing_price(
                FixingPriceSpec(
                    transaction_type="PURCHASE-FIXING" if purchase else "SALE-FIXING",
                    rate_in_gram=order.one_gram_rate,
                    bid_value=order.bid_value,
                    current_bid_value=(
                        order.current_bid_value
                        if order.current_bid_value is not None and order.current_bid_value > ZERO
                        else order.bid_value
                    ),
                    metal_rate_id=order.metal_rate_id,
                )
            )

        return builder.build()
