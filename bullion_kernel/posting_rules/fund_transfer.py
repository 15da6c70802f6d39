"""
Fund transfer and opening balance posting rules.

TRANSFER: the sending party's row is a debit and the receiving party's a
credit, on the cash axis (in the transfer currency) or the gold axis.  A
negative value swaps the two parties.  Rows carry cost_center CASH or GOLD
so the journal maintains running balances for them.

OPENING-BALANCE: one OPENING_CASH_BALANCE / OPENING_GOLD_BALANCE row for
the receiving party, a credit for a positive value and a debit for a
negative one.
"""

from bullion_kernel.db.types import ZERO
from bullion_kernel.domain.events import AssetType, FundTransferEvent, TransferType
from bullion_kernel.domain.plan import (
    PlanBuilder,
    PostingContext,
    PostingPlan,
    RegistryRowSpec,
)
from bullion_kernel.models.registry import RegistryRowType
from bullion_kernel.posting_rules.base import BasePostingRule


def _axis_fields(asset_type: AssetType, side: str, amount, currency: str | None) -> dict:
    """Plain and axis columns for one side of a party row."""
    axis = "cash" if asset_type == AssetType.CASH else "gold"
    fields = {side: amount, f"{axis}_{side}": amount, "asset_type": asset_type.value}
    if asset_type == AssetType.CASH:
        fields["currency_code"] = currency
    return fields


class TransferRule(BasePostingRule):
    @property
    def kind(self) -> str:
        return f"fund_transfer:{TransferType.TRANSFER.value}"

    def compute_plan(self, event: FundTransferEvent, context: PostingContext) -> PostingPlan:
        self.validate_event(event)
        sender_id, receiver_id = event.sending_party_id, event.receiving_party_id
        if event.value < ZERO:
            sender_id, receiver_id = receiver_id, sender_id
        sender = context.party(sender_id)
        receiver = context.party(receiver_id)

        cash = event.asset_type == AssetType.CASH
        currency = (event.currency or context.base_currency) if cash else None
        amount = self.money(event.magnitude, context) if cash else event.magnitude
        row_type = (
            RegistryRowType.PARTY_CASH_BALANCE if cash else RegistryRowType.PARTY_GOLD_BALANCE
        )
        description = event.description or (
            f"{event.asset_type.value} TRANSFER FROM {sender.name} TO {receiver.name}"
        )
        common = dict(
            transaction_type=TransferType.TRANSFER.value,
            cost_center=event.asset_type.value,
        )

        builder = PlanBuilder()
        builder.party_row(
            RegistryRowSpec(
                row_type=row_type.value,
                description=description,
                value=amount,
                party_id=sender.id,
                **_axis_fields(event.asset_type, "debit", amount, currency),
                **common,
            )
        )
        builder.party_row(
            RegistryRowSpec(
                row_type=row_type.value,
                description=description,
                value=amount,
                party_id=receiver.id,
                **_axis_fields(event.asset_type, "credit", amount, currency),
                **common,
            )
        )
        return builder.build()


class OpeningBalanceRule(BasePostingRule):
    @property
    def kind(self) -> str:
        return f"fund_transfer:{TransferType.OPENING_BALANCE.value}"

    def compute_plan(self, event: FundTransferEvent, context: PostingContext) -> PostingPlan:
        self.validate_event(event)
        party = context.party(event.receiving_party_id)
        cash = event.asset_type == AssetType.CASH
        currency = (event.currency or context.base_currency) if cash else None
        amount = self.money(event.magnitude, context) if cash else event.magnitude
        side = "credit" if event.value > ZERO else "debit"
        row_type = (
            RegistryRowType.OPENING_CASH_BALANCE if cash else RegistryRowType.OPENING_GOLD_BALANCE
        )
        description = event.description or (
            f"OPENING {event.asset_type.value} BALANCE FOR {party.name}"
        )

        builder = PlanBuilder()
        builder.party_row(
            RegistryRowSpec(
                row_type=row_type.value,
                description=description,
                value=amount,
                party_id=party.id,
                transaction_type=TransferType.OPENING_BALANCE.value,
                cost_center=event.asset_type.value,
                **_axis_fields(event.asset_type, side, amount, currency),
            )
        )
        return builder.build()
