"""
Entry posting rules: metal and cash receipts/payments.

Only approved entries post; any other status yields an empty plan.

Metal receipt, per stock line:
    STOCK_BALANCE       gold_credit  pure_weight
    PARTY_GOLD_BALANCE  gold_credit  pure_weight   (party gold +pw)
    GOLD                gold_debit   pure_weight
    GOLD_STOCK          debit        gross_weight

Cash receipt, per cash line:
    PARTY_CASH_BALANCE  cash_credit  amount        (party cash +amount)
    CASH                cash_debit   amount
    VAT                 credit       vat_amount    (when > 0)
  plus a +amount movement on the line's house cash account.

Payments mirror receipts.  A currency receipt posts like a cash receipt.
"""

from bullion_kernel.domain.events import EntryEvent, EntryType
from bullion_kernel.domain.plan import (
    CashAccountMovement,
    InventoryMovement,
    PlanBuilder,
    PostingContext,
    PostingPlan,
    RegistryRowSpec,
)
from bullion_kernel.models.registry import RegistryRowType
from bullion_kernel.posting_rules.base import BasePostingRule

_INVENTORY_TYPES = {
    EntryType.METAL_RECEIPT: "metalReceipt",
    EntryType.METAL_PAYMENT: "metalPayment",
}


class MetalEntryRule(BasePostingRule):
    def __init__(self, entry_type: EntryType):
        self._entry_type = entry_type

    @property
    def kind(self) -> str:
        return f"entry:{self._entry_type.value}"

    def compute_plan(self, event: EntryEvent, context: PostingContext) -> PostingPlan:
        self.validate_event(event)
        if not event.posts:
            return PostingPlan()

        party = context.party(event.party_id)
        receipt = event.entry_type.is_receipt
        label = f"{'Metal receipt from' if receipt else 'Metal payment to'} {party.name}"
        builder = PlanBuilder()

        for line in event.stock_lines:
            pw = line.pure_weight
            common = dict(
                transaction_type=event.entry_type.value,
                pure_weight=pw,
                gross_weight=line.gross_weight,
                purity=line.purity,
                metal_stock_id=line.metal_stock_id,
                asset_type="GOLD",
            )
            builder.row(
                RegistryRowSpec(
                    row_type=RegistryRowType.STOCK_BALANCE.value,
                    description=f"Stock - {label}",
                    value=pw,
                    **({"gold_credit": pw} if receipt else {"gold_debit": pw}),
                    **common,
                )
            )
            builder.party_row(
                RegistryRowSpec(
                    row_type=RegistryRowType.PARTY_GOLD_BALANCE.value,
                    description=f"Party gold - {label}",
                    value=pw,
                    party_id=party.id,
                    **({"gold_credit": pw} if receipt else {"gold_debit": pw}),
                    **common,
                )
            )
            builder.row(
                RegistryRowSpec(
                    row_type=RegistryRowType.GOLD.value,
                    description=f"Gold - {label}",
                    value=pw,
                    party_id=party.id,
                    **({"gold_debit": pw} if receipt else {"gold_credit": pw}),
                    **common,
                )
            )
            builder.row_if(
                line.gross_weight,
                RegistryRowSpec(
                    row_type=RegistryRowType.GOLD_STOCK.value,
                    description=f"Gold stock - {label}",
                    value=line.gross_weight,
                    party_id=party.id,
                    **({"debit": line.gross_weight} if receipt else {"credit": line.gross_weight}),
                    **common,
                ),
            )
            if line.metal_stock_id is not None or line.stock_code:
                builder.inventory(
                    InventoryMovement(
                        transaction_type=_INVENTORY_TYPES[event.entry_type],
                        direction=1 if receipt else -1,
                        pure_weight=pw,
                        gross_weight=line.gross_weight,
                        pieces=line.pieces,
                        metal_stock_id=line.metal_stock_id,
                        stock_code=line.stock_code,
                        party_id=party.id,
                    )
                )
        return builder.build()


class CashEntryRule(BasePostingRule):
    def __init__(self, entry_type: EntryType):
        self._entry_type = entry_type

    @property
    def kind(self) -> str:
        return f"entry:{self._entry_type.value}"

    def compute_plan(self, event: EntryEvent, context: PostingContext) -> PostingPlan:
        self.validate_event(event)
        if not event.posts:
            return PostingPlan()

        party = context.party(event.party_id)
        receipt = event.entry_type.is_receipt
        label = f"{'Cash receipt from' if receipt else 'Cash payment to'} {party.name}"
        default_note = "Cash receipt" if receipt else "Cash payment"
        builder = PlanBuilder()

        for line in event.cash_lines:
            amount = self.money(line.amount, context)
            vat = self.money(line.vat_amount, context)
            common = dict(
                transaction_type=event.entry_type.value,
                currency_code=line.currency,
                asset_type="CASH",
            )
            builder.party_row(
                RegistryRowSpec(
                    row_type=RegistryRowType.PARTY_CASH_BALANCE.value,
                    description=f"Party cash - {label}",
                    value=amount,
                    party_id=party.id,
                    **({"cash_credit": amount} if receipt else {"cash_debit": amount}),
                    **common,
                )
            )
            builder.row(
                RegistryRowSpec(
                    row_type=RegistryRowType.CASH.value,
                    description=f"Cash - {label}",
                    value=amount,
                    party_id=party.id,
                    **({"cash_debit": amount} if receipt else {"cash_credit": amount}),
                    **common,
                )
            )
            builder.row_if(
                vat,
                RegistryRowSpec(
                    row_type=RegistryRowType.VAT.value,
                    description=f"VAT - {label}",
                    value=vat,
                    party_id=party.id,
                    **({"credit": vat} if receipt else {"debit": vat}),
                    **common,
                ),
            )
            builder.cash_movement(
                CashAccountMovement(
                    cash_account_id=line.cash_account_id,
                    amount=amount if receipt else -amount,
                    currency_code=line.currency,
                    note=event.remarks or line.remarks or default_note,
                )
            )
        return builder.build()
