"""
Voucher facade: peek at or consume the next voucher number of a module.

``info`` is read-only.  ``generate`` allocates in its own committed
transaction, so the number it returns is consumed even if the caller
never saves a document under it.
"""

from datetime import date

from bullion_kernel.services.posting_orchestrator import TransactionOrchestrator
from bullion_kernel.services.voucher_allocator import VoucherAllocation, VoucherInfo
from bullion_kernel.services.voucher_config_cache import normalize_module


class VoucherService:
    def __init__(self, orchestrator: TransactionOrchestrator):
        self._orchestrator = orchestrator

    def info(self, module: str, transaction_type: str | None = None) -> VoucherInfo:
        module = normalize_module(module)
        return self._orchestrator.run_in_transaction(
            "voucher.info",
            lambda unit: unit.allocator.info(module, transaction_type),
        )

    def generate(
        self,
        module: str,
        transaction_type: str | None = None,
        voucher_date: date | None = None,
    ) -> VoucherAllocation:
        module = normalize_module(module)
        return self._orchestrator.run_in_transaction(
            "voucher.generate",
            lambda unit: unit.allocator.allocate(module, transaction_type, voucher_date),
        )
