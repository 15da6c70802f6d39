"""
Bullion Kernel - posting engine for a bullion trading back office.

Turns business events (metal purchases and sales, rate fixings, cash and
metal entries, fund transfers) into:
- Registry ledger rows (party-side and house-side pairs)
- Signed gold and per-currency cash balance deltas per party
- Gapless voucher numbers per module
- Reverse-and-reapply updates and deletes inside one transaction
"""

__version__ = "0.1.0"
