"""
Forex -- foreign-exchange gain/loss descriptor for fixing orders.

Responsibility:
    Builds the ForexValue attached to a fixing order from the market and
    given values.  The difference is taken as market - given for a
    PURCHASE fixing and given - market for a SALE fixing; a positive
    difference is a gain, a negative one a loss.  Gains and losses are
    never re-derived from rates.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from bullion_kernel.db.types import ZERO, optional_decimal, to_decimal


@dataclass(frozen=True)
class ForexValue:
    """Forex descriptor of one fixing order.  fx_gain and fx_loss are >= 0."""

    market_value: Decimal
    given_value: Decimal
    fx_gain: Decimal = ZERO
    fx_loss: Decimal = ZERO
    purchase_rate: Decimal | None = None
    sell_rate: Decimal | None = None
    default_rate: Decimal | None = None

    @property
    def difference(self) -> Decimal:
        return self.fx_gain - self.fx_loss


def build_forex_value(
    fixing_type: str,
    market_value: Any,
    given_value: Any,
    purchase_rate: Any = None,
    sell_rate: Any = None,
    default_rate: Any = None,
) -> ForexValue:
    """
    Build a ForexValue for a PURCHASE or SALE fixing.

    Example:
        >>> build_forex_value("PURCHASE", 105, 100).fx_gain
        Decimal('5')
        >>> build_forex_value("SALE", 105, 100).fx_loss
        Decimal('5')
    """
    market = to_decimal(market_value, "forex.market_value")
    given = to_decimal(given_value, "forex.given_value")

    if str(fixing_type).upper() == "SALE":
        diff = given - market
    else:
        diff = market - given

    return ForexValue(
        market_value=market,
        given_value=given,
        fx_gain=diff if diff > ZERO else ZERO,
        fx_loss=-diff if diff < ZERO else ZERO,
        purchase_rate=optional_decimal(purchase_rate, "forex.purchase_rate"),
        sell_rate=optional_decimal(sell_rate, "forex.sell_rate"),
        default_rate=optional_decimal(default_rate, "forex.default_rate"),
    )
