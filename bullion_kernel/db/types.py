"""
Module: bullion_kernel.db.types
Responsibility: Annotated column aliases and the numeric helpers shared by
    models, posting rules and services: Decimal coercion, the sanctioned cash
    rounding function, and ISO 4217 currency validation.
Architecture position: Kernel > DB.  May be imported by every other layer.
    MUST NOT import from models/, services/, selectors/, or domain/.

Invariants enforced:
    - No floats: to_decimal() converts via str() so binary float noise never
      enters an amount, and rejects NaN / Infinity.
    - round_money() is the ONLY rounding function applied to cash amounts.
      Gram weights are never rounded by the kernel.
    - validate_currency() is the canonical currency check at every boundary.

Failure modes:
    - InvalidNumberError on non-numeric or non-finite input to to_decimal().
    - InvalidCurrencyError on an unknown currency code.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Annotated, Any

from sqlalchemy import BigInteger, Numeric, String

from bullion_kernel.exceptions import InvalidCurrencyError, InvalidNumberError

# Gram weights and cash amounts: 38 digits, 9 decimal places
Money = Annotated[Decimal, Numeric(38, 9)]
Weight = Annotated[Decimal, Numeric(38, 9)]

# Exchange and per-gram rates
Rate = Annotated[Decimal, Numeric(38, 18)]

# ISO 4217 currency code (e.g., "AED", "USD")
Currency = Annotated[str, String(3)]

Sequence = Annotated[int, BigInteger]

ShortCode = Annotated[str, String(50)]

LongText = Annotated[str, String(500)]

ZERO = Decimal("0")
MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP


def to_decimal(value: Any, field: str = "value") -> Decimal:
    """
    Coerce a numeric input to a finite Decimal.

    Floats are converted through ``str()`` so ``0.1`` becomes ``Decimal("0.1")``.

    Raises:
        InvalidNumberError: If the value is None, non-numeric, NaN or infinite.
    """
    if isinstance(value, bool) or value is None:
        raise InvalidNumberError(field, value)
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise InvalidNumberError(field, value) from None
    if not result.is_finite():
        raise InvalidNumberError(field, value)
    return result


def optional_decimal(value: Any, field: str = "value") -> Decimal | None:
    """Like to_decimal() but passes None (and empty strings) through."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return to_decimal(value, field)


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a cash amount to ``decimal_places`` using ROUND_HALF_UP.

    This is the ONLY sanctioned rounding function for cash amounts.
    """
    quantum = Decimal(1).scaleb(-decimal_places)
    return value.quantize(quantum, rounding=rounding)


# ISO 4217 codes accepted for cash balances
ISO_4217_CURRENCIES: set[str] = {
    "USD", "EUR", "GBP", "JPY", "CHF", "CAD", "AUD", "NZD",
    "AED", "BHD", "KWD", "OMR", "QAR", "SAR", "JOD", "EGP",
    "INR", "PKR", "LKR", "BDT", "NPR",
    "CNY", "HKD", "SGD", "MYR", "THB", "IDR", "PHP", "KRW", "TWD", "VND",
    "TRY", "IRR", "IQD", "LBP", "ILS",
    "ZAR", "NGN", "KES", "GHS", "ETB", "TZS", "UGX", "MAD", "DZD", "TND",
    "RUB", "UAH", "KZT", "UZS", "AZN", "GEL", "AMD",
    "SEK", "NOK", "DKK", "PLN", "CZK", "HUF", "RON", "BGN",
    "BRL", "ARS", "CLP", "COP", "MXN", "PEN",
    # Precious-metal units
    "XAU", "XAG", "XPT", "XPD",
}


def validate_currency(currency: str | None) -> str:
    """
    Validate and normalize a currency code.

    Returns:
        The uppercase, trimmed currency code.

    Raises:
        InvalidCurrencyError: If the code is blank or not a known ISO 4217 code.
    """
    if not currency or not isinstance(currency, str):
        raise InvalidCurrencyError(currency)

    normalized = currency.upper().strip()

    if len(normalized) != 3 or normalized not in ISO_4217_CURRENCIES:
        raise InvalidCurrencyError(currency)

    return normalized


def is_valid_currency(currency: str | None) -> bool:
    """Check if a currency code is valid without raising."""
    try:
        validate_currency(currency)
        return True
    except InvalidCurrencyError:
        return False
