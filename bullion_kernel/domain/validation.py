"""
Validation -- boundary checks for event payloads.

Responsibility:
    Small, pure helpers used by the event dataclasses in ``__post_init__``
    to coerce numbers to Decimal, check signs, and parse enum tags.  Every
    helper raises a typed kernel ValidationError naming the offending
    field, so arithmetic errors surface before any mutation.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
"""

from decimal import Decimal
from enum import Enum
from typing import Any, TypeVar
from uuid import UUID

from bullion_kernel.db.types import ZERO, optional_decimal, to_decimal, validate_currency
from bullion_kernel.exceptions import (
    InvalidEnumError,
    InvalidIdentifierError,
    InvalidPriceError,
    InvalidQuantityError,
    MissingFieldError,
)

E = TypeVar("E", bound=Enum)


def require(value: Any, field: str) -> Any:
    """Reject None and blank strings."""
    if value is None or (isinstance(value, str) and not value.strip()):
        raise MissingFieldError(field)
    return value


def require_uuid(value: Any, field: str) -> UUID:
    require(value, field)
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        raise InvalidIdentifierError(field, str(value), "not a UUID") from None


def optional_uuid(value: Any, field: str) -> UUID | None:
    if value is None or value == "":
        return None
    return require_uuid(value, field)


def non_negative(value: Any, field: str) -> Decimal:
    """Coerce to Decimal and reject negatives (InvalidQuantityError)."""
    result = to_decimal(value, field)
    if result < ZERO:
        raise InvalidQuantityError(field, value)
    return result


def optional_non_negative(value: Any, field: str) -> Decimal | None:
    result = optional_decimal(value, field)
    if result is not None and result < ZERO:
        raise InvalidQuantityError(field, value)
    return result


def positive(value: Any, field: str) -> Decimal:
    result = to_decimal(value, field)
    if result <= ZERO:
        raise InvalidQuantityError(field, value)
    return result


def positive_price(value: Any, field: str) -> Decimal:
    """Prices and rates must be finite and strictly positive."""
    result = to_decimal(value, field)
    if result <= ZERO:
        raise InvalidPriceError(field, value)
    return result


def parse_enum(enum_cls: type[E], value: Any, field: str, *, case_insensitive: bool = False) -> E:
    """
    Parse a tag into ``enum_cls``.

    Accepts an existing member, or its value.  With ``case_insensitive``
    the comparison ignores case, so ``"purchase"`` resolves PURCHASE.
    """
    if isinstance(value, enum_cls):
        return value
    require(value, field)
    raw = str(value).strip()
    for member in enum_cls:
        candidate = str(member.value)
        if candidate == raw or (case_insensitive and candidate.lower() == raw.lower()):
            return member
    raise InvalidEnumError(field, value, [str(m.value) for m in enum_cls])


def optional_currency(value: Any) -> str | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return validate_currency(value)
