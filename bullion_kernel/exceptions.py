"""
Typed exception hierarchy for the bullion kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (HTTP adapters, batch jobs, tests) must react to failures by KIND,
never by parsing message text.  Every exception therefore carries:
  1. A typed class (catch by type, not message)
  2. A stable ``code`` class attribute (machine-readable, API-safe)
  3. An ``http_status`` class attribute (numeric hint for adapters)
  4. Structured attributes describing the failure (not just a string)

Example:
    try:
        engine.transaction_fixing.create(actor_id, event)
    except InvalidPriceError as e:
        api_response(e.http_status, code=e.code, field=e.field)
    except ConcurrentModificationError as e:
        api_response(e.http_status, code=e.code, attempts=e.attempts)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    BullionKernelError (base)
    |
    +-- ValidationError                      400
    |   +-- MissingFieldError
    |   +-- InvalidNumberError
    |   +-- InvalidEnumError
    |   +-- InvalidIdentifierError
    |   +-- InvalidQuantityError
    |   +-- InvalidPriceError
    |   +-- InvalidGoldBidError
    |   +-- InvalidCurrencyError
    |   +-- MissingWeightError
    |   +-- MissingModuleError
    |   +-- InvalidEntryPayloadError
    |   +-- InvalidTransferValueError
    |   +-- RequiredCurrencyMissingError
    |   +-- VatNumberRequiredError
    |
    +-- ReferenceNotFoundError               404
    |   +-- PartyNotFoundError
    |   +-- VoucherConfigNotFoundError
    |   +-- CashAccountNotFoundError
    |   +-- MetalStockNotFoundError
    |
    +-- ConflictError                        409
    |   +-- DuplicateCodeError
    |   +-- DuplicateVoucherTypeModuleError
    |   +-- DuplicateVoucherNumberError
    |   +-- TransactionIdExhaustedError
    |
    +-- StateError
    |   +-- EntityNotFoundError              404
    |   +-- EntityAlreadyCancelledError      409
    |   +-- PartyInactiveError               409
    |
    +-- ConcurrencyError
    |   +-- WriteConflictError               409 (retryable)
    |   +-- ConcurrentModificationError      409
    |   +-- TransactionTimeoutError          504
    |
    +-- TransientError
    |   +-- PersistenceUnavailableError      503
    |
    +-- PolicyError
    |   +-- CreditLimitExceededError         422
    |
    +-- PostingError                         500
        +-- PostingRuleNotFoundError
        +-- SplitRegistryRowError

===============================================================================
DESIGN DECISIONS
===============================================================================

1. Codes and HTTP hints are CLASS attributes: they are static per type and
   can be read without instantiation (API docs, adapters).
2. Validation errors are raised before any mutation.  The orchestrator rolls
   back and re-raises every kernel error unchanged; only persistence-layer
   failures are translated (retry, timeout, unavailability).
3. ``ConcurrentModificationError`` chains the last WriteConflictError via
   ``__cause__`` once the retry budget is spent, unless that conflict was a
   voucher-number unique violation, which surfaces as
   ``DuplicateVoucherNumberError`` chained to the IntegrityError.
===============================================================================
"""

from typing import Any


class BullionKernelError(Exception):
    """
    Base exception for all bullion kernel errors.

    All subclasses must define ``code`` and ``http_status`` class attributes.
    """

    code: str = "BULLION_KERNEL_ERROR"
    http_status: int = 500

    def to_dict(self) -> dict[str, Any]:
        """Serialize to an API-safe dict of code, status, message and context."""
        context = {
            k: v for k, v in vars(self).items() if not k.startswith("_")
        }
        return {
            "code": self.code,
            "http_status": self.http_status,
            "message": str(self),
            "context": context,
        }


# Validation errors


class ValidationError(BullionKernelError):
    """Base exception for payload validation failures."""

    code: str = "VALIDATION_ERROR"
    http_status: int = 400


class MissingFieldError(ValidationError):
    """A required field is absent or blank."""

    code: str = "MISSING_FIELD"

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"Missing required field: {field}")


class InvalidNumberError(ValidationError):
    """A numeric field is not a finite number."""

    code: str = "INVALID_NUMBER"

    def __init__(self, field: str, value: Any):
        self.field = field
        self.value = repr(value)
        super().__init__(f"Invalid {field}: {value!r}")


class InvalidEnumError(ValidationError):
    """A field holds a value outside its allowed set."""

    code: str = "INVALID_ENUM"

    def __init__(self, field: str, value: Any, allowed: list[str]):
        self.field = field
        self.value = str(value)
        self.allowed = allowed
        super().__init__(
            f"Invalid {field}: {value!r} (allowed: {', '.join(allowed)})"
        )


class InvalidIdentifierError(ValidationError):
    """An identifier does not match its required shape."""

    code: str = "INVALID_IDENTIFIER"

    def __init__(self, field: str, value: str, reason: str):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid {field} '{value}': {reason}")


class InvalidQuantityError(ValidationError):
    """A weight or per-gram rate is zero or negative where forbidden."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, field: str, value: Any):
        self.field = field
        self.value = str(value)
        super().__init__(f"{field} must be greater than zero, got {value}")


class InvalidPriceError(ValidationError):
    """A price is zero or negative."""

    code: str = "INVALID_PRICE"

    def __init__(self, field: str, value: Any):
        self.field = field
        self.value = str(value)
        super().__init__(f"{field} must be greater than zero, got {value}")


class InvalidGoldBidError(ValidationError):
    """A gold bid value is zero or negative."""

    code: str = "INVALID_GOLD_BID"

    def __init__(self, value: Any):
        self.field = "bid_value"
        self.value = str(value)
        super().__init__(f"Gold bid value must be greater than zero, got {value}")


class InvalidCurrencyError(ValidationError):
    """A currency code is missing or not a valid ISO 4217 code."""

    code: str = "INVALID_CURRENCY"

    def __init__(self, currency: str | None):
        self.currency = currency
        super().__init__(f"Invalid currency code: {currency!r}")


class MissingWeightError(ValidationError):
    """A fixing order carries no usable weight."""

    code: str = "MISSING_WEIGHT"

    def __init__(self, index: int):
        self.index = index
        super().__init__(
            f"Order {index} has no pure_weight, quantity_gm or gross_weight"
        )


class MissingModuleError(ValidationError):
    """A voucher request named no module."""

    code: str = "MISSING_MODULE"

    def __init__(self):
        super().__init__("Module is required for voucher allocation")


class InvalidEntryPayloadError(ValidationError):
    """An entry carries lines that do not belong to its kind."""

    code: str = "INVALID_ENTRY_PAYLOAD"

    def __init__(self, entry_type: str, reason: str):
        self.entry_type = entry_type
        self.reason = reason
        super().__init__(f"Invalid {entry_type} entry: {reason}")


class InvalidTransferValueError(ValidationError):
    """A fund transfer value is zero."""

    code: str = "INVALID_TRANSFER_VALUE"

    def __init__(self, value: Any):
        self.value = str(value)
        super().__init__("Transfer value cannot be zero")


class RequiredCurrencyMissingError(ValidationError):
    """An account definition lacks a mandatory currency."""

    code: str = "REQUIRED_CURRENCY_MISSING"

    def __init__(self, account_code: str, missing: list[str]):
        self.account_code = account_code
        self.missing = missing
        super().__init__(
            f"Account {account_code} must define currencies: {', '.join(missing)}"
        )


class VatNumberRequiredError(ValidationError):
    """A VAT-registered account has no VAT number."""

    code: str = "VAT_NUMBER_REQUIRED"

    def __init__(self, account_code: str):
        self.account_code = account_code
        super().__init__(
            f"Account {account_code} is VAT registered but has no VAT number"
        )


# Reference-not-found errors


class ReferenceNotFoundError(BullionKernelError):
    """Base exception for missing reference data."""

    code: str = "REFERENCE_NOT_FOUND"
    http_status: int = 404


class PartyNotFoundError(ReferenceNotFoundError):
    """Party account was not found."""

    code: str = "PARTY_NOT_FOUND"

    def __init__(self, party_ref: str):
        self.party_ref = party_ref
        super().__init__(f"Party not found: {party_ref}")


class VoucherConfigNotFoundError(ReferenceNotFoundError):
    """No active voucher configuration exists for the module."""

    code: str = "VOUCHER_CONFIG_NOT_FOUND"

    def __init__(self, module: str):
        self.module = module
        super().__init__(f"Voucher configuration not found for module: {module}")


class CashAccountNotFoundError(ReferenceNotFoundError):
    """Cash/bank account was not found."""

    code: str = "CASH_ACCOUNT_NOT_FOUND"

    def __init__(self, cash_account_id: str):
        self.cash_account_id = cash_account_id
        super().__init__(f"Cash account not found: {cash_account_id}")


class MetalStockNotFoundError(ReferenceNotFoundError):
    """Metal stock item was not found."""

    code: str = "METAL_STOCK_NOT_FOUND"

    def __init__(self, stock_ref: str):
        self.stock_ref = stock_ref
        super().__init__(f"Metal stock not found: {stock_ref}")


# Conflict errors


class ConflictError(BullionKernelError):
    """Base exception for uniqueness conflicts."""

    code: str = "CONFLICT"
    http_status: int = 409


class DuplicateCodeError(ConflictError):
    """A code or name that must be unique already exists."""

    code: str = "DUPLICATE_CODE"

    def __init__(self, entity_type: str, value: str):
        self.entity_type = entity_type
        self.value = value
        super().__init__(f"{entity_type} with code '{value}' already exists")


class DuplicateVoucherTypeModuleError(ConflictError):
    """A voucher configuration already exists for (voucher_type, module)."""

    code: str = "DUPLICATE_VOUCHER_TYPE_MODULE"

    def __init__(self, voucher_type: str, module: str):
        self.voucher_type = voucher_type
        self.module = module
        super().__init__(
            f"Voucher type '{voucher_type}' already exists for module '{module}'"
        )


class DuplicateVoucherNumberError(ConflictError):
    """A voucher number kept colliding at insert until the retries ran out."""

    code: str = "DUPLICATE_VOUCHER_NUMBER"

    def __init__(self, operation: str, voucher_number: str | None = None):
        self.operation = operation
        self.voucher_number = voucher_number
        super().__init__(
            f"{operation}: voucher number already used: {voucher_number or 'unknown'}"
        )


class TransactionIdExhaustedError(ConflictError):
    """No free random transaction id was found within the attempt budget."""

    code: str = "TRANSACTION_ID_EXHAUSTED"

    def __init__(self, scheme: str, attempts: int):
        self.scheme = scheme
        self.attempts = attempts
        super().__init__(
            f"Could not generate a unique {scheme} id after {attempts} attempts"
        )


# State errors


class StateError(BullionKernelError):
    """Base exception for lifecycle/state violations."""

    code: str = "STATE_ERROR"
    http_status: int = 409


class EntityNotFoundError(StateError):
    """Business entity was not found."""

    code: str = "ENTITY_NOT_FOUND"
    http_status: int = 404

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} not found: {entity_id}")


class EntityAlreadyCancelledError(StateError):
    """Business entity is already cancelled."""

    code: str = "ALREADY_CANCELLED"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} {entity_id} is already cancelled")


class PartyInactiveError(StateError):
    """Party account is inactive and cannot transact."""

    code: str = "PARTY_INACTIVE"

    def __init__(self, account_code: str):
        self.account_code = account_code
        super().__init__(f"Party account is inactive: {account_code}")


# Concurrency errors


class ConcurrencyError(BullionKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"
    http_status: int = 409


class WriteConflictError(ConcurrencyError):
    """
    A concurrent transaction conflicted with this one.  Retryable.

    The orchestrator wraps each retryable database failure in one of these;
    the last one is the ``__cause__`` of ConcurrentModificationError.
    """

    code: str = "WRITE_CONFLICT"

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Write conflict during {operation}: {detail}")


class ConcurrentModificationError(ConcurrencyError):
    """Write conflicts persisted after the retry budget was exhausted."""

    code: str = "CONCURRENT_MODIFICATION"

    def __init__(self, operation: str, attempts: int):
        self.operation = operation
        self.attempts = attempts
        super().__init__(
            f"{operation} failed after {attempts} attempts: "
            "concurrent modification"
        )


class TransactionTimeoutError(ConcurrencyError):
    """The transaction exceeded its time budget and was aborted."""

    code: str = "TRANSACTION_TIMEOUT"
    http_status: int = 504

    def __init__(self, operation: str, timeout_seconds: float):
        self.operation = operation
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"{operation} exceeded transaction timeout of {timeout_seconds}s"
        )


# Transient errors


class TransientError(BullionKernelError):
    """Base exception for transient infrastructure failures."""

    code: str = "TRANSIENT_ERROR"
    http_status: int = 503


class PersistenceUnavailableError(TransientError):
    """The persistence layer could not be reached."""

    code: str = "PERSISTENCE_UNAVAILABLE"

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Persistence unavailable during {operation}: {detail}")


# Policy errors


class PolicyError(BullionKernelError):
    """Base exception for balance policy rejections."""

    code: str = "POLICY_ERROR"
    http_status: int = 422


class CreditLimitExceededError(PolicyError):
    """A balance would cross the configured credit limit."""

    code: str = "CREDIT_LIMIT_EXCEEDED"

    def __init__(self, account_code: str, axis: str, balance: Any, limit: Any):
        self.account_code = account_code
        self.axis = axis
        self.balance = str(balance)
        self.limit = str(limit)
        super().__init__(
            f"Account {account_code} {axis} balance {balance} exceeds limit {limit}"
        )


# Posting errors


class PostingError(BullionKernelError):
    """Base exception for posting rule failures."""

    code: str = "POSTING_ERROR"
    http_status: int = 500


class PostingRuleNotFoundError(PostingError):
    """No posting rule is registered for the event kind."""

    code: str = "POSTING_RULE_NOT_FOUND"

    def __init__(self, kind: str):
        self.kind = kind
        super().__init__(f"No posting rule registered for kind: {kind}")


class SplitRegistryRowError(PostingError):
    """A registry row carries both sides of one ledger axis."""

    code: str = "SPLIT_REGISTRY_ROW"

    def __init__(self, row_type: str, axis: str):
        self.row_type = row_type
        self.axis = axis
        super().__init__(
            f"Registry row {row_type} has both debit and credit on the {axis} axis"
        )
