"""
Typed exception hierarchy for the estate ledger kernel.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from EstateKernelError:

    EstateKernelError (base)
    |
    +-- InvalidInputError
    |   +-- InvalidAmountError
    |   +-- InvalidWeightError
    |
    +-- CurrencyError
    |   +-- CurrencyMismatchError
    |
    +-- PostingError
    |   +-- AlreadyPostedError
    |   +-- UnbalancedPostingError
    |   +-- RoleResolutionError
    |
    +-- NotFoundError
    |   +-- InvoiceNotFoundError
    |   +-- PaymentNotFoundError
    |   +-- TransactionNotFoundError
    |   +-- PostingNotFoundError
    |
    +-- MatchError
    |   +-- TransactionAlreadyMatchedError
    |
    +-- ConcurrencyError
        +-- OptimisticLockError
        +-- AllocationRetryExhaustedError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Input           | INVALID_INPUT               | Malformed input at the engine boundary
                | INVALID_AMOUNT              | Negative or non-finite amount
                | INVALID_WEIGHT              | Negative or NaN distribution weight
----------------|-----------------------------|-----------------------------------------
Currency        | CURRENCY_MISMATCH           | Arithmetic across currencies
----------------|-----------------------------|-----------------------------------------
Posting         | ALREADY_POSTED              | Source already posted (OK, no-op)
                | UNBALANCED_POSTING          | Debits != Credits
                | ROLE_RESOLUTION_FAILED      | No account bound to an account role
----------------|-----------------------------|-----------------------------------------
Lookup          | INVOICE_NOT_FOUND           | Invoice ID doesn't exist
                | PAYMENT_NOT_FOUND           | Payment ID doesn't exist
                | TRANSACTION_NOT_FOUND       | Bank transaction ID doesn't exist
                | POSTING_NOT_FOUND           | No posting for a source event
----------------|-----------------------------|-----------------------------------------
Matching        | TRANSACTION_ALREADY_MATCHED | Transaction already linked
----------------|-----------------------------|-----------------------------------------
Concurrency     | OPTIMISTIC_LOCK_CONFLICT    | Invoice changed by another writer
                | ALLOCATION_RETRY_EXHAUSTED  | Retry budget spent on lock conflicts

Handling:
   - InvalidInputError family -> reject before any mutation
   - AlreadyPostedError -> treat as success
   - OptimisticLockError -> re-read and retry
   - AllocationRetryExhaustedError -> surface to the caller

===============================================================================
"""


class EstateKernelError(Exception):
    """
    Base exception for all estate kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "ESTATE_KERNEL_ERROR"


# Input validation


class InvalidInputError(EstateKernelError):
    """Input rejected at the engine boundary."""

    code: str = "INVALID_INPUT"

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class InvalidAmountError(InvalidInputError):
    """Amount is negative or not a finite decimal."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, field: str, amount: str):
        self.amount = amount
        super().__init__(f"Invalid amount for {field}: {amount}", field=field)


class InvalidWeightError(InvalidInputError):
    """Distribution weight is negative or NaN."""

    code: str = "INVALID_WEIGHT"

    def __init__(self, participant_id: str, weight: str):
        self.participant_id = participant_id
        self.weight = weight
        super().__init__(
            f"Invalid weight {weight} for participant {participant_id}",
            field="weight",
        )


# Currency


class CurrencyError(EstateKernelError):
    """Base exception for currency-related errors."""

    code: str = "CURRENCY_ERROR"


class CurrencyMismatchError(CurrencyError):
    """Attempted operation on mismatched currencies."""

    code: str = "CURRENCY_MISMATCH"

    def __init__(self, currency1: str, currency2: str):
        self.currency1 = currency1
        self.currency2 = currency2
        super().__init__(f"Currency mismatch: {currency1} vs {currency2}")


# Posting


class PostingError(EstateKernelError):
    """Base exception for posting-related errors."""

    code: str = "POSTING_ERROR"


class AlreadyPostedError(PostingError):
    """Source has already been posted (idempotent success)."""

    code: str = "ALREADY_POSTED"

    def __init__(self, source_type: str, source_id: str, posting_id: str):
        self.source_type = source_type
        self.source_id = source_id
        self.posting_id = posting_id
        super().__init__(
            f"{source_type} {source_id} already posted as {posting_id}"
        )


class UnbalancedPostingError(PostingError):
    """Posting debits do not equal credits."""

    code: str = "UNBALANCED_POSTING"

    def __init__(self, debits: str, credits: str, currency: str):
        self.debits = debits
        self.credits = credits
        self.currency = currency
        super().__init__(
            f"Unbalanced posting in {currency}: debits={debits}, credits={credits}"
        )


class RoleResolutionError(PostingError):
    """No ledger account is bound to the requested account role."""

    code: str = "ROLE_RESOLUTION_FAILED"

    def __init__(self, role: str):
        self.role = role
        super().__init__(f"No account bound to role '{role}'")


# Lookup


class NotFoundError(EstateKernelError):
    """Base exception for missing records."""

    code: str = "NOT_FOUND"


class InvoiceNotFoundError(NotFoundError):
    """Invoice with given ID was not found."""

    code: str = "INVOICE_NOT_FOUND"

    def __init__(self, invoice_id: str):
        self.invoice_id = invoice_id
        super().__init__(f"Invoice not found: {invoice_id}")


class PaymentNotFoundError(NotFoundError):
    """Payment with given ID was not found."""

    code: str = "PAYMENT_NOT_FOUND"

    def __init__(self, payment_id: str):
        self.payment_id = payment_id
        super().__init__(f"Payment not found: {payment_id}")


class TransactionNotFoundError(NotFoundError):
    """Bank transaction with given ID was not found."""

    code: str = "TRANSACTION_NOT_FOUND"

    def __init__(self, transaction_id: str):
        self.transaction_id = transaction_id
        super().__init__(f"Bank transaction not found: {transaction_id}")


class PostingNotFoundError(NotFoundError):
    """No posting recorded for the given source event."""

    code: str = "POSTING_NOT_FOUND"

    def __init__(self, source_type: str, source_id: str):
        self.source_type = source_type
        self.source_id = source_id
        super().__init__(f"No posting for {source_type}:{source_id}")


# Matching


class MatchError(EstateKernelError):
    """Base exception for bank matching errors."""

    code: str = "MATCH_ERROR"


class TransactionAlreadyMatchedError(MatchError):
    """Bank transaction is already linked to a tenant."""

    code: str = "TRANSACTION_ALREADY_MATCHED"

    def __init__(self, transaction_id: str, tenant_id: str):
        self.transaction_id = transaction_id
        self.tenant_id = tenant_id
        super().__init__(
            f"Bank transaction {transaction_id} already matched to tenant {tenant_id}"
        )


# Concurrency


class ConcurrencyError(EstateKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified by another transaction"
        )


class AllocationRetryExhaustedError(ConcurrencyError):
    """Payment allocation kept conflicting after the configured retries."""

    code: str = "ALLOCATION_RETRY_EXHAUSTED"

    def __init__(self, payment_id: str, attempts: int):
        self.payment_id = payment_id
        self.attempts = attempts
        super().__init__(
            f"Allocation of payment {payment_id} failed after {attempts} attempts"
        )
