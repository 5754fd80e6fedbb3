from dataclasses import dataclass
from decimal import MAX_EMAX, MAX_PREC, MIN_EMIN, Context, Decimal, DivisionByZero, InvalidOperation, Overflow
from enum import Enum
from typing import Optional

MAX_CLIENT_ID = 2**16 - 1
MAX_TRANSACTION_ID = 2**32 - 1

# Amounts are limited to this many digits either side of the decimal point.
AMOUNT_DIGITS_LIMIT = 64

# Additions and subtractions in this context never round.
LEDGER_CONTEXT = Context(
    prec=MAX_PREC,
    Emax=MAX_EMAX,
    Emin=MIN_EMIN,
    traps=[InvalidOperation, DivisionByZero, Overflow],
)


class TransactionParseError(ValueError):
    """Raised when an input record does not have the shape of a transaction."""


class TransactionType(Enum):
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    DISPUTE = "dispute"
    RESOLVE = "resolve"
    CHARGEBACK = "chargeback"

    @property
    def moves_funds(self) -> bool:
        return self in (TransactionType.DEPOSIT, TransactionType.WITHDRAWAL)


class TransactionStatus(Enum):
    NORMAL = "normal"
    DISPUTED = "disputed"
    RESOLVED = "resolved"
    CHARGED_BACK = "charged_back"


class DisputePolicy(Enum):
    """
    How dispute, resolve and chargeback records are validated.

    PERMISSIVE only requires the referenced transaction to exist in history.
    STRICT also requires it to be in the right status
    (NORMAL -> DISPUTED -> RESOLVED | CHARGED_BACK).
    """

    PERMISSIVE = "permissive"
    STRICT = "strict"


@dataclass(frozen=True)
class Transaction:
    transaction_type: TransactionType
    client_id: int
    transaction_id: int
    amount: Optional[Decimal] = None

    def __post_init__(self):
        if not 0 <= self.client_id <= MAX_CLIENT_ID:
            raise TransactionParseError(f"client id {self.client_id} out of range")
        if not 0 <= self.transaction_id <= MAX_TRANSACTION_ID:
            raise TransactionParseError(f"tx id {self.transaction_id} out of range")

        # Follow-up records take their amount from the referenced transaction.
        if not self.transaction_type.moves_funds:
            return
        if self.amount is None:
            raise TransactionParseError(f"{self.transaction_type.value} tx {self.transaction_id}: amount is required")
        if not self.amount.is_finite() or self.amount < 0:
            raise TransactionParseError(f"tx {self.transaction_id}: invalid amount {self.amount}")
        if self.amount.adjusted() >= AMOUNT_DIGITS_LIMIT or self.amount.as_tuple().exponent < -AMOUNT_DIGITS_LIMIT:
            raise TransactionParseError(f"tx {self.transaction_id}: amount {self.amount} out of range")

    def __repr__(self) -> str:
        return f"Transaction({self.transaction_type.value}, client={self.client_id}, tx={self.transaction_id}, amount={self.amount})"


class ProcessingStats:
    """Counters for a single processing run."""

    def __init__(self):
        self.processed = 0
        self.skipped = 0

    def record_processed(self):
        self.processed += 1

    def record_skipped(self):
        self.skipped += 1
