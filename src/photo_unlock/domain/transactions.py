"""Domain models for payment transactions."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum


class TransactionStatus(StrEnum):
    """Lifecycle states of a purchase attempt."""

    INITIATED = "initiated"
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        """Return true for states that can no longer change."""
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({TransactionStatus.COMPLETED, TransactionStatus.FAILED})
OPEN_STATUSES = frozenset({TransactionStatus.INITIATED, TransactionStatus.PENDING})


@dataclass(frozen=True)
class TransactionRecord:
    """A persisted purchase attempt."""

    transaction_id: str
    user_id: str
    phone_number: str
    amount: float
    photo_ids: list[str]
    status: TransactionStatus
    created_at: datetime | None = None
    checkout_request_id: str | None = None
    merchant_request_id: str | None = None
    mpesa_receipt_number: str | None = None
    amount_paid: float | None = None
    transaction_date: str | None = None
    error_message: str | None = None
    completed_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        """Return true once the transaction reached completed or failed."""
        return self.status.is_terminal


@dataclass(frozen=True)
class PaymentReceipt:
    """Typed view of the gateway's callback metadata."""

    receipt_number: str | None
    amount: float | None
    transaction_date: str | None
    phone_number: str | None


@dataclass(frozen=True)
class StkPushOutcome:
    """Result of a push-payment initiation."""

    accepted: bool
    transaction_id: str
    checkout_request_id: str | None = None
    merchant_request_id: str | None = None
    customer_message: str | None = None
    error: str | None = None


@dataclass(frozen=True)
class TransactionPage:
    """One page of a user's transaction history."""

    items: list[TransactionRecord]
    page: int
    limit: int
    total: int

    @property
    def has_more(self) -> bool:
        """Return true when more rows exist after this page."""
        return self.page * self.limit < self.total


@dataclass(frozen=True)
class TransactionSummary:
    """Aggregated view of a user's transactions."""

    user_id: str
    total_transactions: int
    counts: dict[str, int]
    total_amount_paid: float
    average_transaction_amount: float
    success_rate: float
    last_transaction_date: datetime | None
    recent_transactions: list[TransactionRecord] = field(default_factory=list)


@dataclass(frozen=True)
class CallbackResult:
    """Typed result notification for a push payment."""

    checkout_request_id: str
    merchant_request_id: str | None
    result_code: int
    result_desc: str
    receipt: PaymentReceipt | None = None

    @property
    def succeeded(self) -> bool:
        """Return true when the gateway reports a successful payment."""
        return self.result_code == 0
