"""Transaction persistence interface and read-side reporting."""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Protocol

from photo_unlock.domain.transactions import (
    PaymentReceipt,
    TransactionPage,
    TransactionRecord,
    TransactionStatus,
    TransactionSummary,
)
from photo_unlock.errors import AuthorizationError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100
RECENT_TRANSACTIONS = 5
EXPIRED_MESSAGE = "Transaction expired"


class TransactionRepository(Protocol):
    """Persistence interface for payment transactions."""

    def create_transaction(self, record: TransactionRecord) -> None:
        """Insert a new transaction row."""

    def get_transaction(self, transaction_id: str) -> TransactionRecord | None:
        """Return a transaction by its identifier."""

    def get_by_checkout_request_id(
        self, checkout_request_id: str
    ) -> TransactionRecord | None:
        """Return the transaction matching a gateway correlation id."""

    def mark_pending(
        self, transaction_id: str, checkout_request_id: str, merchant_request_id: str
    ) -> None:
        """Store correlation ids and move the transaction to pending."""

    def mark_completed(
        self,
        transaction_id: str,
        receipt: PaymentReceipt,
        completed_at: datetime,
        callback_data: dict[str, object] | None,
    ) -> bool:
        """Complete a non-terminal transaction; return whether a row changed."""

    def mark_failed(
        self,
        transaction_id: str,
        error_message: str,
        completed_at: datetime,
        callback_data: dict[str, object] | None = None,
    ) -> bool:
        """Fail a non-terminal transaction; return whether a row changed."""

    def record_error(self, transaction_id: str, error_message: str) -> None:
        """Attach an error note without touching the status."""

    def list_transactions(
        self,
        user_id: str,
        offset: int,
        limit: int,
        status: TransactionStatus | None,
    ) -> tuple[list[TransactionRecord], int]:
        """Return a page of a user's transactions, newest first, and the total."""

    def list_user_transactions(self, user_id: str) -> list[TransactionRecord]:
        """Return every transaction of a user, newest first."""

    def list_open_before(self, cutoff: datetime) -> list[TransactionRecord]:
        """Return initiated or pending transactions created before the cutoff."""


@dataclass
class TransactionQueryService:
    """Read-only views over transactions plus the expiry sweep."""

    repository: TransactionRepository
    expiry_hours: int = 24

    def get_transaction(
        self, transaction_id: str, user_id: str | None = None
    ) -> TransactionRecord:
        """Return a transaction, optionally enforcing ownership."""
        record = self.repository.get_transaction(transaction_id)
        if record is None:
            raise NotFoundError("Transaction", transaction_id)
        if user_id is not None and record.user_id != user_id:
            raise AuthorizationError("Cannot view another user's transaction")
        return record

    def list_transactions(
        self,
        user_id: str,
        page: int = 1,
        limit: int = 20,
        status: TransactionStatus | None = None,
    ) -> TransactionPage:
        """Return a page of the user's transaction history."""
        if page < 1:
            raise ValidationError("page must be at least 1")
        if not 1 <= limit <= MAX_PAGE_SIZE:
            raise ValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}")
        offset = (page - 1) * limit
        items, total = self.repository.list_transactions(user_id, offset, limit, status)
        return TransactionPage(items=items, page=page, limit=limit, total=total)

    def get_summary(self, user_id: str) -> TransactionSummary:
        """Aggregate all of a user's transactions in memory."""
        records = self.repository.list_user_transactions(user_id)
        counts = {status.value: 0 for status in TransactionStatus}
        for record in records:
            counts[record.status.value] += 1

        completed = [r for r in records if r.status is TransactionStatus.COMPLETED]
        total_paid = sum(_paid_amount(r) for r in completed)
        average = total_paid / len(completed) if completed else 0.0
        success_rate = round(len(completed) / len(records) * 100, 2) if records else 0.0
        created = [r.created_at for r in records if r.created_at is not None]
        recent = sorted(
            records,
            key=lambda r: r.created_at or datetime.min.replace(tzinfo=UTC),
            reverse=True,
        )[:RECENT_TRANSACTIONS]

        return TransactionSummary(
            user_id=user_id,
            total_transactions=len(records),
            counts=counts,
            total_amount_paid=total_paid,
            average_transaction_amount=average,
            success_rate=success_rate,
            last_transaction_date=max(created) if created else None,
            recent_transactions=recent,
        )

    def expire_stale(self, now: datetime | None = None) -> int:
        """Fail transactions that never reached a terminal state in time."""
        moment = now or datetime.now(tz=UTC)
        cutoff = moment - timedelta(hours=self.expiry_hours)
        expired = 0
        for record in self.repository.list_open_before(cutoff):
            if self.repository.mark_failed(record.transaction_id, EXPIRED_MESSAGE, moment):
                expired += 1
        if expired:
            logger.info("Expired stale transactions", extra={"count": expired})
        return expired


def _paid_amount(record: TransactionRecord) -> float:
    if record.amount_paid is not None:
        return record.amount_paid
    return record.amount
