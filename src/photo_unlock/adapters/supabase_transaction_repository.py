"""Supabase implementation for payment transactions."""

from dataclasses import dataclass
from datetime import datetime

from supabase import Client

from photo_unlock.domain.transactions import (
    OPEN_STATUSES,
    PaymentReceipt,
    TransactionRecord,
    TransactionStatus,
)
from photo_unlock.services.transactions import TransactionRepository

TABLE = "mpesa_transactions"
_OPEN = sorted(status.value for status in OPEN_STATUSES)


@dataclass
class SupabaseTransactionRepository(TransactionRepository):
    """Supabase-backed repository for the mpesa_transactions table."""

    client: Client

    def create_transaction(self, record: TransactionRecord) -> None:
        """Insert a new transaction row."""
        response = (
            self.client.table(TABLE)
            .insert(
                {
                    "transaction_id": record.transaction_id,
                    "user_id": record.user_id,
                    "phone_number": record.phone_number,
                    "amount": record.amount,
                    "photo_ids": record.photo_ids,
                    "status": record.status.value,
                    "created_at": _iso(record.created_at),
                }
            )
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to create transaction")

    def get_transaction(self, transaction_id: str) -> TransactionRecord | None:
        """Return a transaction by its identifier."""
        response = (
            self.client.table(TABLE)
            .select("*")
            .eq("transaction_id", transaction_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _parse_transaction(response.data[0])

    def get_by_checkout_request_id(
        self, checkout_request_id: str
    ) -> TransactionRecord | None:
        """Return the transaction matching a gateway correlation id."""
        response = (
            self.client.table(TABLE)
            .select("*")
            .eq("checkout_request_id", checkout_request_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _parse_transaction(response.data[0])

    def mark_pending(
        self, transaction_id: str, checkout_request_id: str, merchant_request_id: str
    ) -> None:
        """Store correlation ids and move an initiated transaction to pending."""
        self.client.table(TABLE).update(
            {
                "checkout_request_id": checkout_request_id,
                "merchant_request_id": merchant_request_id,
                "status": TransactionStatus.PENDING.value,
            }
        ).eq("transaction_id", transaction_id).eq(
            "status", TransactionStatus.INITIATED.value
        ).execute()

    def mark_completed(
        self,
        transaction_id: str,
        receipt: PaymentReceipt,
        completed_at: datetime,
        callback_data: dict[str, object] | None,
    ) -> bool:
        """Complete a non-terminal transaction; return whether a row changed."""
        return self._finish(
            transaction_id,
            {
                "status": TransactionStatus.COMPLETED.value,
                "mpesa_receipt_number": receipt.receipt_number,
                "amount_paid": receipt.amount,
                "transaction_date": receipt.transaction_date,
                "callback_data": callback_data,
                "completed_at": _iso(completed_at),
            },
        )

    def mark_failed(
        self,
        transaction_id: str,
        error_message: str,
        completed_at: datetime,
        callback_data: dict[str, object] | None = None,
    ) -> bool:
        """Fail a non-terminal transaction; return whether a row changed."""
        payload: dict[str, object] = {
            "status": TransactionStatus.FAILED.value,
            "error_message": error_message,
            "completed_at": _iso(completed_at),
        }
        if callback_data is not None:
            payload["callback_data"] = callback_data
        return self._finish(transaction_id, payload)

    def record_error(self, transaction_id: str, error_message: str) -> None:
        """Attach an error note without touching the status."""
        self.client.table(TABLE).update({"error_message": error_message}).eq(
            "transaction_id", transaction_id
        ).execute()

    def list_transactions(
        self,
        user_id: str,
        offset: int,
        limit: int,
        status: TransactionStatus | None,
    ) -> tuple[list[TransactionRecord], int]:
        """Return a page of a user's transactions, newest first, and the total."""
        query = (
            self.client.table(TABLE)
            .select("*", count="exact")
            .eq("user_id", user_id)
        )
        if status is not None:
            query = query.eq("status", status.value)
        response = (
            query.order("created_at", desc=True)
            .range(offset, offset + limit - 1)
            .execute()
        )
        rows = response.data or []
        total = response.count if response.count is not None else len(rows)
        return [_parse_transaction(row) for row in rows], total

    def list_user_transactions(self, user_id: str) -> list[TransactionRecord]:
        """Return every transaction of a user, newest first."""
        response = (
            self.client.table(TABLE)
            .select("*")
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .execute()
        )
        return [_parse_transaction(row) for row in response.data or []]

    def list_open_before(self, cutoff: datetime) -> list[TransactionRecord]:
        """Return initiated or pending transactions created before the cutoff."""
        response = (
            self.client.table(TABLE)
            .select("*")
            .in_("status", _OPEN)
            .lt("created_at", _iso(cutoff))
            .execute()
        )
        return [_parse_transaction(row) for row in response.data or []]

    def _finish(self, transaction_id: str, payload: dict[str, object]) -> bool:
        # Only rows that are still open may move to a terminal state.
        response = (
            self.client.table(TABLE)
            .update(payload)
            .eq("transaction_id", transaction_id)
            .in_("status", _OPEN)
            .execute()
        )
        return bool(response.data)


def _parse_transaction(row: dict[str, object]) -> TransactionRecord:
    photo_ids = row.get("photo_ids") or []
    return TransactionRecord(
        transaction_id=str(row["transaction_id"]),
        user_id=str(row["user_id"]),
        phone_number=str(row.get("phone_number") or ""),
        amount=float(row.get("amount") or 0),
        photo_ids=[str(pid) for pid in photo_ids] if isinstance(photo_ids, list) else [],
        status=TransactionStatus(str(row["status"])),
        created_at=_parse_datetime(row.get("created_at")),
        checkout_request_id=_optional(row.get("checkout_request_id")),
        merchant_request_id=_optional(row.get("merchant_request_id")),
        mpesa_receipt_number=_optional(row.get("mpesa_receipt_number")),
        amount_paid=(
            float(row["amount_paid"]) if row.get("amount_paid") is not None else None
        ),
        transaction_date=_optional(row.get("transaction_date")),
        error_message=_optional(row.get("error_message")),
        completed_at=_parse_datetime(row.get("completed_at")),
    )


def _parse_datetime(value: object) -> datetime | None:
    if isinstance(value, str) and value:
        return datetime.fromisoformat(value)
    return None


def _optional(value: object) -> str | None:
    return str(value) if value is not None else None


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None
