"""Apply asynchronous payment results reported by the gateway."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from enum import StrEnum

from photo_unlock.domain.transactions import (
    CallbackResult,
    PaymentReceipt,
    TransactionStatus,
)
from photo_unlock.services.entitlements import EntitlementService
from photo_unlock.services.transactions import TransactionRepository

logger = logging.getLogger(__name__)

RESULT_CODE_REASONS: dict[int, str] = {
    1: "Insufficient M-Pesa balance",
    1001: "Another M-Pesa transaction is in progress",
    1019: "Transaction expired before completion",
    1025: "Payment prompt could not be delivered",
    1032: "Payment cancelled by user",
    1037: "Payment timed out, phone unreachable",
    2001: "Wrong M-Pesa PIN entered",
    9999: "Payment prompt could not be delivered",
}
DEFAULT_FAILURE_REASON = "Payment failed"


class CallbackOutcome(StrEnum):
    """What happened to a delivered callback."""

    UNKNOWN_TRANSACTION = "unknown_transaction"
    DUPLICATE = "duplicate"
    COMPLETED = "completed"
    FAILED = "failed"


def failure_reason(result_code: int) -> str:
    """Return a human-readable reason for a non-zero result code."""
    return RESULT_CODE_REASONS.get(result_code, DEFAULT_FAILURE_REASON)


def parse_callback_metadata(items: Iterable[tuple[str, object]]) -> PaymentReceipt:
    """Build a receipt from the gateway's list of named metadata items."""
    values = dict(items)
    amount = values.get("Amount")
    return PaymentReceipt(
        receipt_number=_as_str(values.get("MpesaReceiptNumber")),
        amount=float(amount) if amount is not None else None,
        transaction_date=_as_str(values.get("TransactionDate")),
        phone_number=_as_str(values.get("PhoneNumber")),
    )


@dataclass
class CallbackService:
    """Record terminal payment states exactly once."""

    repository: TransactionRepository
    entitlement_service: EntitlementService

    def handle_result(
        self, result: CallbackResult, raw: dict[str, object] | None = None
    ) -> CallbackOutcome:
        """Apply a callback result to its transaction."""
        transaction = self.repository.get_by_checkout_request_id(
            result.checkout_request_id
        )
        if transaction is None:
            logger.warning(
                "Callback for unknown transaction",
                extra={"checkout_request_id": result.checkout_request_id},
            )
            return CallbackOutcome.UNKNOWN_TRANSACTION
        if transaction.is_terminal:
            logger.info(
                "Ignoring callback for finished transaction",
                extra={
                    "transaction_id": transaction.transaction_id,
                    "status": transaction.status.value,
                },
            )
            return CallbackOutcome.DUPLICATE

        now = datetime.now(tz=UTC)
        if not result.succeeded:
            reason = failure_reason(result.result_code)
            message = f"{reason}: {result.result_desc}" if result.result_desc else reason
            if not self.repository.mark_failed(
                transaction.transaction_id, message, now, raw
            ):
                return CallbackOutcome.DUPLICATE
            logger.info(
                "Payment failed",
                extra={
                    "transaction_id": transaction.transaction_id,
                    "result_code": result.result_code,
                },
            )
            return CallbackOutcome.FAILED

        receipt = result.receipt or PaymentReceipt(None, None, None, None)
        if not self.repository.mark_completed(
            transaction.transaction_id, receipt, now, raw
        ):
            return CallbackOutcome.DUPLICATE
        logger.info(
            "Payment completed",
            extra={
                "transaction_id": transaction.transaction_id,
                "receipt": receipt.receipt_number,
            },
        )

        completed = replace(
            transaction,
            status=TransactionStatus.COMPLETED,
            mpesa_receipt_number=receipt.receipt_number,
            amount_paid=receipt.amount,
            transaction_date=receipt.transaction_date,
            completed_at=now,
        )
        # The payment stays completed even if unlocking fails.
        try:
            self.entitlement_service.unlock_images(completed)
        except Exception as exc:
            logger.exception(
                "Entitlement update failed",
                extra={"transaction_id": transaction.transaction_id},
            )
            self.repository.record_error(
                transaction.transaction_id, f"Entitlement update failed: {exc}"
            )
        return CallbackOutcome.COMPLETED


def _as_str(value: object) -> str | None:
    return str(value) if value is not None else None
