"""Push-payment initiation for unlocking sent photos."""

import asyncio
import logging
import math
import re
import time
from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import uuid4

from photo_unlock.adapters.mpesa_client import MpesaClient
from photo_unlock.domain.transactions import (
    StkPushOutcome,
    TransactionRecord,
    TransactionStatus,
)
from photo_unlock.errors import DependencyError, ValidationError
from photo_unlock.services.transactions import TransactionRepository

logger = logging.getLogger(__name__)

MIN_AMOUNT = 1
MAX_AMOUNT = 70_000
COUNTRY_CODE = "254"
LOCAL_NUMBER_LENGTH = 9
DEFAULT_DESCRIPTION = "Photo Purchase Payment"
_CANONICAL_PHONE = re.compile(r"^254[17]\d{8}$")


def normalize_phone_number(raw: str) -> str:
    """Return the phone number in 2547XXXXXXXX / 2541XXXXXXXX form."""
    digits = re.sub(r"\D", "", raw or "")
    if digits.startswith("0"):
        digits = COUNTRY_CODE + digits[1:]
    elif len(digits) == LOCAL_NUMBER_LENGTH:
        digits = COUNTRY_CODE + digits
    if not _CANONICAL_PHONE.match(digits):
        raise ValidationError(
            "Invalid phone number format. Use 254XXXXXXXXX or 0XXXXXXXXX"
        )
    return digits


def validate_amount(amount: float) -> float:
    """Return the amount if it is within the accepted range."""
    try:
        value = float(amount)
    except (TypeError, ValueError) as exc:
        raise ValidationError("Amount must be a number") from exc
    if not math.isfinite(value) or not MIN_AMOUNT <= value <= MAX_AMOUNT:
        raise ValidationError(f"Amount must be between {MIN_AMOUNT} and {MAX_AMOUNT}")
    return value


def validate_photo_ids(photo_ids: list[str]) -> list[str]:
    """Return de-duplicated photo ids, rejecting an empty selection."""
    cleaned = [pid.strip() for pid in photo_ids or [] if pid and pid.strip()]
    if not cleaned:
        raise ValidationError("photo_ids must contain at least one photo id")
    return list(dict.fromkeys(cleaned))


def new_transaction_id() -> str:
    """Return a unique, time-ordered transaction identifier."""
    return f"TXN_{int(time.time() * 1000)}_{uuid4().hex[:9]}"


@dataclass
class PaymentService:
    """Start push payments and query their gateway status."""

    mpesa_client: MpesaClient
    repository: TransactionRepository
    callback_url: str

    async def initiate_stk_push(  # noqa: PLR0913
        self,
        *,
        user_id: str,
        phone_number: str,
        amount: float,
        photo_ids: list[str],
        transaction_desc: str | None = None,
        account_reference: str | None = None,
    ) -> StkPushOutcome:
        """Validate a purchase, persist it and push a payment prompt."""
        phone = normalize_phone_number(phone_number)
        value = validate_amount(amount)
        photos = validate_photo_ids(photo_ids)

        access_token = await self.mpesa_client.get_access_token()

        transaction_id = new_transaction_id()
        record = TransactionRecord(
            transaction_id=transaction_id,
            user_id=user_id,
            phone_number=phone,
            amount=value,
            photo_ids=photos,
            status=TransactionStatus.INITIATED,
            created_at=datetime.now(tz=UTC),
        )
        try:
            await asyncio.to_thread(self.repository.create_transaction, record)
        except Exception as exc:
            logger.exception(
                "Failed to create transaction record",
                extra={"transaction_id": transaction_id},
            )
            raise DependencyError("Failed to create transaction record") from exc

        logger.info(
            "Sending STK push",
            extra={"transaction_id": transaction_id, "photo_count": len(photos)},
        )
        # A transport failure leaves the initiated row for reconciliation.
        response = await self.mpesa_client.stk_push(
            access_token,
            phone_number=phone,
            amount=math.floor(value + 0.5),
            account_reference=account_reference or transaction_id,
            description=transaction_desc or DEFAULT_DESCRIPTION,
            callback_url=self.callback_url,
        )

        if str(response.get("ResponseCode")) == "0":
            checkout_request_id = str(response.get("CheckoutRequestID", ""))
            merchant_request_id = str(response.get("MerchantRequestID", ""))
            await asyncio.to_thread(
                self.repository.mark_pending,
                transaction_id,
                checkout_request_id,
                merchant_request_id,
            )
            return StkPushOutcome(
                accepted=True,
                transaction_id=transaction_id,
                checkout_request_id=checkout_request_id,
                merchant_request_id=merchant_request_id,
                customer_message=_optional_str(response.get("CustomerMessage")),
            )

        error = str(
            response.get("ResponseDescription")
            or response.get("errorMessage")
            or "STK Push failed"
        )
        logger.warning(
            "STK push rejected by gateway",
            extra={"transaction_id": transaction_id, "error": error},
        )
        await asyncio.to_thread(
            self.repository.mark_failed, transaction_id, error, datetime.now(tz=UTC)
        )
        return StkPushOutcome(accepted=False, transaction_id=transaction_id, error=error)

    async def query_stk_status(self, checkout_request_id: str) -> dict[str, object]:
        """Ask the gateway for the current state of a push request."""
        if not checkout_request_id.strip():
            raise ValidationError("checkout_request_id is required")
        access_token = await self.mpesa_client.get_access_token()
        return await self.mpesa_client.stk_query(access_token, checkout_request_id)


def _optional_str(value: object) -> str | None:
    return str(value) if value is not None else None
