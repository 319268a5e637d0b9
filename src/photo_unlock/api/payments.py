"""Payment, callback and transaction reporting endpoints."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

from photo_unlock.api.dependencies import (
    general_rate_limit,
    get_container,
    payment_rate_limit,
    require_user,
)
from photo_unlock.api.models import CallbackEnvelope, StkPushRequest, StkQueryRequest
from photo_unlock.domain.transactions import TransactionStatus
from photo_unlock.domain.users import AuthenticatedUser  # noqa: TC001
from photo_unlock.errors import AuthorizationError, ValidationError

if TYPE_CHECKING:
    from datetime import datetime

    from photo_unlock.domain.transactions import TransactionRecord

logger = logging.getLogger(__name__)

router = APIRouter(tags=["payments"])
ACKNOWLEDGEMENT = {"ResultCode": 0, "ResultDesc": "Accepted"}


@router.post(
    "/mpesa/stk-push",
    dependencies=[Depends(general_rate_limit), Depends(payment_rate_limit)],
)
async def stk_push(
    body: StkPushRequest,
    request: Request,
    user: AuthenticatedUser = Depends(require_user),
) -> JSONResponse:
    """Start a push payment for a set of photos."""
    if body.user_id != user.id:
        raise AuthorizationError("Cannot start a payment for another user")
    outcome = await get_container(request).payment_service.initiate_stk_push(
        user_id=body.user_id,
        phone_number=body.phone_number,
        amount=body.amount,
        photo_ids=body.photo_ids,
        transaction_desc=body.transaction_desc,
        account_reference=body.account_reference,
    )
    if not outcome.accepted:
        return JSONResponse(
            status_code=400,
            content={
                "success": False,
                "error": outcome.error,
                "transaction_id": outcome.transaction_id,
            },
        )
    return JSONResponse(
        content={
            "success": True,
            "message": "STK Push sent successfully",
            "data": {
                "transaction_id": outcome.transaction_id,
                "checkout_request_id": outcome.checkout_request_id,
                "merchant_request_id": outcome.merchant_request_id,
                "customer_message": outcome.customer_message,
            },
        }
    )


@router.post("/mpesa/callback")
async def mpesa_callback(request: Request) -> dict[str, object]:
    """Receive the gateway's payment result; always acknowledged."""
    try:
        raw = await request.json()
        envelope = CallbackEnvelope.model_validate(raw)
    except (ValueError, PydanticValidationError):
        logger.exception("Malformed M-Pesa callback")
        return ACKNOWLEDGEMENT
    try:
        outcome = await asyncio.to_thread(
            get_container(request).callback_service.handle_result,
            envelope.to_result(),
            raw,
        )
        logger.info("Processed M-Pesa callback", extra={"outcome": outcome.value})
    except Exception:
        logger.exception("Failed to process M-Pesa callback")
    return ACKNOWLEDGEMENT


@router.post("/mpesa/validation")
async def mpesa_validation(request: Request) -> dict[str, object]:
    """Acknowledge a C2B validation request."""
    await _log_gateway_payload(request, "Received M-Pesa validation request")
    return ACKNOWLEDGEMENT


@router.post("/mpesa/confirmation")
async def mpesa_confirmation(request: Request) -> dict[str, object]:
    """Acknowledge a C2B confirmation."""
    await _log_gateway_payload(request, "Received M-Pesa confirmation")
    return ACKNOWLEDGEMENT


@router.post(
    "/mpesa/stkpush/query",
    dependencies=[Depends(general_rate_limit), Depends(require_user)],
)
async def stk_query(body: StkQueryRequest, request: Request) -> dict[str, object]:
    """Return the gateway's view of a push request."""
    data = await get_container(request).payment_service.query_stk_status(
        body.checkout_request_id
    )
    return {"success": True, "data": data}


@router.get(
    "/mpesa/transaction/{transaction_id}",
    dependencies=[Depends(general_rate_limit)],
)
def transaction_status(
    transaction_id: str,
    request: Request,
    user: AuthenticatedUser = Depends(require_user),
) -> dict[str, object]:
    """Return one of the caller's transactions."""
    record = get_container(request).transaction_service.get_transaction(
        transaction_id, user_id=user.id
    )
    return {"success": True, "data": serialize_transaction(record)}


@router.get("/transactions", dependencies=[Depends(general_rate_limit)])
def list_transactions(
    request: Request,
    page: int = 1,
    limit: int = 20,
    status: str | None = None,
    user: AuthenticatedUser = Depends(require_user),
) -> dict[str, object]:
    """Return the caller's transaction history."""
    status_filter = None
    if status:
        try:
            status_filter = TransactionStatus(status)
        except ValueError as exc:
            raise ValidationError(f"Unknown transaction status '{status}'") from exc
    result = get_container(request).transaction_service.list_transactions(
        user.id, page=page, limit=limit, status=status_filter
    )
    return {
        "success": True,
        "data": [serialize_transaction(item) for item in result.items],
        "pagination": {
            "page": result.page,
            "limit": result.limit,
            "total": result.total,
            "has_more": result.has_more,
        },
    }


@router.get("/summary", dependencies=[Depends(general_rate_limit)])
def transaction_summary(
    request: Request, user: AuthenticatedUser = Depends(require_user)
) -> dict[str, object]:
    """Return aggregate payment figures for the caller."""
    summary = get_container(request).transaction_service.get_summary(user.id)
    return {
        "success": True,
        "data": {
            "total_transactions": summary.total_transactions,
            **{
                f"{state}_transactions": count
                for state, count in summary.counts.items()
            },
            "total_amount_paid": summary.total_amount_paid,
            "average_transaction_amount": summary.average_transaction_amount,
            "success_rate": summary.success_rate,
            "last_transaction_date": _iso(summary.last_transaction_date),
            "recent_transactions": [
                serialize_transaction(item) for item in summary.recent_transactions
            ],
        },
    }


@router.post("/cleanup-expired", dependencies=[Depends(general_rate_limit)])
def cleanup_expired(
    request: Request, user: AuthenticatedUser = Depends(require_user)
) -> dict[str, object]:
    """Fail transactions that stayed open past the expiry window."""
    container = get_container(request)
    if not container.auth_service.is_admin(user.id):
        raise AuthorizationError("Admin access required")
    expired = container.transaction_service.expire_stale()
    return {"success": True, "expired_count": expired}


def serialize_transaction(record: TransactionRecord) -> dict[str, object]:
    """Return the public JSON view of a transaction."""
    return {
        "transaction_id": record.transaction_id,
        "user_id": record.user_id,
        "phone_number": record.phone_number,
        "amount": record.amount,
        "photo_ids": record.photo_ids,
        "status": record.status.value,
        "checkout_request_id": record.checkout_request_id,
        "merchant_request_id": record.merchant_request_id,
        "mpesa_receipt_number": record.mpesa_receipt_number,
        "amount_paid": record.amount_paid,
        "transaction_date": record.transaction_date,
        "error_message": record.error_message,
        "created_at": _iso(record.created_at),
        "completed_at": _iso(record.completed_at),
    }


async def _log_gateway_payload(request: Request, message: str) -> None:
    try:
        payload = await request.json()
    except ValueError:
        logger.warning("%s with a non-JSON body", message)
        return
    logger.info(message, extra={"payload": payload})


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None
