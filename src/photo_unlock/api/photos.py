"""Endpoints for sending and viewing locked photo collections."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile

from photo_unlock.api.dependencies import (
    general_rate_limit,
    get_container,
    require_user,
    upload_rate_limit,
)
from photo_unlock.api.models import BulkDeleteRequest
from photo_unlock.domain.photos import UploadedImage
from photo_unlock.domain.users import AuthenticatedUser  # noqa: TC001

if TYPE_CHECKING:
    from datetime import datetime

    from photo_unlock.domain.photos import CollectionPage, PhotoCollection

router = APIRouter(prefix="/images", tags=["images"])


@router.post("/send", dependencies=[Depends(upload_rate_limit)])
async def send_images(
    request: Request,
    recipient_id: str = Form(default=""),
    images: list[UploadFile] | None = File(default=None),
    user: AuthenticatedUser = Depends(require_user),
) -> dict[str, object]:
    """Upload images and send them, locked, to another user."""
    uploads = [
        UploadedImage(
            filename=upload.filename or "image",
            content_type=upload.content_type or "",
            content=await upload.read(),
        )
        for upload in images or []
    ]
    receipt = await asyncio.to_thread(
        get_container(request).photo_service.send_images,
        user.id,
        recipient_id,
        uploads,
    )
    collection = receipt.collection
    return {
        "success": True,
        "message": (
            f"{receipt.images_sent} images sent successfully to "
            f"{receipt.recipient_name}"
        ),
        "data": {
            "photos_id": collection.id,
            "sender_id": collection.sender_id,
            "recipient_id": collection.recipient_id,
            "images_sent": receipt.images_sent,
            "total_unpaid_images": len(collection.unpaid_images),
            "total_paid_images": len(collection.paid_images),
            "recipient_name": receipt.recipient_name,
            "sender_name": receipt.sender_name,
            "created_at": _iso(collection.created_at),
            "updated_at": _iso(collection.updated_at),
        },
    }


@router.get("/sent", dependencies=[Depends(general_rate_limit)])
def sent_images(
    request: Request,
    page: int = 1,
    limit: int = 10,
    user: AuthenticatedUser = Depends(require_user),
) -> dict[str, object]:
    """Return collections the caller has sent."""
    result = get_container(request).photo_service.list_sent(user.id, page, limit)
    return {
        "success": True,
        "sent_photos": [
            {**_collection_counts(collection), "recipient_id": collection.recipient_id}
            for collection in result.items
        ],
        "pagination": _pagination(result),
    }


@router.get("/received", dependencies=[Depends(general_rate_limit)])
def received_images(
    request: Request,
    page: int = 1,
    limit: int = 10,
    user: AuthenticatedUser = Depends(require_user),
) -> dict[str, object]:
    """Return collections sent to the caller; only paid images expose URLs."""
    result = get_container(request).photo_service.list_received(user.id, page, limit)
    return {
        "success": True,
        "received_photos": [
            {
                **_collection_counts(collection),
                "sender_id": collection.sender_id,
                "paid_images": [
                    {"id": image.id, "image_url": image.image_url}
                    for image in collection.paid_images
                ],
                "unpaid_image_ids": [image.id for image in collection.unpaid_images],
                "has_unpaid_images": bool(collection.unpaid_images),
            }
            for collection in result.items
        ],
        "pagination": _pagination(result),
    }


@router.post("/bulk-delete", dependencies=[Depends(general_rate_limit)])
def bulk_delete(
    body: BulkDeleteRequest,
    request: Request,
    user: AuthenticatedUser = Depends(require_user),
) -> dict[str, object]:
    """Delete several images, reporting each failure."""
    result = get_container(request).photo_service.bulk_delete(user.id, body.image_ids)
    return {
        "success": True,
        "message": "Bulk deletion completed",
        "results": {
            "total_count": result.total_count,
            "success_count": result.success_count,
            "failed_count": result.failed_count,
            "errors": result.errors,
            "cloudinary_errors": result.cdn_errors,
        },
    }


@router.get("/{image_id}/ownership", dependencies=[Depends(general_rate_limit)])
def image_ownership(
    image_id: str,
    request: Request,
    user: AuthenticatedUser = Depends(require_user),
) -> dict[str, object]:
    """Report whether the caller may delete an image."""
    ownership = get_container(request).photo_service.get_ownership(user.id, image_id)
    return {
        "success": True,
        "can_delete": ownership.can_delete,
        "is_admin": ownership.is_admin,
        "is_sender": ownership.is_sender,
        "is_recipient": ownership.is_recipient,
    }


@router.delete("/{image_id}", dependencies=[Depends(general_rate_limit)])
def delete_image(
    image_id: str,
    request: Request,
    user: AuthenticatedUser = Depends(require_user),
) -> dict[str, object]:
    """Delete an image from its collection and the CDN."""
    cdn_deleted = get_container(request).photo_service.delete_image(user.id, image_id)
    return {
        "success": True,
        "message": "Image deleted successfully",
        "cloudinary_deleted": cdn_deleted,
    }


def _collection_counts(collection: PhotoCollection) -> dict[str, object]:
    return {
        "id": collection.id,
        "total_images": len(collection.images),
        "paid_images_count": len(collection.paid_images),
        "unpaid_images_count": len(collection.unpaid_images),
        "is_payment_required": collection.is_payment_required,
        "created_at": _iso(collection.created_at),
        "updated_at": _iso(collection.updated_at),
    }


def _pagination(result: CollectionPage) -> dict[str, object]:
    return {
        "page": result.page,
        "limit": result.limit,
        "total": result.total,
        "has_more": result.has_more,
    }


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None
