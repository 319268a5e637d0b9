"""Sending, listing and deleting locked photo collections."""

import logging
import time
from dataclasses import dataclass
from typing import Protocol
from uuid import uuid4

from photo_unlock.domain.photos import (
    BulkDeleteResult,
    CollectionPage,
    ImageOwnership,
    ImageRecord,
    PhotoCollection,
    SendReceipt,
    UploadedImage,
)
from photo_unlock.errors import (
    AuthorizationError,
    NotFoundError,
    ValidationError,
)
from photo_unlock.services.auth import ProfileRepository

logger = logging.getLogger(__name__)

MAX_IMAGES_PER_SEND = 10
MAX_IMAGE_BYTES = 10 * 1024 * 1024
MAX_PAGE_SIZE = 50
SENT_IMAGES_FOLDER = "sent_images"


class ImageStorage(Protocol):
    """Interface for the image CDN."""

    def upload_image(self, image: UploadedImage, folder: str, public_id: str) -> str:
        """Upload an image and return its public URL."""

    def delete_image(self, image_url: str) -> bool:
        """Delete a previously uploaded image; return False on failure."""


class PhotoRepository(Protocol):
    """Persistence interface for photo collections and their images."""

    def get_collection_for_pair(
        self, sender_id: str, recipient_id: str
    ) -> PhotoCollection | None:
        """Return the collection one sender keeps for one recipient."""

    def create_collection(self, sender_id: str, recipient_id: str) -> PhotoCollection:
        """Create an empty payment-required collection."""

    def add_images(self, collection_id: str, image_urls: list[str]) -> list[ImageRecord]:
        """Insert unpaid image rows into a collection."""

    def list_sent(
        self, sender_id: str, offset: int, limit: int
    ) -> tuple[list[PhotoCollection], int]:
        """Return collections sent by a user and the total count."""

    def list_received(
        self, recipient_id: str, offset: int, limit: int
    ) -> tuple[list[PhotoCollection], int]:
        """Return collections received by a user and the total count."""

    def get_image(self, image_id: str) -> tuple[ImageRecord, PhotoCollection] | None:
        """Return an image together with its collection."""

    def delete_image(self, image_id: str) -> None:
        """Delete an image row."""


@dataclass
class PhotoService:
    """Application service for locked photo collections."""

    repository: PhotoRepository
    profile_repository: ProfileRepository
    storage: ImageStorage

    def send_images(
        self, sender_id: str, recipient_id: str, images: list[UploadedImage]
    ) -> SendReceipt:
        """Upload images and add them, unpaid, to the recipient's collection."""
        recipient_id = (recipient_id or "").strip()
        if not recipient_id:
            raise ValidationError("Recipient ID is required")
        if not images:
            raise ValidationError("No images provided")
        if len(images) > MAX_IMAGES_PER_SEND:
            raise ValidationError(
                f"Maximum {MAX_IMAGES_PER_SEND} images allowed per send"
            )
        if sender_id == recipient_id:
            raise ValidationError("Cannot send images to yourself")
        for image in images:
            _validate_image(image)

        recipient = self.profile_repository.get_profile(recipient_id)
        if recipient is None:
            raise NotFoundError("Recipient user", recipient_id)

        urls: list[str] = []
        try:
            for image in images:
                public_id = (
                    f"sent_{sender_id}_to_{recipient_id}_"
                    f"{int(time.time() * 1000)}_{uuid4().hex[:9]}"
                )
                urls.append(
                    self.storage.upload_image(image, SENT_IMAGES_FOLDER, public_id)
                )

            collection = self.repository.get_collection_for_pair(
                sender_id, recipient_id
            )
            if collection is None:
                collection = self.repository.create_collection(sender_id, recipient_id)
            added = self.repository.add_images(collection.id, urls)
        except Exception:
            logger.exception(
                "Sending images failed", extra={"uploaded_count": len(urls)}
            )
            self._discard_uploads(urls)
            raise
        updated = PhotoCollection(
            id=collection.id,
            sender_id=collection.sender_id,
            recipient_id=collection.recipient_id,
            is_payment_required=collection.is_payment_required,
            images=[*collection.images, *added],
            created_at=collection.created_at,
            updated_at=collection.updated_at,
        )
        sender = self.profile_repository.get_profile(sender_id)
        logger.info(
            "Images sent",
            extra={"collection_id": collection.id, "image_count": len(added)},
        )
        return SendReceipt(
            collection=updated,
            images_sent=len(added),
            sender_name=sender.name if sender else "Someone",
            recipient_name=recipient.name,
        )

    def list_sent(self, user_id: str, page: int = 1, limit: int = 10) -> CollectionPage:
        """Return collections the user has sent."""
        offset = _offset(page, limit)
        items, total = self.repository.list_sent(user_id, offset, limit)
        return CollectionPage(items=items, page=page, limit=limit, total=total)

    def list_received(
        self, user_id: str, page: int = 1, limit: int = 10
    ) -> CollectionPage:
        """Return collections sent to the user."""
        offset = _offset(page, limit)
        items, total = self.repository.list_received(user_id, offset, limit)
        return CollectionPage(items=items, page=page, limit=limit, total=total)

    def delete_image(self, user_id: str, image_id: str) -> bool:
        """Delete an image for its sender, recipient or an admin.

        Returns whether the CDN asset was removed; a CDN failure does not
        stop the row from being deleted.
        """
        found = self.repository.get_image(image_id)
        if found is None:
            raise NotFoundError("Image", image_id)
        image, collection = found
        if user_id not in {collection.sender_id, collection.recipient_id}:
            if not self._is_admin(user_id):
                raise AuthorizationError(
                    "You do not have permission to delete this image"
                )
        return self._remove(image)

    def bulk_delete(self, user_id: str, image_ids: list[str]) -> BulkDeleteResult:
        """Delete several images, reporting each failure instead of stopping."""
        ids = list(dict.fromkeys(i.strip() for i in image_ids or [] if i and i.strip()))
        if not ids:
            raise ValidationError("No image IDs provided")
        is_admin = self._is_admin(user_id)
        errors: list[str] = []
        cdn_errors: list[str] = []
        deleted = 0
        for image_id in ids:
            found = self.repository.get_image(image_id)
            if found is None:
                errors.append(f"{image_id}: Image not found")
                continue
            image, collection = found
            parties = {collection.sender_id, collection.recipient_id}
            if user_id not in parties and not is_admin:
                errors.append(f"{image_id}: Permission denied")
                continue
            try:
                if not self._remove(image):
                    cdn_errors.append(f"{image_id}: CDN deletion failed")
            except Exception:
                logger.exception("Image deletion failed", extra={"image_id": image_id})
                errors.append(f"{image_id}: Database deletion failed")
                continue
            deleted += 1

        logger.info(
            "Bulk delete completed",
            extra={"deleted_count": deleted, "requested_count": len(ids)},
        )
        return BulkDeleteResult(
            total_count=len(ids),
            success_count=deleted,
            failed_count=len(errors),
            errors=errors,
            cdn_errors=cdn_errors,
        )

    def get_ownership(self, user_id: str, image_id: str) -> ImageOwnership:
        """Return the caller's relation to an image; unknown images grant nothing."""
        found = self.repository.get_image(image_id)
        collection = found[1] if found is not None else None
        return ImageOwnership(
            is_sender=collection is not None and collection.sender_id == user_id,
            is_recipient=collection is not None and collection.recipient_id == user_id,
            is_admin=self._is_admin(user_id),
        )

    def _is_admin(self, user_id: str) -> bool:
        profile = self.profile_repository.get_profile(user_id)
        return profile is not None and profile.is_admin

    def _remove(self, image: ImageRecord) -> bool:
        cdn_deleted = self.storage.delete_image(image.image_url)
        if not cdn_deleted:
            logger.warning("CDN deletion failed", extra={"image_id": image.id})
        self.repository.delete_image(image.id)
        return cdn_deleted

    def _discard_uploads(self, urls: list[str]) -> None:
        for url in urls:
            if not self.storage.delete_image(url):
                logger.warning("Orphaned CDN asset", extra={"image_url": url})


def _validate_image(image: UploadedImage) -> None:
    if not image.content_type.startswith("image/"):
        raise ValidationError("Only image files are allowed")
    if not image.content:
        raise ValidationError(f"Image '{image.filename}' is empty")
    if len(image.content) > MAX_IMAGE_BYTES:
        raise ValidationError("File too large. Maximum size is 10MB per image")


def _offset(page: int, limit: int) -> int:
    if page < 1:
        raise ValidationError("page must be at least 1")
    if not 1 <= limit <= MAX_PAGE_SIZE:
        raise ValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}")
    return (page - 1) * limit
