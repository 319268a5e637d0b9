"""Domain models for sent photo collections."""

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum


class PaymentStatus(StrEnum):
    """Visibility state of a sent image."""

    PAID = "paid"
    UNPAID = "unpaid"


@dataclass(frozen=True)
class ImageRecord:
    """A single image inside a photo collection."""

    id: str
    collection_id: str
    image_url: str
    payment_status: PaymentStatus
    created_at: datetime | None = None
    paid_at: datetime | None = None


@dataclass(frozen=True)
class PhotoCollection:
    """All images one sender has sent to one recipient."""

    id: str
    sender_id: str
    recipient_id: str
    is_payment_required: bool
    images: list[ImageRecord]
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def paid_images(self) -> list[ImageRecord]:
        """Return images the recipient has paid for."""
        return [i for i in self.images if i.payment_status is PaymentStatus.PAID]

    @property
    def unpaid_images(self) -> list[ImageRecord]:
        """Return images still locked behind a payment."""
        return [i for i in self.images if i.payment_status is PaymentStatus.UNPAID]


@dataclass(frozen=True)
class UploadedImage:
    """An image file received from a client, before it reaches the CDN."""

    filename: str
    content_type: str
    content: bytes


@dataclass(frozen=True)
class CollectionPage:
    """One page of photo collections."""

    items: list[PhotoCollection]
    page: int
    limit: int
    total: int

    @property
    def has_more(self) -> bool:
        """Return true when more collections exist after this page."""
        return self.page * self.limit < self.total


@dataclass(frozen=True)
class SendReceipt:
    """Outcome of sending images to a recipient."""

    collection: PhotoCollection
    images_sent: int
    sender_name: str
    recipient_name: str


@dataclass(frozen=True)
class ImageOwnership:
    """What a user may do with one image."""

    is_sender: bool
    is_recipient: bool
    is_admin: bool

    @property
    def can_delete(self) -> bool:
        """Return true for either party of the collection or an admin."""
        return self.is_sender or self.is_recipient or self.is_admin


@dataclass(frozen=True)
class BulkDeleteResult:
    """Per-image outcome of deleting several images at once."""

    total_count: int
    success_count: int
    failed_count: int
    errors: list[str]
    cdn_errors: list[str]
