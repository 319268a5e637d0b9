"""Supabase implementation for photo collections and their images."""

from dataclasses import dataclass
from datetime import UTC, datetime

from supabase import Client

from photo_unlock.domain.photos import ImageRecord, PaymentStatus, PhotoCollection
from photo_unlock.services.entitlements import EntitlementRepository
from photo_unlock.services.photos import PhotoRepository

COLLECTIONS = "photos"
IMAGES = "images"
IMAGE_COLUMNS = "id, photo_collection_id, image_url, payment_status, created_at, paid_at"
COLLECTION_COLUMNS = (
    "id, sender_id, recipient_id, is_payment_required, created_at, updated_at, "
    f"images({IMAGE_COLUMNS})"
)


@dataclass
class SupabaseImageRepository(EntitlementRepository, PhotoRepository):
    """Supabase-backed repository for the photos and images tables."""

    client: Client

    def find_unpaid_images(
        self, image_ids: list[str], recipient_id: str
    ) -> list[ImageRecord]:
        """Return unpaid images with these ids in collections sent to the recipient."""
        if not image_ids:
            return []
        response = (
            self.client.table(IMAGES)
            .select(f"{IMAGE_COLUMNS}, photos!inner(recipient_id)")
            .in_("id", image_ids)
            .eq("payment_status", PaymentStatus.UNPAID.value)
            .eq("photos.recipient_id", recipient_id)
            .execute()
        )
        return [_parse_image(row) for row in response.data or []]

    def mark_images_paid(  # noqa: PLR0913
        self,
        image_ids: list[str],
        transaction_id: str,
        receipt_number: str | None,
        paid_at: datetime,
    ) -> None:
        """Flip the given images to paid in one batch."""
        self.client.table(IMAGES).update(
            {
                "payment_status": PaymentStatus.PAID.value,
                "paid_at": paid_at.isoformat(),
                "transaction_id": transaction_id,
                "mpesa_receipt_number": receipt_number,
            }
        ).in_("id", image_ids).execute()

    def touch_collections(self, collection_ids: list[str], updated_at: datetime) -> None:
        """Bump the update timestamp of photo collections."""
        if not collection_ids:
            return
        self.client.table(COLLECTIONS).update(
            {"updated_at": updated_at.isoformat()}
        ).in_("id", collection_ids).execute()

    def get_collection_for_pair(
        self, sender_id: str, recipient_id: str
    ) -> PhotoCollection | None:
        """Return the collection one sender keeps for one recipient."""
        response = (
            self.client.table(COLLECTIONS)
            .select(COLLECTION_COLUMNS)
            .eq("sender_id", sender_id)
            .eq("recipient_id", recipient_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _parse_collection(response.data[0])

    def create_collection(self, sender_id: str, recipient_id: str) -> PhotoCollection:
        """Create an empty payment-required collection."""
        now = datetime.now(tz=UTC).isoformat()
        response = (
            self.client.table(COLLECTIONS)
            .insert(
                {
                    "sender_id": sender_id,
                    "recipient_id": recipient_id,
                    "is_payment_required": True,
                    "created_at": now,
                    "updated_at": now,
                }
            )
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to create photo collection")
        return _parse_collection(response.data[0])

    def add_images(self, collection_id: str, image_urls: list[str]) -> list[ImageRecord]:
        """Insert unpaid image rows into a collection."""
        now = datetime.now(tz=UTC).isoformat()
        response = (
            self.client.table(IMAGES)
            .insert(
                [
                    {
                        "photo_collection_id": collection_id,
                        "image_url": url,
                        "payment_status": PaymentStatus.UNPAID.value,
                        "created_at": now,
                    }
                    for url in image_urls
                ]
            )
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to save images")
        self.touch_collections([collection_id], datetime.now(tz=UTC))
        return [_parse_image(row) for row in response.data]

    def list_sent(
        self, sender_id: str, offset: int, limit: int
    ) -> tuple[list[PhotoCollection], int]:
        """Return collections sent by a user and the total count."""
        return self._list_collections("sender_id", sender_id, offset, limit)

    def list_received(
        self, recipient_id: str, offset: int, limit: int
    ) -> tuple[list[PhotoCollection], int]:
        """Return collections received by a user and the total count."""
        return self._list_collections("recipient_id", recipient_id, offset, limit)

    def get_image(self, image_id: str) -> tuple[ImageRecord, PhotoCollection] | None:
        """Return an image together with its collection."""
        response = (
            self.client.table(IMAGES)
            .select(
                f"{IMAGE_COLUMNS}, photos(id, sender_id, recipient_id, "
                "is_payment_required, created_at, updated_at)"
            )
            .eq("id", image_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        row = response.data[0]
        collection_row = row.get("photos")
        if not isinstance(collection_row, dict):
            return None
        return _parse_image(row), _parse_collection(collection_row)

    def delete_image(self, image_id: str) -> None:
        """Delete an image row."""
        self.client.table(IMAGES).delete().eq("id", image_id).execute()

    def _list_collections(
        self, column: str, user_id: str, offset: int, limit: int
    ) -> tuple[list[PhotoCollection], int]:
        response = (
            self.client.table(COLLECTIONS)
            .select(COLLECTION_COLUMNS, count="exact")
            .eq(column, user_id)
            .order("updated_at", desc=True)
            .range(offset, offset + limit - 1)
            .execute()
        )
        rows = response.data or []
        total = response.count if response.count is not None else len(rows)
        return [_parse_collection(row) for row in rows], total


def _parse_image(row: dict[str, object]) -> ImageRecord:
    return ImageRecord(
        id=str(row["id"]),
        collection_id=str(row["photo_collection_id"]),
        image_url=str(row["image_url"]),
        payment_status=PaymentStatus(str(row.get("payment_status") or "unpaid")),
        created_at=_parse_datetime(row.get("created_at")),
        paid_at=_parse_datetime(row.get("paid_at")),
    )


def _parse_collection(row: dict[str, object]) -> PhotoCollection:
    images = row.get("images") or []
    return PhotoCollection(
        id=str(row["id"]),
        sender_id=str(row["sender_id"]),
        recipient_id=str(row["recipient_id"]),
        is_payment_required=bool(row.get("is_payment_required", True)),
        images=[_parse_image(image) for image in images] if isinstance(images, list) else [],
        created_at=_parse_datetime(row.get("created_at")),
        updated_at=_parse_datetime(row.get("updated_at")),
    )


def _parse_datetime(value: object) -> datetime | None:
    if isinstance(value, str) and value:
        return datetime.fromisoformat(value)
    return None
