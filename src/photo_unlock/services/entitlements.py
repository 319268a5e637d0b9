"""Unlock purchased images once a payment completes."""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol

from photo_unlock.domain.photos import ImageRecord
from photo_unlock.domain.transactions import TransactionRecord, TransactionStatus
from photo_unlock.errors import DataInconsistencyError

logger = logging.getLogger(__name__)


class EntitlementRepository(Protocol):
    """Persistence interface for image payment status."""

    def find_unpaid_images(
        self, image_ids: list[str], recipient_id: str
    ) -> list[ImageRecord]:
        """Return unpaid images with these ids in collections sent to the recipient."""

    def mark_images_paid(  # noqa: PLR0913
        self,
        image_ids: list[str],
        transaction_id: str,
        receipt_number: str | None,
        paid_at: datetime,
    ) -> None:
        """Flip the given images to paid in one batch."""

    def touch_collections(self, collection_ids: list[str], updated_at: datetime) -> None:
        """Bump the update timestamp of photo collections."""


@dataclass
class EntitlementService:
    """Move a buyer's purchased images from unpaid to paid."""

    repository: EntitlementRepository

    def unlock_images(self, transaction: TransactionRecord) -> list[str]:
        """Unlock the transaction's images and return the ids that changed.

        Ownership is checked again here: only images in collections whose
        recipient is the buyer are eligible, whatever ids the transaction
        carries. This step is not atomic with the payment update.
        """
        if transaction.status is not TransactionStatus.COMPLETED:
            raise DataInconsistencyError(
                f"Transaction {transaction.transaction_id} is not completed"
            )
        matched = self.repository.find_unpaid_images(
            transaction.photo_ids, transaction.user_id
        )
        if not matched:
            raise DataInconsistencyError(
                "No matching unpaid images found for transaction "
                f"{transaction.transaction_id}"
            )

        matched_ids = [image.id for image in matched]
        unmatched = sorted(set(transaction.photo_ids) - set(matched_ids))
        if unmatched:
            logger.warning(
                "Some purchased images were not unlockable",
                extra={
                    "transaction_id": transaction.transaction_id,
                    "unmatched_ids": unmatched,
                },
            )

        now = datetime.now(tz=UTC)
        self.repository.mark_images_paid(
            matched_ids,
            transaction.transaction_id,
            transaction.mpesa_receipt_number,
            now,
        )
        collection_ids = list(dict.fromkeys(image.collection_id for image in matched))
        self.repository.touch_collections(collection_ids, now)
        logger.info(
            "Unlocked purchased images",
            extra={
                "transaction_id": transaction.transaction_id,
                "image_count": len(matched_ids),
            },
        )
        return matched_ids
