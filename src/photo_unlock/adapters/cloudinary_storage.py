"""Image storage backed by Cloudinary."""

import io
import logging
from dataclasses import dataclass

import cloudinary
import cloudinary.exceptions
import cloudinary.uploader

from photo_unlock.domain.photos import UploadedImage
from photo_unlock.errors import DependencyError
from photo_unlock.services.photos import ImageStorage

logger = logging.getLogger(__name__)

MAX_DIMENSION = 1920
UPLOAD_TRANSFORMATION = [
    {"quality": "auto:good"},
    {"fetch_format": "auto"},
    {"width": MAX_DIMENSION, "height": MAX_DIMENSION, "crop": "limit"},
]


def public_id_from_url(image_url: str) -> str | None:
    """Return the Cloudinary public id embedded in a delivery URL."""
    if "cloudinary.com" not in image_url:
        return None
    parts = image_url.split("/")
    if "upload" not in parts:
        return None
    start = parts.index("upload") + 1
    version = parts[start] if start < len(parts) else ""
    if version.startswith("v") and version[1:].isdigit():
        start += 1
    path = "/".join(parts[start:])
    if not path:
        return None
    stem, _, _extension = path.rpartition(".")
    return stem or path


@dataclass
class CloudinaryImageStorage(ImageStorage):
    """Upload and delete images with the Cloudinary SDK."""

    cloud_name: str
    api_key: str
    api_secret: str

    @classmethod
    def create(
        cls, cloud_name: str, api_key: str, api_secret: str
    ) -> "CloudinaryImageStorage":
        """Configure the SDK and return a storage instance."""
        cloudinary.config(
            cloud_name=cloud_name,
            api_key=api_key,
            api_secret=api_secret,
            secure=True,
        )
        return cls(cloud_name=cloud_name, api_key=api_key, api_secret=api_secret)

    def upload_image(self, image: UploadedImage, folder: str, public_id: str) -> str:
        """Upload an image and return its secure URL."""
        try:
            result = cloudinary.uploader.upload(
                io.BytesIO(image.content),
                folder=folder,
                public_id=public_id,
                resource_type="image",
                transformation=UPLOAD_TRANSFORMATION,
            )
        except cloudinary.exceptions.Error as exc:
            logger.exception(
                "Cloudinary upload failed", extra={"image_name": image.filename}
            )
            raise DependencyError("Failed to upload images to cloud storage") from exc
        url = result.get("secure_url")
        if not url:
            raise DependencyError("Cloud storage returned no image URL")
        return str(url)

    def delete_image(self, image_url: str) -> bool:
        """Delete the asset behind a URL; return False if it could not be removed."""
        if "cloudinary.com" not in image_url:
            return True
        public_id = public_id_from_url(image_url)
        if public_id is None:
            logger.warning("Invalid Cloudinary URL", extra={"image_url": image_url})
            return False
        try:
            result = cloudinary.uploader.destroy(public_id, resource_type="image")
        except cloudinary.exceptions.Error:
            logger.exception(
                "Cloudinary deletion failed", extra={"public_id": public_id}
            )
            return False
        return result.get("result") in {"ok", "not found"}
