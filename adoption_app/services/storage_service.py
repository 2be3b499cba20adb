"""
Storage service for handling image uploads to Google Cloud Storage.
"""
import io
import logging
from typing import Callable, Optional

from ..exceptions import StorageError, ServiceUnavailableError
from ..utils.url_helpers import gs_to_public_url, parse_storage_reference
from .. import gcp_clients

logger = logging.getLogger(__name__)


class StorageService:
    """Service for managing image objects in GCS."""

    def __init__(self, storage_client=None, bucket_name: str = ""):
        """
        Initialize storage service.

        Args:
            storage_client: GCS storage client (or None to use global client)
            bucket_name: Name of the GCS bucket
        """
        self.storage_client = storage_client or gcp_clients.storage_client
        self.bucket_name = bucket_name or gcp_clients.BUCKET_NAME

    def public_url(self, path: str) -> str:
        """Public HTTPS URL of an object in this bucket."""
        return gs_to_public_url(f"gs://{self.bucket_name}/{path}")

    def upload_bytes(self, path: str, data: bytes, content_type: str,
                     progress: Optional[Callable[[int, int], None]] = None) -> str:
        """
        Upload image bytes to GCS.

        Args:
            path: Object name inside the bucket
            data: File contents
            content_type: MIME type stored with the object
            progress: Optional callback receiving (bytes_sent, total_bytes)

        Returns:
            str: Public URL of the uploaded image

        Raises:
            ServiceUnavailableError: If storage client is not initialized
            StorageError: If upload fails
        """
        if not self.storage_client:
            raise ServiceUnavailableError("Storage")

        total = len(data)
        if progress:
            progress(0, total)

        try:
            bucket = self.storage_client.bucket(self.bucket_name)
            blob = bucket.blob(path)
            blob.upload_from_file(io.BytesIO(data), size=total, content_type=content_type)
        except Exception as e:
            logger.error(f"Failed to upload image to GCS: {e}")
            raise StorageError(f"Failed to upload image: {str(e)}")

        if progress:
            progress(total, total)

        image_url = self.public_url(path)
        logger.info(f"Successfully uploaded image to {image_url}")
        return image_url

    def delete_image(self, image_url: str) -> bool:
        """
        Delete image from GCS.

        Args:
            image_url: Public URL or gs:// URL of the image

        Returns:
            bool: True if deleted successfully, False otherwise

        Raises:
            ServiceUnavailableError: If storage client is not initialized
        """
        if not self.storage_client:
            raise ServiceUnavailableError("Storage")

        parsed = parse_storage_reference(image_url)
        if not parsed:
            logger.warning(f"Could not parse GCS URL: {image_url}")
            return False

        bucket_name, blob_name = parsed
        try:
            bucket = self.storage_client.bucket(bucket_name)
            blob = bucket.blob(blob_name)
            blob.delete()

            logger.info(f"Successfully deleted image: {image_url}")
            return True

        except Exception as e:
            logger.error(f"Failed to delete image {image_url}: {e}")
            return False
