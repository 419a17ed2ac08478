"""
Storage Service

Uploads payment screenshots and UPI QR codes to Supabase Storage and hands
back their public URL.
"""

import time
import uuid
from typing import Optional

from supabase import Client

from mockbook.config import Config
from mockbook.db.supabase import get_supabase
from mockbook.utils.exceptions import StorageError, ValidationError
from mockbook.utils.logger import get_logger

logger = get_logger(__name__)

ALLOWED_IMAGE_TYPES = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
}


class StorageService:
    """Service for image uploads to Supabase Storage"""

    def __init__(self, config: Config, client: Optional[Client] = None):
        self.config = config
        self._client = client

    @property
    def client(self) -> Client:
        if self._client is None:
            self._client = get_supabase(self.config)
        return self._client

    def validate_image(self, file_bytes: bytes, mime_type: Optional[str]) -> str:
        """Return the file extension for an allowed image or raise ValidationError."""
        ext = ALLOWED_IMAGE_TYPES.get((mime_type or "").lower())
        if ext is None:
            raise ValidationError("Only PNG and JPEG images are allowed", "StorageService")
        if not file_bytes:
            raise ValidationError("Uploaded file is empty", "StorageService")
        max_bytes = self.config.supabase.max_upload_bytes
        if len(file_bytes) > max_bytes:
            raise ValidationError(
                f"File too large. Maximum size is {max_bytes // (1024 * 1024)}MB",
                "StorageService",
            )
        return ext

    def upload(self, file_bytes: bytes, mime_type: Optional[str], folder: str) -> str:
        """Upload an image under `folder/` and return its public URL."""
        ext = self.validate_image(file_bytes, mime_type)
        path = f"{folder.strip('/')}/{int(time.time())}_{uuid.uuid4().hex}.{ext}"
        bucket = self.config.supabase.bucket
        try:
            self.client.storage.from_(bucket).upload(
                path=path,
                file=file_bytes,
                file_options={"content-type": mime_type.lower()},
            )
            public_url = self.client.storage.from_(bucket).get_public_url(path)
        except Exception as e:
            logger.error(f"[StorageService] Error uploading {path}: {e}")
            raise StorageError(f"Failed to upload to Supabase Storage: {str(e)}", "StorageService")
        logger.info(f"[StorageService] Uploaded {path} ({len(file_bytes)} bytes)")
        return public_url
