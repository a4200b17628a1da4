"""
Receipt image storage
"""

import asyncio
import logging
import os
import uuid
from abc import ABC, abstractmethod
from typing import Optional

from app.config import settings
from app.core.exceptions import ValidationError

logger = logging.getLogger(__name__)

ALLOWED_CONTENT_TYPES = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
    "application/pdf": ".pdf",
}


def validate_receipt(content: bytes, content_type: Optional[str]) -> str:
    """Returns the file extension for an acceptable receipt"""
    if not content:
        raise ValidationError("Receipt image is empty", field="receipt_image")
    if len(content) > settings.RECEIPT_MAX_BYTES:
        raise ValidationError(
            f"Receipt image exceeds {settings.RECEIPT_MAX_BYTES} bytes",
            field="receipt_image"
        )
    if content_type not in ALLOWED_CONTENT_TYPES:
        raise ValidationError(
            f"Unsupported receipt type: {content_type}",
            field="receipt_image"
        )
    return ALLOWED_CONTENT_TYPES[content_type]


class ReceiptStorage(ABC):

    @abstractmethod
    async def store(self, content: bytes, content_type: Optional[str], filename: Optional[str] = None) -> str:
        """Persist the receipt and return its URL"""


class LocalReceiptStorage(ReceiptStorage):
    """
    Writes receipts under a local directory served at base_url
    """

    def __init__(self, directory: str = settings.RECEIPT_STORAGE_DIR, base_url: str = settings.RECEIPT_BASE_URL):
        self.directory = directory
        self.base_url = base_url.rstrip("/")

    def _write(self, path: str, content: bytes):
        os.makedirs(self.directory, exist_ok=True)
        with open(path, "wb") as f:
            f.write(content)

    async def store(self, content: bytes, content_type: Optional[str], filename: Optional[str] = None) -> str:
        extension = validate_receipt(content, content_type)
        name = f"{uuid.uuid4().hex}{extension}"
        await asyncio.to_thread(self._write, os.path.join(self.directory, name), content)
        logger.info(f"Stored receipt {filename or '<unnamed>'} as {name}")
        return f"{self.base_url}/{name}"


receipt_storage = LocalReceiptStorage()


def get_receipt_storage() -> ReceiptStorage:
    return receipt_storage
