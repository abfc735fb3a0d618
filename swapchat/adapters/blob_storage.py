"""
Blob storage interface for chat images.

Storage accepts an image blob and returns a publicly fetchable URL. The local
implementation writes under a directory that the API serves as static files.
"""

from __future__ import annotations

import asyncio
import logging
import mimetypes
import os
import uuid
from abc import ABC, abstractmethod
from typing import Optional

from swapchat.exceptions import TransportError, ValidationError

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {"png", "jpg", "jpeg", "gif", "webp"}
DEFAULT_PREFIX = "chat-images"


class BlobStorage(ABC):
    """Contract for blob stores used by the image-send path."""

    @abstractmethod
    async def upload(
        self, data: bytes, filename: str, content_type: Optional[str] = None
    ) -> str:
        """Store data and return its public URL. Raise ValidationError or TransportError."""
        ...


def _resolve_extension(filename: str, content_type: Optional[str]) -> str:
    ext = ""
    if filename and "." in filename:
        ext = filename.rsplit(".", 1)[1].lower()
    if not ext and content_type:
        guessed = mimetypes.guess_extension(content_type)
        if guessed:
            ext = guessed.lstrip(".").lower()
    if ext in ("jpe", "jpeg"):
        ext = "jpg"
    if ext not in ALLOWED_EXTENSIONS:
        raise ValidationError(f"File type not allowed: {ext or filename!r}")
    return ext


class LocalBlobStorage(BlobStorage):
    def __init__(
        self,
        root_dir: str,
        public_base_url: str,
        max_bytes: int = 5 * 1024 * 1024,
        prefix: str = DEFAULT_PREFIX,
    ) -> None:
        self.root_dir = root_dir
        self.public_base_url = public_base_url.rstrip("/")
        self.max_bytes = max_bytes
        self.prefix = prefix

    async def upload(
        self, data: bytes, filename: str, content_type: Optional[str] = None
    ) -> str:
        if content_type and not content_type.startswith("image/"):
            raise ValidationError(f"Only images can be uploaded, got {content_type}")
        if not data:
            raise ValidationError("Uploaded file is empty")
        if len(data) > self.max_bytes:
            raise ValidationError(
                f"Image is {len(data)} bytes; the limit is {self.max_bytes}"
            )
        ext = _resolve_extension(filename, content_type)
        relative_path = f"{self.prefix}/{uuid.uuid4().hex}.{ext}"
        try:
            await asyncio.to_thread(self._write, relative_path, data)
        except OSError as e:
            raise TransportError(f"Failed to store {filename}: {e}") from e
        logger.info("Stored image %s (%d bytes)", relative_path, len(data))
        return f"{self.public_base_url}/{relative_path}"

    def _write(self, relative_path: str, data: bytes) -> None:
        file_path = os.path.join(self.root_dir, relative_path)
        os.makedirs(os.path.dirname(file_path), exist_ok=True)
        with open(file_path, "wb") as f:
            f.write(data)
