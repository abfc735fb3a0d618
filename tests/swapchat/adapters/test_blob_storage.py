"""Tests for LocalBlobStorage."""

import os
from unittest.mock import patch

import pytest

from swapchat.exceptions import TransportError, ValidationError

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


@pytest.mark.asyncio
async def test_upload_writes_file_and_returns_public_url(blob_storage):
    url = await blob_storage.upload(PNG_BYTES, "photo.PNG", "image/png")

    assert url.startswith("http://testserver/storage/chat-images/")
    assert url.endswith(".png")
    relative = url.removeprefix("http://testserver/storage/")
    with open(os.path.join(blob_storage.root_dir, relative), "rb") as f:
        assert f.read() == PNG_BYTES


@pytest.mark.asyncio
async def test_upload_infers_extension_from_content_type(blob_storage):
    url = await blob_storage.upload(PNG_BYTES, "blob", "image/jpeg")
    assert url.endswith(".jpg")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "data,filename,content_type",
    [
        (PNG_BYTES, "notes.txt", "text/plain"),
        (PNG_BYTES, "archive.zip", None),
        (b"", "empty.png", "image/png"),
        (b"x" * 2048, "large.png", "image/png"),
    ],
)
async def test_upload_rejects_invalid_files(blob_storage, data, filename, content_type):
    with pytest.raises(ValidationError):
        await blob_storage.upload(data, filename, content_type)


@pytest.mark.asyncio
async def test_upload_io_failure_is_transport_error(blob_storage):
    with patch("swapchat.adapters.blob_storage.open", side_effect=OSError("disk full"), create=True):
        with pytest.raises(TransportError):
            await blob_storage.upload(PNG_BYTES, "photo.png", "image/png")
