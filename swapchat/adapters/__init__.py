"""Adapters for external collaborators (blob storage)."""

from swapchat.adapters.blob_storage import BlobStorage, LocalBlobStorage

__all__ = ["BlobStorage", "LocalBlobStorage"]
