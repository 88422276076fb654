"""Keyed file storage over local or S3-compatible blob backends."""

from blobstore.blob_storage import BlobStorage, get_backend, open_storage
from blobstore.errors import StorageError, StorageUnavailable
from blobstore.files import FileMetadata, StoredFile
from blobstore.listing import ListEntry, ListResult, PaginatedLister

__all__ = [
    "BlobStorage",
    "get_backend",
    "open_storage",
    "StorageError",
    "StorageUnavailable",
    "FileMetadata",
    "StoredFile",
    "ListEntry",
    "ListResult",
    "PaginatedLister",
]
