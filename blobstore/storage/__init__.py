"""Storage backend implementations."""

from blobstore.storage.base import StorageBackend
from blobstore.storage.local import LocalStorage, LocalStorageError
from blobstore.storage.s3 import S3RequestsStorage, S3StorageError

__all__ = [
    "StorageBackend",
    "LocalStorage",
    "LocalStorageError",
    "S3RequestsStorage",
    "S3StorageError",
]
