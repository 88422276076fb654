"""Exceptions raised by blob storage."""


class StorageError(Exception):
    """Base exception for blob storage operations."""
    pass


class StorageUnavailable(StorageError):
    """The backend could not be reached or rejected the request."""
    pass
