"""Storage backend protocol definition."""

from typing import Iterator, Protocol


class StorageBackend(Protocol):
    """Protocol for raw blob backends (local filesystem or S3-compatible).

    A backend is bound to one namespace and only knows about bytes and a flat
    string metadata record per key.
    """

    name: str
    namespace: str

    def write(self, key: str, content: bytes, metadata: dict[str, str]) -> None:
        """Store content and metadata at the given key, replacing any existing object."""
        ...

    def read(self, key: str) -> tuple[bytes, dict[str, str]] | None:
        """Load content and metadata. Returns None if not found."""
        ...

    def read_metadata(self, key: str) -> dict[str, str] | None:
        """Load only the metadata record. Returns None if not found."""
        ...

    def delete(self, key: str) -> None:
        """Delete a key. Deleting a missing key is not an error."""
        ...

    def list_keys(self, prefix: str = "") -> Iterator[str]:
        """List all keys with the given prefix, in a deterministic order."""
        ...
