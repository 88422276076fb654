"""File storage on top of a raw blob backend."""

import logging

from blobstore.config import ProviderConfig, StorageSettings
from blobstore.files import DEFAULT_MIME_TYPE, FileMetadata, StoredFile, now_ms
from blobstore.listing import ListResult, PaginatedLister
from blobstore.storage import LocalStorage, S3RequestsStorage, StorageBackend

logger = logging.getLogger(__name__)


class BlobStorage:
    """Stores files under string keys in one backend namespace.

    The backend only keeps bytes and a flat metadata record. Name, MIME type,
    modification time and size are written into that record on ``set`` and
    rebuilt from it on ``get``.
    """

    def __init__(self, backend: StorageBackend, hydration_workers: int = 8):
        self.backend = backend
        self.lister = PaginatedLister(self, hydration_workers=hydration_workers)

    @property
    def namespace(self) -> str:
        return self.backend.namespace

    def has(self, key: str) -> bool:
        """True if a record exists for the key."""
        return self.backend.read_metadata(key) is not None

    def get_metadata(self, key: str) -> FileMetadata | None:
        """Fetch only the descriptive fields of a stored file."""
        record = self.backend.read_metadata(key)
        if record is None:
            return None
        return FileMetadata.from_record(record)

    def set(self, key: str, file: StoredFile) -> None:
        """Store a file, replacing whatever was at the key."""
        metadata = FileMetadata.from_file(file)
        self.backend.write(key, file.content, metadata.to_record())
        logger.debug(f"Stored {key} ({file.size} bytes, {file.mime_type}) in {self.namespace}")

    def get(self, key: str) -> StoredFile | None:
        """Load a file. Returns None if the key does not exist."""
        result = self.backend.read(key)
        if result is None:
            logger.debug(f"{key} not found in {self.namespace}")
            return None

        content, record = result
        metadata = FileMetadata.from_record(record)
        return StoredFile(
            name=metadata.name if metadata.name is not None else key,
            content=content,
            mime_type=metadata.mime_type or DEFAULT_MIME_TYPE,
            last_modified=(
                metadata.last_modified if metadata.last_modified is not None else now_ms()
            ),
        )

    def put(self, key: str, file: StoredFile) -> StoredFile:
        """Store a file and hand the same object back."""
        self.set(key, file)
        return file

    def remove(self, key: str) -> None:
        """Delete a key. Removing a missing key is not an error."""
        self.backend.delete(key)
        logger.debug(f"Removed {key} from {self.namespace}")

    def list(
        self,
        prefix: str | None = None,
        limit: int | None = None,
        cursor: str | None = None,
        include_metadata: bool = False,
    ) -> ListResult:
        """One page of keys; see PaginatedLister.list."""
        return self.lister.list(prefix, limit, cursor, include_metadata)


def get_backend(
    provider: ProviderConfig, namespace: str, settings: StorageSettings | None = None
) -> StorageBackend:
    """Get storage backend for a namespace based on provider configuration."""
    settings = settings or StorageSettings()
    provider.validate()
    if provider.type == "s3":
        return S3RequestsStorage(
            endpoint=provider.endpoint,
            access_key=provider.access_key,
            secret_key=provider.secret_key,
            bucket=provider.bucket_for(namespace),
            region=provider.region,
            max_retries=settings.max_retries,
            timeout=settings.timeout_seconds,
        )
    else:
        return LocalStorage(base_path=provider.base_path, namespace=namespace)


def open_storage(
    namespace: str, provider: ProviderConfig, settings: StorageSettings | None = None
) -> BlobStorage:
    """Open the file storage for a namespace."""
    settings = settings or StorageSettings()
    settings.validate()
    backend = get_backend(provider, namespace, settings)
    return BlobStorage(backend, hydration_workers=settings.hydration_workers)
