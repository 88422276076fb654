"""Cursor-based pagination over a backend's flat key listing."""

from __future__ import annotations

import concurrent.futures
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterator

from blobstore.files import FileMetadata

if TYPE_CHECKING:
    from blobstore.blob_storage import BlobStorage

logger = logging.getLogger(__name__)


@dataclass
class ListEntry:
    """A listed key, with its descriptive fields when metadata was requested."""

    key: str
    name: str | None = None
    mime_type: str | None = None
    size: int | None = None
    last_modified: int | None = None

    @classmethod
    def from_metadata(cls, key: str, metadata: FileMetadata) -> "ListEntry":
        return cls(
            key=key,
            name=metadata.name,
            mime_type=metadata.mime_type,
            size=metadata.size,
            last_modified=metadata.last_modified,
        )


@dataclass
class ListResult:
    """One page of a listing. ``cursor`` is None on the last page."""

    entries: list[ListEntry] = field(default_factory=list)
    cursor: str | None = None

    @property
    def keys(self) -> list[str]:
        return [entry.key for entry in self.entries]


def parse_cursor(cursor: str | None) -> int:
    """Offset encoded in a cursor; anything unparseable restarts from 0."""
    if not cursor:
        return 0
    cursor = cursor.strip()
    if not (cursor.isascii() and cursor.isdigit()):
        return 0
    return int(cursor)


class PaginatedLister:
    """Pages through the keys of a storage namespace.

    Each call re-lists the backend and slices the result at the cursor
    offset, so pages are only consistent while the key set is unchanged.
    """

    def __init__(self, storage: BlobStorage, hydration_workers: int = 8):
        if hydration_workers < 1:
            raise ValueError(f"hydration_workers must be at least 1: {hydration_workers}")
        self.storage = storage
        self.hydration_workers = hydration_workers

    def list(
        self,
        prefix: str | None = None,
        limit: int | None = None,
        cursor: str | None = None,
        include_metadata: bool = False,
    ) -> ListResult:
        """Return one page of keys under ``prefix``."""
        if limit is not None and limit < 0:
            raise ValueError(f"limit must not be negative: {limit}")

        keys = list(self.storage.backend.list_keys(prefix or ""))
        start_index = parse_cursor(cursor)
        end_index = start_index + limit if limit is not None else len(keys)
        page_keys = keys[start_index:end_index]

        if include_metadata:
            entries = self._hydrate(page_keys)
        else:
            entries = [ListEntry(key=key) for key in page_keys]

        result = ListResult(entries=entries)
        if end_index < len(keys):
            result.cursor = str(end_index)

        logger.debug(
            f"Listed {len(entries)} of {len(keys)} keys in {self.storage.namespace} "
            f"(prefix={prefix!r}, start={start_index}, next={result.cursor})"
        )
        return result

    def _hydrate(self, keys: list[str]) -> list[ListEntry]:
        """Fetch metadata for each key, keeping the page order."""
        if not keys:
            return []

        def fetch(key: str) -> ListEntry:
            metadata = self.storage.get_metadata(key)
            if metadata is None:
                # Deleted between listing and lookup
                logger.warning(f"Metadata for listed key {key} is gone, returning key only")
                return ListEntry(key=key)
            return ListEntry.from_metadata(key, metadata)

        max_workers = min(self.hydration_workers, len(keys))
        with concurrent.futures.ThreadPoolExecutor(max_workers=max_workers) as executor:
            return list(executor.map(fetch, keys))

    def iter_pages(
        self,
        prefix: str | None = None,
        limit: int | None = None,
        cursor: str | None = None,
        include_metadata: bool = False,
    ) -> Iterator[ListResult]:
        """Follow cursors from ``cursor`` until the last page."""
        if limit == 0:
            raise ValueError("limit must be positive to walk all pages")
        while True:
            page = self.list(prefix, limit, cursor, include_metadata)
            yield page
            if page.cursor is None:
                return
            cursor = page.cursor

    def iter_entries(
        self,
        prefix: str | None = None,
        limit: int | None = None,
        include_metadata: bool = False,
    ) -> Iterator[ListEntry]:
        """Every entry under ``prefix``, fetched page by page."""
        for page in self.iter_pages(prefix, limit, include_metadata=include_metadata):
            yield from page.entries
