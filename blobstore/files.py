"""File model and its flat metadata record."""

import mimetypes
import time
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Mapping
from urllib.parse import quote, unquote

DEFAULT_MIME_TYPE = "application/octet-stream"

# Keys of the flat record stored next to every blob
NAME_FIELD = "name"
TYPE_FIELD = "type"
LAST_MODIFIED_FIELD = "last-modified"
SIZE_FIELD = "size"
NAME_ENCODING_FIELD = "name-encoding"
PERCENT_ENCODING = "percent"


def now_ms() -> int:
    """Current time in epoch milliseconds."""
    return int(time.time() * 1000)


@dataclass
class StoredFile:
    """A named binary file with its MIME type and modification time."""

    name: str
    content: bytes
    mime_type: str = DEFAULT_MIME_TYPE
    last_modified: int = 0

    @property
    def size(self) -> int:
        return len(self.content)

    @classmethod
    def from_stream(
        cls,
        stream: BinaryIO,
        name: str,
        mime_type: str | None = None,
        last_modified: int | None = None,
    ) -> "StoredFile":
        """Read a whole binary stream into memory."""
        return cls(
            name=name,
            content=stream.read(),
            mime_type=mime_type or guess_mime_type(name),
            last_modified=last_modified if last_modified is not None else now_ms(),
        )

    @classmethod
    def from_path(cls, path: str | Path, mime_type: str | None = None) -> "StoredFile":
        """Load a file from disk, taking name and mtime from the filesystem."""
        path = Path(path)
        with open(path, "rb") as f:
            return cls.from_stream(
                f,
                name=path.name,
                mime_type=mime_type,
                last_modified=int(path.stat().st_mtime * 1000),
            )


def guess_mime_type(name: str) -> str:
    mime_type, _ = mimetypes.guess_type(name)
    return mime_type or DEFAULT_MIME_TYPE


@dataclass
class FileMetadata:
    """Descriptive fields of a stored file.

    Backends only keep a flat string record, so this is the one place where
    that record is built and parsed. Every field is optional because records
    written by other tools may lack any of them.
    """

    name: str | None = None
    mime_type: str | None = None
    last_modified: int | None = None
    size: int | None = None

    @classmethod
    def from_file(cls, file: StoredFile) -> "FileMetadata":
        return cls(
            name=file.name,
            mime_type=file.mime_type,
            last_modified=file.last_modified,
            size=file.size,
        )

    def to_record(self) -> dict[str, str]:
        """Flatten to the string record sent to the backend."""
        record = {}
        if self.name is not None:
            # Names may hold characters that HTTP headers cannot carry
            record[NAME_FIELD] = quote(self.name, safe="")
            record[NAME_ENCODING_FIELD] = PERCENT_ENCODING
        if self.mime_type is not None:
            record[TYPE_FIELD] = self.mime_type
        if self.last_modified is not None:
            record[LAST_MODIFIED_FIELD] = str(self.last_modified)
        if self.size is not None:
            record[SIZE_FIELD] = str(self.size)
        return record

    @classmethod
    def from_record(cls, record: Mapping[str, str | int]) -> "FileMetadata":
        """Parse a backend record, dropping fields that are missing or malformed."""
        name = record.get(NAME_FIELD)
        if name and record.get(NAME_ENCODING_FIELD) == PERCENT_ENCODING:
            name = unquote(str(name))
        mime_type = record.get(TYPE_FIELD)
        return cls(
            name=str(name) if name else None,
            mime_type=str(mime_type) if mime_type else None,
            last_modified=_parse_int(record.get(LAST_MODIFIED_FIELD)),
            size=_parse_int(record.get(SIZE_FIELD)),
        )


def _parse_int(value: str | int | None) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        return int(value)
    except ValueError:
        return None
