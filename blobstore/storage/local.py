"""Local filesystem storage backend."""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import BinaryIO, Iterator
from urllib.parse import quote, unquote

from blobstore.errors import StorageUnavailable

logger = logging.getLogger(__name__)

# First line of every object written by this backend
MAGIC = b"BLOBSTORE/1\n"


class LocalStorageError(StorageUnavailable):
    """Error reading or writing the local storage directory."""
    pass


def key_to_filename(key: str) -> str:
    """Flat file name for a key; '/' and '.' are escaped so every key maps to a plain file."""
    if not key:
        raise ValueError("Key must not be empty")
    return quote(key, safe="").replace(".", "%2E")


def filename_to_key(filename: str) -> str:
    return unquote(filename)


class LocalStorage:
    """Storage backend using a directory per namespace.

    Each key is one file under ``objects/`` holding a marker line, the JSON
    metadata record on one line, then the content. Content and record are
    therefore replaced together by a single rename.
    """

    def __init__(self, base_path: str | Path, namespace: str):
        self.namespace = namespace
        self.root = Path(base_path) / namespace
        self.objects_dir = self.root / "objects"
        self.tmp_dir = self.root / "tmp"
        try:
            for directory in (self.objects_dir, self.tmp_dir):
                directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise LocalStorageError(f"Cannot create storage directory {self.root}: {e}")
        self.name = f"local filesystem ({self.root.absolute()})"
        logger.info(f"Using {self.name}")

    def path_for(self, key: str) -> Path:
        """Path of the file holding a key."""
        return self.objects_dir / key_to_filename(key)

    def write(self, key: str, content: bytes, metadata: dict[str, str]) -> None:
        """Save content and its metadata record in one atomic replace."""
        path = self.path_for(key)
        header = json.dumps(metadata).encode("utf-8")
        try:
            fd, tmp_name = tempfile.mkstemp(dir=self.tmp_dir)
        except OSError as e:
            raise LocalStorageError(f"Write failed for {key}: {e}")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(MAGIC)
                f.write(header)
                f.write(b"\n")
                f.write(content)
            os.replace(tmp_name, path)
        except OSError as e:
            Path(tmp_name).unlink(missing_ok=True)
            raise LocalStorageError(f"Write failed for {key}: {e}")

    def _read_header(self, f: BinaryIO, key: str) -> dict[str, str]:
        """Metadata record at the start of an object file, or {} for files written by hand."""
        if f.read(len(MAGIC)) != MAGIC:
            f.seek(0)
            return {}
        try:
            return json.loads(f.readline())
        except ValueError as e:
            raise LocalStorageError(f"Cannot read metadata for {key}: {e}")

    def read(self, key: str) -> tuple[bytes, dict[str, str]] | None:
        """Load content and metadata. Returns None if not found."""
        try:
            with open(self.path_for(key), "rb") as f:
                metadata = self._read_header(f, key)
                return f.read(), metadata
        except FileNotFoundError:
            return None
        except OSError as e:
            raise LocalStorageError(f"Read failed for {key}: {e}")

    def read_metadata(self, key: str) -> dict[str, str] | None:
        """Load only the metadata record. Returns None if not found."""
        try:
            with open(self.path_for(key), "rb") as f:
                return self._read_header(f, key)
        except FileNotFoundError:
            return None
        except OSError as e:
            raise LocalStorageError(f"Read failed for {key}: {e}")

    def delete(self, key: str) -> None:
        """Delete a file. Missing files are ignored."""
        try:
            self.path_for(key).unlink(missing_ok=True)
        except OSError as e:
            raise LocalStorageError(f"Delete failed for {key}: {e}")

    def list_keys(self, prefix: str = "") -> Iterator[str]:
        """List all keys with the given prefix, sorted."""
        try:
            keys = sorted(
                filename_to_key(path.name)
                for path in self.objects_dir.iterdir()
                if path.is_file()
            )
        except OSError as e:
            raise LocalStorageError(f"List failed: {e}")

        for key in keys:
            if key.startswith(prefix):
                yield key
