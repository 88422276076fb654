"""Upload and retrieval helpers around a BlobStorage.

Uploaded files get a collision-resistant key derived from the form field
name, and are served back with a long-lived cache directive.
"""

import logging
import os
import secrets
from dataclasses import dataclass, field

from blobstore.blob_storage import BlobStorage
from blobstore.config import StorageSettings
from blobstore.files import DEFAULT_MIME_TYPE, StoredFile, now_ms

logger = logging.getLogger(__name__)

DEPLOY_CONTEXT_ENV = "DEPLOY_CONTEXT"
DEFAULT_CONTEXT = "dev"
DEFAULT_EXTENSION = "jpg"
PUBLIC_PATH_PREFIX = "/uploads/"
CACHE_CONTROL = "public, max-age=31536000"

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


@dataclass
class FileUpload:
    """A file received from a form field."""

    field_name: str
    file: StoredFile


@dataclass
class UploadResponse:
    """What the HTTP layer should send back for a stored upload."""

    status: int
    body: bytes
    headers: dict[str, str] = field(default_factory=dict)


def resolve_deploy_context(settings: StorageSettings | None = None) -> str:
    """Deployment context: environment override, then configuration, then dev."""
    context = os.environ.get(DEPLOY_CONTEXT_ENV)
    if context:
        return context
    if settings and settings.context:
        return settings.context
    return DEFAULT_CONTEXT


def uploads_namespace(context: str, prefix: str = "uploads") -> str:
    """Namespace holding the uploads of one deployment context."""
    return f"{prefix}-{context}"


def random_token(length: int = 6) -> str:
    return "".join(secrets.choice(_BASE36) for _ in range(length))


def file_extension(filename: str) -> str:
    """Text after the last dot, or the default extension."""
    if "." not in filename:
        return DEFAULT_EXTENSION
    return filename.rsplit(".", 1)[1] or DEFAULT_EXTENSION


def generate_upload_key(
    field_name: str,
    filename: str,
    timestamp_ms: int | None = None,
    token: str | None = None,
) -> str:
    """Key of the form ``{field}/{epochMillis}-{token}.{ext}``."""
    timestamp_ms = timestamp_ms if timestamp_ms is not None else now_ms()
    token = token or random_token()
    return f"{field_name}/{timestamp_ms}-{token}.{file_extension(filename)}"


def upload_handler(storage: BlobStorage, upload: FileUpload) -> str:
    """Store an uploaded file and return the public path it is served from."""
    key = generate_upload_key(upload.field_name, upload.file.name)
    storage.set(key, upload.file)
    logger.info(f"Stored upload {upload.file.name!r} as {key}")
    return f"{PUBLIC_PATH_PREFIX}{key}"


def serve_upload(storage: BlobStorage, key: str) -> UploadResponse:
    """Look up a stored upload and describe the HTTP response for it."""
    file = storage.get(key)
    if file is None:
        return UploadResponse(
            status=404,
            body=b"File not found",
            headers={"Content-Type": "text/plain; charset=utf-8"},
        )

    return UploadResponse(
        status=200,
        body=file.content,
        headers={
            "Content-Type": file.mime_type or DEFAULT_MIME_TYPE,
            "Content-Length": str(file.size),
            "Cache-Control": CACHE_CONTROL,
        },
    )
