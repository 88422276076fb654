"""Shared fixtures: local storage on tmp_path and an in-memory S3 endpoint."""

from urllib.parse import unquote, urlsplit
from xml.sax.saxutils import escape

import pytest
import requests
from requests.structures import CaseInsensitiveDict

from blobstore.blob_storage import BlobStorage
from blobstore.files import StoredFile
from blobstore.storage import LocalStorage, S3RequestsStorage

S3_ENDPOINT = "https://s3.test"
S3_BUCKET = "uploads-test"


def make_response(status: int, content: bytes = b"", headers: dict | None = None):
    resp = requests.Response()
    resp.status_code = status
    resp._content = content
    resp.headers = CaseInsensitiveDict(headers or {})
    return resp


class FakeS3:
    """Just enough of the S3 REST API for the storage backend."""

    def __init__(self, buckets=(S3_BUCKET,), page_size: int = 1000):
        self.buckets: dict[str, dict[str, tuple[bytes, dict[str, str]]]] = {
            bucket: {} for bucket in buckets
        }
        self.page_size = page_size
        self.calls: list[tuple[str, str]] = []
        self.error: Exception | None = None
        self.status_override: int | None = None

    def put_raw(self, key: str, content: bytes, headers: dict | None = None, bucket=S3_BUCKET):
        """Store an object as another tool would, bypassing the backend."""
        self.buckets[bucket][key] = (content, dict(headers or {}))

    def request(self, method, url, params=None, data=None, headers=None, **kwargs):
        self.calls.append((method, url))
        if self.error is not None:
            raise self.error
        if self.status_override is not None:
            return make_response(self.status_override, b"boom")

        path = unquote(urlsplit(url).path).lstrip("/")
        bucket_name, _, key = path.partition("/")
        bucket = self.buckets.get(bucket_name)
        if bucket is None:
            return make_response(404)

        if not key:
            if method == "HEAD":
                return make_response(200)
            return self._list(bucket, params or {})

        if method == "PUT":
            stored = {
                name.lower(): value
                for name, value in (headers or {}).items()
                if name.lower().startswith("x-amz-meta-") or name.lower() == "content-type"
            }
            bucket[key] = (bytes(data), stored)
            return make_response(200)

        if method == "DELETE":
            bucket.pop(key, None)
            return make_response(204)

        if key not in bucket:
            return make_response(404)
        content, stored = bucket[key]
        if method == "HEAD":
            return make_response(200, b"", stored)
        return make_response(200, content, stored)

    def _list(self, bucket, params):
        prefix = params.get("prefix", "")
        token = params.get("continuation-token")
        keys = sorted(k for k in bucket if k.startswith(prefix))
        if token:
            keys = [k for k in keys if k > token]
        page, rest = keys[: self.page_size], keys[self.page_size:]

        parts = ['<ListBucketResult xmlns="http://s3.amazonaws.com/doc/2006-03-01/">']
        for key in page:
            parts.append(f"<Contents><Key>{escape(key)}</Key></Contents>")
        if rest:
            parts.append("<IsTruncated>true</IsTruncated>")
            parts.append(f"<NextContinuationToken>{escape(page[-1])}</NextContinuationToken>")
        else:
            parts.append("<IsTruncated>false</IsTruncated>")
        parts.append("</ListBucketResult>")
        return make_response(200, "".join(parts).encode("utf-8"))


@pytest.fixture
def fake_s3(monkeypatch):
    fake = FakeS3()

    def request(session, method, url, **kwargs):
        return fake.request(method, url, **kwargs)

    monkeypatch.setattr(requests.Session, "request", request)
    return fake


@pytest.fixture
def s3_backend(fake_s3):
    return S3RequestsStorage(
        endpoint=S3_ENDPOINT,
        access_key="test-access",
        secret_key="test-secret",
        bucket=S3_BUCKET,
    )


@pytest.fixture
def local_backend(tmp_path):
    return LocalStorage(base_path=tmp_path, namespace="uploads-test")


@pytest.fixture(params=["local", "s3"])
def storage(request):
    """BlobStorage over each backend type."""
    backend = request.getfixturevalue(f"{request.param}_backend")
    return BlobStorage(backend, hydration_workers=4)


def make_file(
    name: str = "photo.png",
    content: bytes = b"0123456789",
    mime_type: str = "image/png",
    last_modified: int = 1699999999000,
) -> StoredFile:
    return StoredFile(name=name, content=content, mime_type=mime_type, last_modified=last_modified)
