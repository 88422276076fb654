"""S3-compatible storage backend using requests (works with Storadera, MinIO and AWS)."""

import logging
from typing import Iterator
from urllib.parse import quote
from xml.etree import ElementTree

import requests
from requests.adapters import HTTPAdapter
from requests_aws4auth import AWS4Auth
from urllib3.util.retry import Retry

from blobstore.errors import StorageUnavailable
from blobstore.files import DEFAULT_MIME_TYPE, TYPE_FIELD

logger = logging.getLogger(__name__)

METADATA_HEADER_PREFIX = "x-amz-meta-"
S3_NAMESPACE = {"s3": "http://s3.amazonaws.com/doc/2006-03-01/"}
REDIRECT_CODES = (301, 302, 307, 308)


class S3StorageError(StorageUnavailable):
    """Base exception for S3 storage operations."""
    pass


class S3UploadError(S3StorageError):
    """Error during S3 upload."""
    pass


class S3DownloadError(S3StorageError):
    """Error during S3 download or metadata lookup."""
    pass


class S3DeleteError(S3StorageError):
    """Error during S3 delete."""
    pass


class S3ListError(S3StorageError):
    """Error during S3 list operation."""
    pass


def _redirect_message(operation: str, resp: requests.Response) -> str:
    location = resp.headers.get("Location", "unknown")
    return f"S3 {operation} redirected to: {location}"


def metadata_to_headers(metadata: dict[str, str]) -> dict[str, str]:
    """Turn a flat metadata record into x-amz-meta-* request headers."""
    return {f"{METADATA_HEADER_PREFIX}{field}": value for field, value in metadata.items()}


def headers_to_metadata(headers) -> dict[str, str]:
    """Collect x-amz-meta-* response headers back into a flat record."""
    metadata = {}
    for header, value in headers.items():
        header = header.lower()
        if header.startswith(METADATA_HEADER_PREFIX):
            metadata[header[len(METADATA_HEADER_PREFIX):]] = value
    return metadata


class S3RequestsStorage:
    """Storage backend using requests + AWS4Auth, one bucket per namespace."""

    def __init__(
        self,
        endpoint: str,
        access_key: str,
        secret_key: str,
        bucket: str,
        region: str | None = None,
        max_retries: int = 0,
        timeout: int = 30,
    ):
        self.bucket = bucket
        self.namespace = bucket
        self.endpoint = endpoint.rstrip("/")
        self.base_url = f"{self.endpoint}/{bucket}"
        self.timeout = timeout

        # AWS4Auth with empty region (works for most S3-compatible providers)
        self.auth = AWS4Auth(access_key, secret_key, region or "", "s3")
        self.session = requests.Session()
        self.session.auth = self.auth

        # Retries are opt-in; by default a failed call surfaces immediately
        retry_strategy = Retry(
            total=max_retries,
            backoff_factor=2,
            status_forcelist=[500, 502, 503, 504],
            allowed_methods=["HEAD", "GET", "PUT", "DELETE"],
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

        # Disable automatic redirect following
        self.session.max_redirects = 0

        self._ensure_bucket()
        self.name = f"S3 bucket '{bucket}' at {endpoint}"
        logger.info(f"Using {self.name}")

    def _ensure_bucket(self) -> None:
        """Check bucket exists."""
        try:
            resp = self.session.head(self.base_url, timeout=self.timeout, allow_redirects=False)
        except requests.exceptions.RequestException as e:
            raise S3StorageError(f"Cannot reach {self.endpoint}: {e}")

        if resp.status_code == 404:
            raise ValueError(f"Bucket '{self.bucket}' does not exist. Create it first.")
        elif resp.status_code in REDIRECT_CODES:
            location = resp.headers.get("Location", "unknown")
            raise ValueError(
                f"S3 endpoint returned redirect ({resp.status_code}) to: {location}\n"
                f"Check your endpoint and bucket configuration."
            )
        elif resp.status_code != 200:
            raise S3StorageError(f"Cannot access bucket: {resp.status_code}")

    def _url(self, key: str) -> str:
        return f"{self.base_url}/{quote(key, safe='/~')}"

    def write(self, key: str, content: bytes, metadata: dict[str, str]) -> None:
        """Upload content with metadata attached as x-amz-meta-* headers."""
        headers = metadata_to_headers(metadata)
        headers["Content-Type"] = metadata.get(TYPE_FIELD) or DEFAULT_MIME_TYPE
        try:
            resp = self.session.put(
                self._url(key),
                data=content,
                headers=headers,
                timeout=self.timeout,
                allow_redirects=False,
            )
        except requests.exceptions.RequestException as e:
            raise S3UploadError(f"Upload failed for {key}: {e}")

        if resp.status_code in REDIRECT_CODES:
            raise S3UploadError(_redirect_message("upload", resp))
        if resp.status_code not in (200, 201):
            raise S3UploadError(f"S3 upload failed: {resp.status_code} {resp.text}")

    def read(self, key: str) -> tuple[bytes, dict[str, str]] | None:
        """Download content and metadata. Returns None if not found."""
        try:
            resp = self.session.get(self._url(key), timeout=self.timeout, allow_redirects=False)
        except requests.exceptions.RequestException as e:
            raise S3DownloadError(f"Download failed for {key}: {e}")

        if resp.status_code == 404:
            return None
        elif resp.status_code in REDIRECT_CODES:
            raise S3DownloadError(_redirect_message("download", resp))
        elif resp.status_code != 200:
            raise S3DownloadError(f"S3 download failed: {resp.status_code}")

        return resp.content, headers_to_metadata(resp.headers)

    def read_metadata(self, key: str) -> dict[str, str] | None:
        """Fetch metadata with a HEAD request. Returns None if not found."""
        try:
            resp = self.session.head(self._url(key), timeout=self.timeout, allow_redirects=False)
        except requests.exceptions.RequestException as e:
            raise S3DownloadError(f"Metadata lookup failed for {key}: {e}")

        if resp.status_code == 404:
            return None
        elif resp.status_code in REDIRECT_CODES:
            raise S3DownloadError(_redirect_message("metadata lookup", resp))
        elif resp.status_code != 200:
            raise S3DownloadError(f"S3 metadata lookup failed: {resp.status_code}")

        return headers_to_metadata(resp.headers)

    def delete(self, key: str) -> None:
        """Delete a key from S3."""
        try:
            resp = self.session.delete(self._url(key), timeout=self.timeout, allow_redirects=False)
        except requests.exceptions.RequestException as e:
            raise S3DeleteError(f"Delete failed for {key}: {e}")

        # 404 means already deleted
        if resp.status_code not in (200, 204, 404):
            raise S3DeleteError(f"S3 delete failed: {resp.status_code}")

    def list_keys(self, prefix: str = "") -> Iterator[str]:
        """List all keys with the given prefix."""
        continuation_token = None

        while True:
            params = {"list-type": "2", "prefix": prefix}
            if continuation_token:
                params["continuation-token"] = continuation_token

            try:
                resp = self.session.get(
                    self.base_url, params=params, timeout=self.timeout, allow_redirects=False
                )
            except requests.exceptions.RequestException as e:
                raise S3ListError(f"List operation failed: {e}")

            if resp.status_code in REDIRECT_CODES:
                raise S3ListError(_redirect_message("list", resp))
            if resp.status_code != 200:
                raise S3ListError(f"S3 list failed: {resp.status_code}")

            try:
                root = ElementTree.fromstring(resp.content)
            except ElementTree.ParseError as e:
                raise S3ListError(f"Malformed list response: {e}")

            for content in root.findall(".//s3:Contents", S3_NAMESPACE):
                key_elem = content.find("s3:Key", S3_NAMESPACE)
                if key_elem is not None and key_elem.text:
                    yield key_elem.text

            # Check for more pages
            is_truncated = root.find(".//s3:IsTruncated", S3_NAMESPACE)
            if is_truncated is None or is_truncated.text != "true":
                break
            token_elem = root.find(".//s3:NextContinuationToken", S3_NAMESPACE)
            if token_elem is None or not token_elem.text:
                break
            continuation_token = token_elem.text
