"""HTTP client for an OpenStack Swift container (objects, SLO manifests, temp URLs)."""

import io
import json
from datetime import datetime
from typing import BinaryIO, Iterator, List, Optional
from urllib.parse import quote, urlsplit

import httpx

from common.logging_config import get_logger
from common.types import SegmentDescriptor
from objectstore.base import ObjectStore
from objectstore.exceptions import ObjectNotFoundError, ObjectStoreError, TempURLUnsupportedError
from objectstore.tempurl import build_temp_url

logger = get_logger(__name__)

LISTING_PAGE_SIZE = 1000


class _ResponseStream(io.RawIOBase):
    """Exposes a streamed httpx response body as a readable binary stream."""

    def __init__(self, response: httpx.Response):
        self._response = response
        self._pieces: Iterator[bytes] = response.iter_bytes()
        self._pending = b""

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        while not self._pending:
            try:
                self._pending = next(self._pieces)
            except StopIteration:
                return 0
            except httpx.HTTPError as e:
                raise ObjectStoreError(f"failed to read object body: {e}") from e
        n = min(len(buffer), len(self._pending))
        buffer[:n] = self._pending[:n]
        self._pending = self._pending[n:]
        return n

    def close(self) -> None:
        self._response.close()
        super().close()


class SwiftObjectStore(ObjectStore):
    """
    Swift adapter using a pooled httpx client.

    Either a pre-authenticated storage URL and token are given, or a v1
    auth URL with user and key, in which case authentication happens on
    first use.
    """

    def __init__(
        self,
        container: str,
        chunk_size: int,
        object_prefix: str = "",
        storage_url: Optional[str] = None,
        auth_token: Optional[str] = None,
        auth_url: Optional[str] = None,
        user: Optional[str] = None,
        key: Optional[str] = None,
        temp_url_key: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        super().__init__(chunk_size, object_prefix)
        self.container = container
        self.storage_url = storage_url.rstrip('/') if storage_url else None
        self.auth_token = auth_token
        self.auth_url = auth_url
        self.user = user
        self.key = key
        self.temp_url_key = temp_url_key
        self.session = httpx.Client(timeout=timeout, transport=transport)

    def close(self) -> None:
        self.session.close()

    def _authenticate(self) -> None:
        if self.storage_url and self.auth_token:
            return
        if not self.auth_url:
            raise ObjectStoreError("Swift storage URL and token are not configured and no auth URL is set")

        try:
            response = self.session.get(
                self.auth_url,
                headers={"X-Auth-User": self.user or "", "X-Auth-Key": self.key or ""},
            )
        except httpx.HTTPError as e:
            raise ObjectStoreError(f"Swift authentication request failed: {e}") from e
        if response.status_code >= 300:
            raise ObjectStoreError(f"Swift authentication failed with status {response.status_code}")

        self.storage_url = response.headers["X-Storage-Url"].rstrip('/')
        self.auth_token = response.headers["X-Auth-Token"]
        logger.info(f"Authenticated against Swift [storage_url={self.storage_url}]")

    def _container_url(self) -> str:
        self._authenticate()
        return f"{self.storage_url}/{quote(self.container)}"

    def _object_url(self, object_path: str) -> str:
        return f"{self._container_url()}/{quote(object_path.lstrip('/'))}"

    def _send(self, method: str, url: str, stream: bool, headers: dict, **kwargs) -> httpx.Response:
        request = self.session.build_request(
            method, url, headers={**headers, "X-Auth-Token": self.auth_token}, **kwargs
        )
        try:
            return self.session.send(request, stream=stream)
        except httpx.HTTPError as e:
            raise ObjectStoreError(f"Swift {method} {url} failed: {e}") from e

    def _request(self, method: str, url: str, stream: bool = False, **kwargs) -> httpx.Response:
        """
        Send an authenticated request. An expired token (401) is renewed
        once when an auth URL is configured.
        """
        headers = kwargs.pop("headers", {})
        response = self._send(method, url, stream, headers, **kwargs)
        if response.status_code != 401 or not self.auth_url:
            return response

        response.close()
        logger.info("Swift rejected the auth token, authenticating again")
        old_storage_url = self.storage_url
        self.storage_url = None
        self.auth_token = None
        self._authenticate()
        if old_storage_url and url.startswith(old_storage_url):
            url = self.storage_url + url[len(old_storage_url):]
        return self._send(method, url, stream, headers, **kwargs)

    @staticmethod
    def _raise_for_status(response: httpx.Response, object_path: str) -> None:
        if response.status_code == 404:
            raise ObjectNotFoundError(object_path)
        if response.status_code >= 300:
            raise ObjectStoreError(
                f"Swift returned status {response.status_code} for {object_path}"
            )

    def write(self, object_path: str, data: bytes) -> str:
        response = self._request("PUT", self._object_url(object_path), content=data)
        self._raise_for_status(response, object_path)
        return response.headers.get("ETag", "").strip('"')

    def read(self, object_path: str, offset: int = 0) -> BinaryIO:
        headers = {}
        if offset > 0:
            headers["Range"] = f"bytes={offset}-"
        response = self._request("GET", self._object_url(object_path), stream=True, headers=headers)

        if response.status_code == 416:
            response.close()
            return io.BytesIO(b"")
        if response.status_code >= 300:
            response.close()
            self._raise_for_status(response, object_path)
        return io.BufferedReader(_ResponseStream(response))

    def _list_objects(self, prefix: str) -> List[str]:
        names = []
        marker = ""
        while True:
            response = self._request(
                "GET", self._container_url(),
                params={"format": "json", "prefix": prefix, "marker": marker, "limit": LISTING_PAGE_SIZE},
            )
            if response.status_code == 204:
                break
            self._raise_for_status(response, prefix)
            page = response.json()
            if not page:
                break
            names.extend(entry["name"] for entry in page)
            if len(page) < LISTING_PAGE_SIZE:
                break
            marker = page[-1]["name"]
        return names

    def delete_all(self, prefix: str) -> int:
        deleted = 0
        for name in self._list_objects(prefix):
            response = self._request("DELETE", self._object_url(name))
            if response.status_code == 404:
                continue
            self._raise_for_status(response, name)
            deleted += 1
        logger.debug(f"Deleted {deleted} Swift objects under prefix {prefix}")
        return deleted

    def write_manifest(self, object_path: str, segments: List[SegmentDescriptor]) -> None:
        if not segments:
            self.write(object_path, b"")
            return

        manifest = [
            {
                "path": f"/{self.container}/{segment.object_path.lstrip('/')}",
                "etag": segment.hash,
                "size_bytes": segment.size,
            }
            for segment in segments
        ]
        response = self._request(
            "PUT", self._object_url(object_path),
            params={"multipart-manifest": "put"},
            content=json.dumps(manifest).encode("utf-8"),
            headers={"Content-Type": "application/json"},
        )
        self._raise_for_status(response, object_path)

    def make_temp_url(self, object_path: str, method: str, expires_at: datetime) -> str:
        if not self.temp_url_key:
            raise TempURLUnsupportedError("no temp URL key configured for Swift")
        parts = urlsplit(self._container_url())
        return build_temp_url(
            f"{parts.scheme}://{parts.netloc}", parts.path, object_path,
            self.temp_url_key, method, expires_at,
        )
