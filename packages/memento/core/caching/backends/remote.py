"""Remote object store backend over HTTP.

Maps the store contract onto a plain HTTP object store:

- GET    {base_url}/{object}   -> 200 body | 404 absent
- PUT    {base_url}/{object}   -> 2xx
- DELETE {base_url}/{object}   -> 2xx | 404
- HEAD   {base_url}/{object}   -> 200 with metadata headers | 404
- GET    {base_url}/           -> JSON list of object names

Object names are the hex encoding of the key. Network failures and 5xx
responses surface as StoreUnavailable.
"""

from __future__ import annotations

from collections.abc import Callable
from email.utils import parsedate_to_datetime
import logging
import threading
import time
from typing import Any

import httpx

from memento.core.caching.models import CacheEntry
from memento.core.errors import StoreUnavailable

logger = logging.getLogger(__name__)

CREATED_AT_HEADER = "x-memento-created-at"
ACCESSED_AT_HEADER = "x-memento-accessed-at"


class RemoteStore:
    """
    HTTP object store client (blocking, httpx).

    Read recency is tracked by this client and merged into stat(), so LRU
    eviction over a shared bucket only sees reads made through this instance.

    Example:
        >>> with RemoteStore("https://objects.example.test/cache") as store:
        ...     store.put(b"k", b"v")
        ...     store.get(b"k")
        b'v'
    """

    name = "remote"

    def __init__(
        self,
        base_url: str,
        *,
        timeout_seconds: float = 10.0,
        headers: dict[str, str] | None = None,
        transport: httpx.BaseTransport | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Initialize remote store.

        Args:
            base_url: Object store bucket/prefix URL
            timeout_seconds: Per-request timeout
            headers: Extra request headers (e.g. auth)
            transport: Optional httpx transport (tests use httpx.MockTransport)
            clock: Time source for entry timestamps
        """
        self.base_url = base_url.rstrip("/")
        self._client = httpx.Client(
            base_url=self.base_url + "/",
            timeout=timeout_seconds,
            headers=headers,
            transport=transport,
        )
        self._clock = clock
        self._accessed: dict[bytes, float] = {}
        self._lock = threading.Lock()

    def __enter__(self) -> RemoteStore:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    @staticmethod
    def object_name(key: bytes) -> str:
        return key.hex()

    def _request(self, operation: str, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.warning(f"Remote store {method} {url} failed: {e}")
            raise StoreUnavailable(
                f"Remote store at {self.base_url} is unreachable: {e}",
                backend=self.name,
                operation=operation,
                cause=e,
            ) from e

        if response.status_code == 404 or response.is_success:
            return response

        logger.warning(f"Remote store {method} {url} returned {response.status_code}")
        raise StoreUnavailable(
            f"Remote store at {self.base_url} returned HTTP {response.status_code}",
            backend=self.name,
            operation=operation,
        )

    def get(self, key: bytes) -> bytes | None:
        response = self._request("get", "GET", self.object_name(key))
        if response.status_code == 404:
            return None
        with self._lock:
            self._accessed[key] = self._clock()
        return response.content

    def put(self, key: bytes, value: bytes) -> None:
        now = f"{self._clock():.6f}"
        self._request(
            "put",
            "PUT",
            self.object_name(key),
            content=value,
            headers={
                "content-type": "application/octet-stream",
                CREATED_AT_HEADER: now,
                ACCESSED_AT_HEADER: now,
            },
        )
        with self._lock:
            self._accessed.pop(key, None)

    def evict(self, key: bytes) -> None:
        self._request("evict", "DELETE", self.object_name(key))
        with self._lock:
            self._accessed.pop(key, None)

    def list_keys(self) -> list[bytes]:
        response = self._request("list_keys", "GET", "")
        if response.status_code == 404:
            return []
        try:
            payload = response.json()
        except ValueError as e:
            raise StoreUnavailable(
                f"Remote store at {self.base_url} returned an invalid listing: {e}",
                backend=self.name,
                operation="list_keys",
                cause=e,
            ) from e
        names = payload.get("keys", []) if isinstance(payload, dict) else payload
        keys: list[bytes] = []
        for name in names:
            try:
                keys.append(bytes.fromhex(name))
            except (TypeError, ValueError):
                logger.debug(f"Skipping foreign object in remote store listing: {name!r}")
        return keys

    def stat(self, key: bytes) -> CacheEntry | None:
        response = self._request("stat", "HEAD", self.object_name(key))
        if response.status_code == 404:
            return None
        headers = response.headers
        created_at = _header_time(headers.get(CREATED_AT_HEADER)) or _http_date(
            headers.get("last-modified")
        )
        if created_at is None:
            created_at = self._clock()
        accessed_at = _header_time(headers.get(ACCESSED_AT_HEADER)) or created_at
        with self._lock:
            accessed_at = max(accessed_at, self._accessed.get(key, accessed_at))
        return CacheEntry(
            key=key,
            created_at=created_at,
            last_accessed_at=accessed_at,
            size=int(headers.get("content-length", 0)),
        )


def _header_time(value: str | None) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def _http_date(value: str | None) -> float | None:
    if value is None:
        return None
    try:
        return parsedate_to_datetime(value).timestamp()
    except (TypeError, ValueError):
        return None
