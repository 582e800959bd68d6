"""Filesystem-backed cache store.

One file per entry, named by a content-derived identifier (SHA256 of the key).
File modification time stands in for created_at and access time for
last_accessed_at. Writes use temp file + atomic replace so readers never
observe a partial entry.
"""

from __future__ import annotations

import hashlib
import logging
import os
from pathlib import Path
import struct
import tempfile
import threading
import time

from memento.core.caching.models import CacheEntry
from memento.core.errors import StoreUnavailable

logger = logging.getLogger(__name__)

# Entry file layout: MAGIC | key length (uint32 BE) | key | value
MAGIC = b"MMT1"
_HEADER = struct.Struct(">4sI")
ENTRY_SUFFIX = ".bin"


class CorruptEntry(ValueError):
    """Entry file does not follow the expected layout."""


def _encode(key: bytes, value: bytes) -> bytes:
    return _HEADER.pack(MAGIC, len(key)) + key + value


def _decode_header(data: bytes) -> tuple[bytes, int]:
    """Return (key, offset of value) from entry file bytes."""
    if len(data) < _HEADER.size:
        raise CorruptEntry("truncated header")
    magic, key_len = _HEADER.unpack_from(data)
    if magic != MAGIC:
        raise CorruptEntry("bad magic")
    end = _HEADER.size + key_len
    if len(data) < end:
        raise CorruptEntry("truncated key")
    return data[_HEADER.size : end], end


class FSStore:
    """
    Filesystem store rooted at a directory.

    The root directory is created lazily on first use (thread-safe).
    """

    name = "fs"

    def __init__(self, root: str | Path) -> None:
        """
        Initialize filesystem store.

        Args:
            root: Cache root directory
        """
        self.root = Path(root)
        self._initialized = False
        self._init_lock = threading.Lock()
        self._lock = threading.RLock()

    def initialize(self) -> None:
        """
        Ensure the root directory exists.

        Called automatically on first use. Safe to call multiple times.
        """
        with self._init_lock:
            if not self._initialized:
                try:
                    self.root.mkdir(parents=True, exist_ok=True)
                except OSError as e:
                    raise self._unavailable("initialize", e) from e
                self._initialized = True

    def entry_path(self, key: bytes) -> Path:
        """Compute entry file path for a key."""
        return self.root / f"{hashlib.sha256(key).hexdigest()}{ENTRY_SUFFIX}"

    def _unavailable(self, operation: str, cause: OSError) -> StoreUnavailable:
        logger.warning(f"Filesystem store {self.root} failed during {operation}: {cause}")
        return StoreUnavailable(
            f"Filesystem store at {self.root} is unavailable: {cause}",
            backend=self.name,
            operation=operation,
            cause=cause,
        )

    def get(self, key: bytes) -> bytes | None:
        self.initialize()
        path = self.entry_path(key)
        with self._lock:
            try:
                data = path.read_bytes()
                stored_key, offset = _decode_header(data)
                if stored_key != key:
                    return None
                # Refresh access time, keep modification time (created_at)
                st = path.stat()
                os.utime(path, ns=(time.time_ns(), st.st_mtime_ns))
            except FileNotFoundError:
                return None
            except CorruptEntry as e:
                logger.warning(f"Ignoring corrupt cache entry {path.name}: {e}")
                return None
            except OSError as e:
                raise self._unavailable("get", e) from e
        return data[offset:]

    def put(self, key: bytes, value: bytes) -> None:
        self.initialize()
        path = self.entry_path(key)
        with self._lock:
            tmp_name = None
            try:
                fd, tmp_name = tempfile.mkstemp(dir=self.root, prefix=".tmp-", suffix=ENTRY_SUFFIX)
                with os.fdopen(fd, "wb") as f:
                    f.write(_encode(key, value))
                now = time.time_ns()
                os.utime(tmp_name, ns=(now, now))
                os.replace(tmp_name, path)
                tmp_name = None
            except OSError as e:
                raise self._unavailable("put", e) from e
            finally:
                if tmp_name is not None:
                    Path(tmp_name).unlink(missing_ok=True)

    def evict(self, key: bytes) -> None:
        self.initialize()
        with self._lock:
            try:
                self.entry_path(key).unlink(missing_ok=True)
            except OSError as e:
                raise self._unavailable("evict", e) from e

    def list_keys(self) -> list[bytes]:
        self.initialize()
        keys: list[bytes] = []
        try:
            paths = sorted(self.root.glob(f"[!.]*{ENTRY_SUFFIX}"))
        except OSError as e:
            raise self._unavailable("list_keys", e) from e
        for path in paths:
            key = self._read_key(path)
            if key is not None:
                keys.append(key)
        return keys

    def _read_key(self, path: Path) -> bytes | None:
        try:
            with path.open("rb") as f:
                header = f.read(_HEADER.size)
                magic, key_len = _HEADER.unpack(header) if len(header) == _HEADER.size else (b"", 0)
                if magic != MAGIC:
                    logger.warning(f"Skipping foreign or corrupt file in cache root: {path.name}")
                    return None
                return f.read(key_len)
        except FileNotFoundError:
            return None
        except OSError as e:
            raise self._unavailable("list_keys", e) from e

    def stat(self, key: bytes) -> CacheEntry | None:
        self.initialize()
        path = self.entry_path(key)
        try:
            st = path.stat()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise self._unavailable("stat", e) from e
        return CacheEntry(
            key=key,
            created_at=st.st_mtime_ns / 1e9,
            last_accessed_at=max(st.st_atime_ns, st.st_mtime_ns) / 1e9,
            size=max(st.st_size - _HEADER.size - len(key), 0),
        )
