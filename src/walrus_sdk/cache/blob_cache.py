"""
Disk-backed blob cache with LRU eviction.

Each entry is a single file named by the SHA-256 hex digest of its key,
stored flat under the cache directory. Recency is tracked in memory only,
so LRU order does not survive a restart even if the files do.

Concurrency model (asyncio):
- put/remove/cleanup, eviction and self-healing removal run under one
  asyncio.Lock, so the index, the access times and the files on disk
  change together.
- get reads the backing file without taking the lock; readers never see
  a torn file because put writes to a temp file and renames it into place.
"""

from __future__ import annotations

import asyncio
import itertools
import os
import secrets
import shutil
import tempfile
import time
from pathlib import Path
from typing import Iterator

import aiofiles

from walrus_sdk.cache.base import CacheProtocol
from walrus_sdk.exceptions import CacheError, InvalidArgumentError
from walrus_sdk.logging import get_logger
from walrus_sdk.types import CacheOwnership
from walrus_sdk.utils.hashing import sha256_hex

logger = get_logger(__name__)

DEFAULT_MAX_SIZE = 100
TEMP_DIR_PREFIX = "walrus_cache_"


class BlobCache(CacheProtocol):
    """LRU-bounded, content-addressed blob cache on the local filesystem.

    Holds at most ``max_size`` entries. When full, a put for a new key
    evicts the least recently touched entry (put or successful get).
    Access stamps are (monotonic_ns, sequence) pairs, so entries touched
    within the same clock tick are ordered by touch order and the earliest
    touched is evicted first.

    If no directory is supplied a temporary one is created and deleted on
    dispose(); a caller-supplied directory is never deleted by dispose().
    """

    def __init__(
        self,
        cache_dir: str | Path | None = None,
        max_size: int = DEFAULT_MAX_SIZE,
    ) -> None:
        """Initialize the cache.

        Args:
            cache_dir: Directory to store entries in. Created if missing.
                If None, an ephemeral temporary directory is used.
            max_size: Maximum number of entries. Must be a positive integer.

        Raises:
            InvalidArgumentError: If max_size is not a positive integer.
        """
        if isinstance(max_size, bool) or not isinstance(max_size, int) or max_size <= 0:
            raise InvalidArgumentError(
                "max_size must be greater than zero",
                context="BlobCache",
                extra={"max_size": max_size},
            )

        if cache_dir is None:
            self._directory = Path(tempfile.mkdtemp(prefix=TEMP_DIR_PREFIX))
            self._ownership = CacheOwnership.EPHEMERAL
        else:
            self._directory = Path(cache_dir)
            self._directory.mkdir(parents=True, exist_ok=True)
            self._ownership = CacheOwnership.CALLER_OWNED

        self._max_size = max_size
        self._index: dict[str, Path] = {}
        self._access_times: dict[str, tuple[int, int]] = {}
        self._sequence = itertools.count()
        self._lock = asyncio.Lock()

        logger.debug(
            "Blob cache initialized",
            directory=str(self._directory),
            max_size=max_size,
            ownership=self._ownership.value,
        )

    @property
    def directory(self) -> Path:
        return self._directory

    @property
    def max_size(self) -> int:
        return self._max_size

    @property
    def ownership(self) -> CacheOwnership:
        return self._ownership

    def __len__(self) -> int:
        return len(self._index)

    def __contains__(self, key: object) -> bool:
        return key in self._index

    def keys(self) -> Iterator[str]:
        """Iterate over cached keys, least recently touched first."""
        return iter(sorted(self._access_times, key=self._access_times.__getitem__))

    def path_for(self, key: str) -> Path:
        """Return the backing file path an entry for ``key`` would use."""
        return self._directory / sha256_hex(key)

    async def get(self, key: str) -> bytes | None:
        """Return cached bytes for ``key`` and refresh its access time.

        A missing or unreadable backing file is treated as a miss and the
        stale entry is dropped; the read error is never raised.
        """
        path = self._index.get(key)
        if path is None:
            return None
        stamp = self._access_times.get(key)

        try:
            async with aiofiles.open(path, "rb") as f:
                data = await f.read()
        except OSError as e:
            logger.warning(
                "Cached blob unreadable, dropping entry",
                blob_id=key,
                path=str(path),
                error=str(e),
            )
            async with self._lock:
                # Skip if a concurrent put re-committed the key meanwhile
                if self._access_times.get(key) == stamp:
                    self._discard_file(key, path)
            return None

        if key in self._index:
            self._touch(key)
        return data

    async def put(self, key: str, data: bytes) -> Path:
        """Persist ``data`` for ``key``, evicting the LRU entry when full.

        The bytes are written and fsynced to a temp file first; eviction and
        the rename into place happen only after the write succeeded, so a
        failed write leaves the cache unchanged. If the evicted file cannot
        be deleted the put fails with every entry still indexed. If the
        final rename fails after an eviction, the evicted entry stays gone
        from both the index and the directory. The temp file never outlives
        a failed put. Overwriting an existing key replaces it in place and
        does not evict.

        Returns:
            Path of the backing file.

        Raises:
            CacheError: If the bytes cannot be written or committed.
        """
        path = self.path_for(key)

        async with self._lock:
            tmp_path = await self._write_temp(key, path, data)

            try:
                if key not in self._index and len(self._index) >= self._max_size:
                    self._evict_oldest()
                os.replace(tmp_path, path)
            except BaseException as e:
                self._discard_temp(tmp_path)
                if isinstance(e, OSError):
                    raise CacheError(
                        "Failed to commit cached blob",
                        context="BlobCache.put",
                        extra={"blob_id": key, "path": str(path)},
                    ) from e
                raise

            self._index[key] = path
            self._touch(key)

        logger.debug("Cached blob", blob_id=key, size=len(data))
        return path

    async def remove(self, key: str) -> None:
        """Remove ``key`` and its backing file. Missing keys are a no-op."""
        async with self._lock:
            self._remove_entry(key)

    async def cleanup(self) -> None:
        """Delete the whole cache directory and clear in-memory tracking.

        Terminal for this directory: later puts on this instance fail
        until a new cache is constructed.
        """
        async with self._lock:
            if self._directory.exists():
                await asyncio.to_thread(shutil.rmtree, self._directory)
            self._index.clear()
            self._access_times.clear()
        logger.debug("Blob cache cleaned up", directory=str(self._directory))

    async def dispose(self) -> None:
        """Clean up ephemeral caches; caller-owned directories are kept."""
        if self._ownership is CacheOwnership.EPHEMERAL:
            await self.cleanup()

    async def __aenter__(self) -> BlobCache:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.dispose()

    def _touch(self, key: str) -> None:
        self._access_times[key] = (time.monotonic_ns(), next(self._sequence))

    def _forget(self, key: str) -> Path | None:
        self._access_times.pop(key, None)
        return self._index.pop(key, None)

    def _discard_file(self, key: str, path: Path) -> None:
        self._forget(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("Could not delete stale cache file", path=str(path), error=str(e))

    def _remove_entry(self, key: str) -> None:
        # unlink before forgetting so a failed delete keeps the entry indexed
        path = self._index.get(key)
        if path is None:
            return
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise CacheError(
                "Failed to delete cached blob",
                context="BlobCache.remove",
                extra={"blob_id": key, "path": str(path)},
            ) from e
        self._forget(key)

    def _discard_temp(self, tmp_path: Path) -> None:
        try:
            tmp_path.unlink(missing_ok=True)
        except OSError:
            logger.warning("Could not delete partial cache file", path=str(tmp_path))

    def _evict_oldest(self) -> None:
        if not self._access_times:
            return
        oldest = min(self._access_times, key=self._access_times.__getitem__)
        self._remove_entry(oldest)
        logger.debug("Evicted least recently used blob", blob_id=oldest)

    async def _write_temp(self, key: str, path: Path, data: bytes) -> Path:
        tmp_path = path.with_name(f".{path.name}.{secrets.token_hex(4)}.tmp")
        try:
            async with aiofiles.open(tmp_path, "wb") as f:
                await f.write(data)
                await f.flush()
                await asyncio.to_thread(os.fsync, f.fileno())
        except BaseException as e:
            self._discard_temp(tmp_path)
            if isinstance(e, OSError):
                raise CacheError(
                    "Failed to write cached blob",
                    context="BlobCache.put",
                    extra={"blob_id": key, "path": str(path)},
                ) from e
            raise
        return tmp_path
