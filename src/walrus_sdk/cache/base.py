"""
Base classes for caching.

CacheProtocol is the interface the client depends on; BlobCache is the
disk-backed implementation. Alternative backends (in-memory for tests,
shared stores) implement the same four operations.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path


class CacheProtocol(ABC):
    """Abstract interface for blob cache implementations."""

    @abstractmethod
    async def get(self, key: str) -> bytes | None:
        """Get cached bytes, or None on a miss."""
        ...

    @abstractmethod
    async def put(self, key: str, data: bytes) -> Path:
        """Store bytes and return their storage location."""
        ...

    @abstractmethod
    async def remove(self, key: str) -> None:
        """Remove a cached entry. Removing a missing key is a no-op."""
        ...

    @abstractmethod
    async def dispose(self) -> None:
        """Release resources at the end of the cache lifecycle."""
        ...
