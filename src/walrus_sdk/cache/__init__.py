"""
Cache package.

- base.py: CacheProtocol interface
- blob_cache.py: disk-backed, SHA-256 named, LRU-bounded blob cache
"""

from walrus_sdk.cache.base import CacheProtocol
from walrus_sdk.cache.blob_cache import BlobCache

__all__ = [
    "BlobCache",
    "CacheProtocol",
]
