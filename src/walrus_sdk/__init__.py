"""
Python SDK for Walrus decentralized blob storage.

Upload through a publisher, download through an aggregator, with a local
disk cache (LRU) in front of blob-ID downloads.

    from walrus_sdk import WalrusClient

    async with WalrusClient(publisher_url, aggregator_url) as client:
        result = await client.upload(data)
        blob = await client.get_blob(result.blob_id)
"""

from walrus_sdk.cache import BlobCache, CacheProtocol
from walrus_sdk.client import WalrusClient
from walrus_sdk.exceptions import (
    CacheError,
    ConfigurationError,
    InvalidArgumentError,
    RequestTimeoutError,
    TransportError,
    WalrusApiError,
    WalrusError,
)
from walrus_sdk.logging import LogLevel
from walrus_sdk.types import CacheOwnership, ClassifiedResponse, ResponseKind, UploadResult

__version__ = "0.1.0"

__all__ = [
    "BlobCache",
    "CacheError",
    "CacheOwnership",
    "CacheProtocol",
    "ClassifiedResponse",
    "ConfigurationError",
    "InvalidArgumentError",
    "LogLevel",
    "RequestTimeoutError",
    "ResponseKind",
    "TransportError",
    "UploadResult",
    "WalrusApiError",
    "WalrusClient",
    "WalrusError",
    "__version__",
]
