"""
Walrus client: upload to the publisher, download from the aggregator.

Downloads by blob ID go through the local BlobCache (hit → no network
call; miss → fetch, classify, populate cache). Downloads by object ID and
all uploads bypass the cache. Failed cache population is logged and never
fails the download.
"""

from __future__ import annotations

import asyncio
import os
import secrets
from pathlib import Path
from typing import Any, AsyncIterator
from urllib.parse import quote, urljoin, urlsplit, urlunsplit

import aiofiles
import httpx

from walrus_sdk.cache.base import CacheProtocol
from walrus_sdk.cache.blob_cache import DEFAULT_MAX_SIZE, BlobCache
from walrus_sdk.config import Settings
from walrus_sdk.exceptions import CacheError, InvalidArgumentError
from walrus_sdk.logging import LogLevel, get_logger, log_context, set_log_level
from walrus_sdk.network.classifier import (
    build_error_from_response,
    classify_binary_response,
    classify_json_response,
    is_success_status,
)
from walrus_sdk.network.executor import RequestExecutor
from walrus_sdk.types import UploadResult

logger = get_logger(__name__)

DEFAULT_TIMEOUT = 30.0
STREAM_CHUNK_SIZE = 64 * 1024

UPLOAD_CONTEXT = "Error uploading blob"


def normalize_base_url(url: str | httpx.URL) -> str:
    """Validate a base URL and normalize it to end with a slash.

    Query and fragment are dropped so endpoint paths resolve beneath it.

    Raises:
        InvalidArgumentError: If the URL lacks a scheme or host.
    """
    parts = urlsplit(str(url).strip())
    if not parts.scheme or "://" not in str(url):
        raise InvalidArgumentError(
            "Base URL must include a scheme", extra={"url": str(url)}
        )
    if not parts.netloc:
        raise InvalidArgumentError(
            "Base URL must include a host", extra={"url": str(url)}
        )
    path = parts.path if parts.path.endswith("/") else f"{parts.path}/"
    return urlunsplit((parts.scheme, parts.netloc, path, "", ""))


def build_query_parameters(
    epochs: int | None = None,
    deletable: bool | None = None,
    send_object_to: str | None = None,
) -> dict[str, str]:
    """Build upload query parameters, omitting unset values."""
    params: dict[str, str] = {}
    if epochs is not None:
        params["epochs"] = str(epochs)
    if deletable is not None:
        params["deletable"] = "true" if deletable else "false"
    if send_object_to is not None:
        params["send_object_to"] = send_object_to
    return params


async def _fsync(f: Any) -> None:
    await f.flush()
    await asyncio.to_thread(os.fsync, f.fileno())


def _temp_sibling(destination: Path) -> Path:
    return destination.with_name(f".{destination.name}.{secrets.token_hex(4)}.tmp")


async def write_bytes_atomically(destination: Path, data: bytes) -> None:
    """Write ``data`` to a temp file beside ``destination`` and rename it in.

    Parent directories are created as needed. Readers see either the old
    file or the complete new one.
    """
    destination.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = _temp_sibling(destination)
    try:
        async with aiofiles.open(tmp_path, "wb") as f:
            await f.write(data)
            await _fsync(f)
        os.replace(tmp_path, destination)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


class WalrusClient:
    """Async client for the Walrus publisher and aggregator HTTP APIs.

    Example:
        async with WalrusClient(
            "https://publisher.example.com",
            "https://aggregator.example.com",
        ) as client:
            result = await client.upload(b"hello")
            data = await client.get_blob(result.blob_id)
    """

    def __init__(
        self,
        publisher_base_url: str | httpx.URL,
        aggregator_base_url: str | httpx.URL,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        cache_dir: str | Path | None = None,
        cache_max_size: int = DEFAULT_MAX_SIZE,
        use_secure_connection: bool = False,
        jwt_token: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        log_level: LogLevel | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            publisher_base_url: Base URL of the publisher (uploads).
            aggregator_base_url: Base URL of the aggregator (downloads).
            timeout: Per-request timeout in seconds.
            cache_dir: Persistent cache directory; temporary if None.
            cache_max_size: Maximum number of cached blobs.
            use_secure_connection: Passed to httpx as ``verify``.
            jwt_token: Default bearer token for uploads.
            http_client: Caller-owned client; not closed by close().
            log_level: Optional verbosity preset for the SDK logger.

        Raises:
            InvalidArgumentError: On a malformed base URL or cache size <= 0.
        """
        if isinstance(cache_max_size, bool) or not isinstance(cache_max_size, int) or cache_max_size <= 0:
            raise InvalidArgumentError(
                "cache_max_size must be greater than zero",
                context="WalrusClient",
                extra={"cache_max_size": cache_max_size},
            )
        if timeout <= 0:
            raise InvalidArgumentError(
                "timeout must be greater than zero",
                context="WalrusClient",
                extra={"timeout": timeout},
            )

        self.publisher_base_url = normalize_base_url(publisher_base_url)
        self.aggregator_base_url = normalize_base_url(aggregator_base_url)
        self.timeout = timeout
        self.use_secure_connection = use_secure_connection
        self._jwt_token = jwt_token
        self._log_level = log_level
        if log_level is not None:
            set_log_level(log_level)

        self.cache: CacheProtocol = BlobCache(cache_dir=cache_dir, max_size=cache_max_size)

        self._owns_http_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(
            timeout=timeout,
            verify=use_secure_connection,
        )
        self._executor = RequestExecutor(self._http_client, timeout)
        self._closed = False

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        http_client: httpx.AsyncClient | None = None,
    ) -> WalrusClient:
        """Build a client from loaded settings."""
        return cls(
            settings.publisher_url,
            settings.aggregator_url,
            timeout=settings.WALRUS_TIMEOUT_SECONDS,
            cache_dir=settings.WALRUS_CACHE_DIR,
            cache_max_size=settings.WALRUS_CACHE_MAX_SIZE,
            use_secure_connection=settings.WALRUS_USE_SECURE_CONNECTION,
            jwt_token=settings.jwt_token,
            http_client=http_client,
        )

    @property
    def log_level(self) -> LogLevel | None:
        return self._log_level

    @property
    def jwt_token(self) -> str | None:
        return self._jwt_token

    @property
    def closed(self) -> bool:
        return self._closed

    def set_log_level(self, level: LogLevel) -> None:
        """Apply a verbosity preset to the SDK logger."""
        if self._log_level == level:
            return
        self._log_level = level
        set_log_level(level)
        logger.info("Log level changed to %s", level.value.upper())

    def set_jwt_token(self, token: str) -> None:
        """Set the default JWT used for subsequent uploads."""
        self._jwt_token = token

    def clear_jwt_token(self) -> None:
        """Remove the stored JWT so uploads become anonymous."""
        self._jwt_token = None

    async def close(self) -> None:
        """Release the HTTP client (if owned) and dispose the cache.

        Safe to call more than once.
        """
        if self._closed:
            return
        self._closed = True
        try:
            if self._owns_http_client:
                await self._http_client.aclose()
        finally:
            await self.cache.dispose()
        logger.debug("Client closed")

    async def __aenter__(self) -> WalrusClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def _ensure_open(self) -> None:
        if self._closed:
            raise RuntimeError("WalrusClient is closed.")

    def _publisher_url(self, path: str) -> str:
        return urljoin(self.publisher_base_url, path)

    def _aggregator_url(self, path: str) -> str:
        return urljoin(self.aggregator_base_url, path)

    @staticmethod
    def _blob_path(identifier: str) -> str:
        return f"v1/blobs/{quote(identifier, safe='')}"

    def _build_headers(self, jwt_token: str | None = None) -> dict[str, str]:
        headers = {"Content-Type": "application/octet-stream"}
        token = jwt_token or self._jwt_token
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def _populate_cache(self, blob_id: str, data: bytes) -> None:
        try:
            await self.cache.put(blob_id, data)
        except CacheError:
            logger.exception("Failed to cache blob", blob_id=blob_id)

    # ------------------------------------------------------------------
    # Uploads
    # ------------------------------------------------------------------

    async def put_blob(
        self,
        data: bytes,
        *,
        epochs: int | None = None,
        deletable: bool | None = None,
        send_object_to: str | None = None,
        jwt_token: str | None = None,
    ) -> dict[str, Any]:
        """Upload in-memory bytes to ``v1/blobs`` and return the JSON response.

        Raises:
            WalrusApiError: On a non-2xx or unparseable response.
            TransportError: On connection failure or timeout.
        """
        self._ensure_open()
        logger.info("Uploading %d bytes", len(data))

        with log_context(operation="put_blob"):
            response = await self._executor.send(
                "PUT",
                self._publisher_url("v1/blobs"),
                headers=self._build_headers(jwt_token),
                params=build_query_parameters(epochs, deletable, send_object_to),
                body=bytes(data),
            )
            result = classify_json_response(response, UPLOAD_CONTEXT).unwrap()

        logger.info("Upload completed with status %s", response.status_code)
        return result

    async def put_blob_from_file(
        self,
        path: str | Path,
        *,
        epochs: int | None = None,
        deletable: bool | None = None,
        send_object_to: str | None = None,
        jwt_token: str | None = None,
    ) -> dict[str, Any]:
        """Read a file and upload its bytes via put_blob().

        Raises:
            FileNotFoundError: If the file does not exist.
        """
        path = Path(path)
        if not path.is_file():
            raise FileNotFoundError(f"File does not exist: {path}")

        logger.info("Uploading file %s", path)
        async with aiofiles.open(path, "rb") as f:
            data = await f.read()
        return await self.put_blob(
            data,
            epochs=epochs,
            deletable=deletable,
            send_object_to=send_object_to,
            jwt_token=jwt_token,
        )

    async def put_blob_streaming(
        self,
        path: str | Path,
        *,
        epochs: int | None = None,
        deletable: bool | None = None,
        send_object_to: str | None = None,
        jwt_token: str | None = None,
    ) -> dict[str, Any]:
        """Stream a file to the publisher without loading it into memory.

        Raises:
            FileNotFoundError: If the file does not exist.
        """
        self._ensure_open()
        path = Path(path)
        if not path.is_file():
            raise FileNotFoundError(f"File does not exist: {path}")

        logger.info("Streaming upload for file %s", path)
        with log_context(operation="put_blob_streaming"):
            response = await self._executor.send(
                "PUT",
                self._publisher_url("v1/blobs"),
                headers=self._build_headers(jwt_token),
                params=build_query_parameters(epochs, deletable, send_object_to),
                body_stream=self._iter_file(path),
            )
            result = classify_json_response(response, UPLOAD_CONTEXT).unwrap()

        logger.info("Streaming upload completed with status %s", response.status_code)
        return result

    async def upload(
        self,
        data: bytes,
        *,
        epochs: int | None = None,
        deletable: bool | None = None,
        send_object_to: str | None = None,
        jwt_token: str | None = None,
    ) -> UploadResult:
        """Upload bytes and resolve the blob ID from the publisher response."""
        response = await self.put_blob(
            data,
            epochs=epochs,
            deletable=deletable,
            send_object_to=send_object_to,
            jwt_token=jwt_token,
        )
        return UploadResult.from_response(response)

    @staticmethod
    async def _iter_file(path: Path) -> AsyncIterator[bytes]:
        async with aiofiles.open(path, "rb") as f:
            while chunk := await f.read(STREAM_CHUNK_SIZE):
                yield chunk

    # ------------------------------------------------------------------
    # Downloads
    # ------------------------------------------------------------------

    async def _fetch_blob(self, identifier: str, context: str) -> bytes:
        response = await self._executor.send(
            "GET", self._aggregator_url(self._blob_path(identifier))
        )
        return classify_binary_response(response, context).unwrap()

    async def get_blob(self, blob_id: str) -> bytes:
        """Return a blob from the cache, or fetch and cache it on a miss.

        Raises:
            WalrusApiError: If the aggregator returns an error.
            TransportError: On connection failure or timeout.
        """
        self._ensure_open()
        cached = await self.cache.get(blob_id)
        if cached is not None:
            logger.info("Cache hit", blob_id=blob_id)
            return cached
        logger.info("Cache miss; fetching from aggregator", blob_id=blob_id)

        with log_context(operation="get_blob"):
            data = await self._fetch_blob(
                blob_id, f"Error retrieving blob by blob ID: {blob_id}"
            )
            await self._populate_cache(blob_id, data)

        logger.info("Fetched %d bytes", len(data), blob_id=blob_id)
        return data

    async def get_blob_by_object_id(self, object_id: str) -> bytes:
        """Download a blob by Sui object ID. Never reads or writes the cache."""
        self._ensure_open()
        logger.info("Fetching blob by object ID", object_id=object_id)

        with log_context(operation="get_blob_by_object_id"):
            data = await self._fetch_blob(
                object_id, f"Error retrieving blob by object ID: {object_id}"
            )

        logger.info("Received %d bytes", len(data), object_id=object_id)
        return data

    async def download(self, blob_id: str, use_cache: bool = True) -> bytes:
        """Download a blob, through the cache unless ``use_cache`` is False."""
        if use_cache:
            return await self.get_blob(blob_id)
        return await self.get_blob_by_object_id(blob_id)

    async def get_blob_as_file(self, blob_id: str, destination: str | Path) -> Path:
        """Write a blob to ``destination``, preferring cached bytes.

        The file is replaced atomically; parent directories are created.
        """
        self._ensure_open()
        destination = Path(destination)

        data = await self.cache.get(blob_id)
        if data is not None:
            logger.info("Cache hit; writing to %s", destination, blob_id=blob_id)
        else:
            logger.info("Cache miss; downloading to %s", destination, blob_id=blob_id)
            with log_context(operation="get_blob_as_file"):
                data = await self._fetch_blob(
                    blob_id, f"Error retrieving blob as file by blob ID: {blob_id}"
                )
                await self._populate_cache(blob_id, data)

        await write_bytes_atomically(destination, data)
        logger.info("Saved %d bytes to %s", len(data), destination, blob_id=blob_id)
        return destination

    async def get_blob_as_file_streaming(self, blob_id: str, destination: str | Path) -> Path:
        """Stream a blob to ``destination`` and cache the final bytes.

        On an error response the destination is left untouched.
        """
        self._ensure_open()
        destination = Path(destination)

        cached = await self.cache.get(blob_id)
        if cached is not None:
            logger.info("Cache hit; writing to %s", destination, blob_id=blob_id)
            await write_bytes_atomically(destination, cached)
            return destination
        logger.info("Cache miss; streaming to %s", destination, blob_id=blob_id)

        context = f"Error retrieving blob as file by blob ID: {blob_id}"
        received = bytearray()

        with log_context(operation="get_blob_as_file_streaming"):
            async with self._executor.stream(
                "GET", self._aggregator_url(self._blob_path(blob_id))
            ) as response:
                if not is_success_status(response.status_code):
                    body = await response.aread()
                    build_error_from_response(
                        RequestExecutor.to_raw(response, body), context
                    ).unwrap()

                destination.parent.mkdir(parents=True, exist_ok=True)
                tmp_path = _temp_sibling(destination)
                try:
                    async with aiofiles.open(tmp_path, "wb") as f:
                        async for chunk in response.aiter_bytes(STREAM_CHUNK_SIZE):
                            await f.write(chunk)
                            received.extend(chunk)
                        await _fsync(f)
                    os.replace(tmp_path, destination)
                except BaseException:
                    tmp_path.unlink(missing_ok=True)
                    raise

            await self._populate_cache(blob_id, bytes(received))

        logger.info("Streamed %d bytes to %s", len(received), destination, blob_id=blob_id)
        return destination

    async def get_blob_metadata(self, blob_id: str) -> dict[str, str]:
        """Issue a HEAD request for a blob and return its response headers."""
        self._ensure_open()
        logger.info("Fetching metadata", blob_id=blob_id)

        with log_context(operation="get_blob_metadata"):
            response = await self._executor.send(
                "HEAD", self._aggregator_url(self._blob_path(blob_id))
            )
            if not is_success_status(response.status_code):
                build_error_from_response(
                    response, f"Error retrieving metadata for blob ID: {blob_id}"
                ).unwrap()

        return dict(response.headers)
