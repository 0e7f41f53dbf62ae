"""
Tests for WalrusClient error surfaces: API errors, HTTP errors and transport failures.
"""

from __future__ import annotations

from pathlib import Path

import httpx
import orjson
import pytest

from conftest import RecordingTransport
from walrus_sdk.client import WalrusClient
from walrus_sdk.exceptions import RequestTimeoutError, TransportError, WalrusApiError


def _timeout(request: httpx.Request) -> httpx.Response:
    raise httpx.ReadTimeout("timed out", request=request)


def _refused(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("connection refused", request=request)


class TestUploadErrors:
    """Test failures on the publisher path."""

    @pytest.mark.asyncio
    async def test_structured_api_error(self, client: WalrusClient, transport: RecordingTransport) -> None:
        transport.respond(
            400,
            content=orjson.dumps(
                {"error": {"code": 400, "status": "INVALID_ARGUMENT", "message": "epochs too large"}}
            ),
        )

        with pytest.raises(WalrusApiError) as exc_info:
            await client.put_blob(b"data", epochs=10_000)

        assert exc_info.value == WalrusApiError(
            code=400,
            status="INVALID_ARGUMENT",
            message="epochs too large",
            context="Error uploading blob",
        )

    @pytest.mark.asyncio
    async def test_server_error_plain_text(self, client: WalrusClient, transport: RecordingTransport) -> None:
        transport.respond(500, text="Internal Server Error")

        with pytest.raises(WalrusApiError) as exc_info:
            await client.put_blob(b"data")

        error = exc_info.value
        assert error.code == 500
        assert error.status == "SERVER_ERROR"
        assert error.message == "Internal Server Error"
        assert error.context == "Error uploading blob"

    @pytest.mark.asyncio
    async def test_empty_success_body(self, client: WalrusClient, transport: RecordingTransport) -> None:
        """Test that a 200 without JSON is an invalid response."""
        transport.respond(200, content=b"")

        with pytest.raises(WalrusApiError) as exc_info:
            await client.put_blob(b"data")

        assert exc_info.value.code == 500
        assert exc_info.value.status == "INVALID_RESPONSE"
        assert exc_info.value.context == "Error uploading blob"

    @pytest.mark.asyncio
    async def test_upload_timeout(self, client: WalrusClient, transport: RecordingTransport) -> None:
        transport.queue(_timeout)

        with pytest.raises(RequestTimeoutError) as exc_info:
            await client.put_blob(b"data")

        assert exc_info.value.extra["method"] == "PUT"
        assert isinstance(exc_info.value.__cause__, httpx.ReadTimeout)

    @pytest.mark.asyncio
    async def test_streaming_upload_error(
        self, client: WalrusClient, transport: RecordingTransport, temp_dir: Path
    ) -> None:
        path = temp_dir / "upload.bin"
        path.write_bytes(b"contents")
        transport.respond(413, text="Payload Too Large")

        with pytest.raises(WalrusApiError) as exc_info:
            await client.put_blob_streaming(path)

        assert exc_info.value.code == 413
        assert exc_info.value.status == "CLIENT_ERROR"


class TestDownloadErrors:
    """Test failures on the aggregator path."""

    @pytest.mark.asyncio
    async def test_not_found_by_blob_id(self, client: WalrusClient, transport: RecordingTransport) -> None:
        transport.respond(
            404,
            content=orjson.dumps(
                {"error": {"code": 404, "status": "NOT_FOUND", "message": "Blob not found", "details": []}}
            ),
        )

        with pytest.raises(WalrusApiError) as exc_info:
            await client.get_blob("missing-blob")

        assert exc_info.value == WalrusApiError(
            code=404,
            status="NOT_FOUND",
            message="Blob not found",
            context="Error retrieving blob by blob ID: missing-blob",
        )
        assert "missing-blob" not in client.cache

    @pytest.mark.asyncio
    async def test_not_found_by_object_id(self, client: WalrusClient, transport: RecordingTransport) -> None:
        transport.respond(404)

        with pytest.raises(WalrusApiError) as exc_info:
            await client.get_blob_by_object_id("0xdead")

        assert exc_info.value.context == "Error retrieving blob by object ID: 0xdead"
        assert exc_info.value.message == "Not Found"

    @pytest.mark.asyncio
    async def test_download_timeout_leaves_cache_unchanged(
        self, client: WalrusClient, transport: RecordingTransport
    ) -> None:
        await client.cache.put("other", b"other bytes")
        transport.queue(_timeout)

        with pytest.raises(RequestTimeoutError):
            await client.get_blob("blob-123")

        assert list(client.cache.keys()) == ["other"]

    @pytest.mark.asyncio
    async def test_connection_refused(self, client: WalrusClient, transport: RecordingTransport) -> None:
        transport.queue(_refused)

        with pytest.raises(TransportError) as exc_info:
            await client.get_blob("blob-123")

        assert not isinstance(exc_info.value, RequestTimeoutError)
        assert exc_info.value.extra["url"] == "http://aggregator.test/v1/blobs/blob-123"

    @pytest.mark.asyncio
    async def test_error_after_error_is_not_cached(
        self, client: WalrusClient, transport: RecordingTransport
    ) -> None:
        """Test that an error is not remembered; the next call hits the network."""
        transport.respond(503, text="Service Unavailable")
        transport.respond(200, content=b"recovered")

        with pytest.raises(WalrusApiError):
            await client.get_blob("blob-123")
        assert await client.get_blob("blob-123") == b"recovered"

        assert len(transport.requests) == 2


class TestFileDownloadErrors:
    """Test that failed file downloads leave the destination alone."""

    @pytest.mark.asyncio
    async def test_get_blob_as_file_error(
        self, client: WalrusClient, transport: RecordingTransport, temp_dir: Path
    ) -> None:
        destination = temp_dir / "blob.bin"
        destination.write_bytes(b"previous contents")
        transport.respond(500, text="oops")

        with pytest.raises(WalrusApiError) as exc_info:
            await client.get_blob_as_file("blob-123", destination)

        assert exc_info.value.context == "Error retrieving blob as file by blob ID: blob-123"
        assert destination.read_bytes() == b"previous contents"

    @pytest.mark.asyncio
    async def test_streaming_error_leaves_destination(
        self, client: WalrusClient, transport: RecordingTransport, temp_dir: Path
    ) -> None:
        destination = temp_dir / "blob.bin"
        destination.write_bytes(b"previous contents")
        transport.respond(
            404,
            content=orjson.dumps({"error": {"code": 404, "status": "NOT_FOUND", "message": "Blob not found"}}),
        )

        with pytest.raises(WalrusApiError) as exc_info:
            await client.get_blob_as_file_streaming("blob-123", destination)

        assert exc_info.value.status == "NOT_FOUND"
        assert exc_info.value.context == "Error retrieving blob as file by blob ID: blob-123"
        assert destination.read_bytes() == b"previous contents"
        assert sorted(p.name for p in temp_dir.iterdir() if p.is_file()) == ["blob.bin"]
        assert "blob-123" not in client.cache

    @pytest.mark.asyncio
    async def test_streaming_timeout(
        self, client: WalrusClient, transport: RecordingTransport, temp_dir: Path
    ) -> None:
        transport.queue(_timeout)

        with pytest.raises(RequestTimeoutError):
            await client.get_blob_as_file_streaming("blob-123", temp_dir / "blob.bin")

        assert not (temp_dir / "blob.bin").exists()


class TestMetadataErrors:
    """Test HEAD failures."""

    @pytest.mark.asyncio
    async def test_metadata_not_found(self, client: WalrusClient, transport: RecordingTransport) -> None:
        transport.respond(404)

        with pytest.raises(WalrusApiError) as exc_info:
            await client.get_blob_metadata("blob-123")

        assert exc_info.value.code == 404
        assert exc_info.value.status == "CLIENT_ERROR"
        assert exc_info.value.context == "Error retrieving metadata for blob ID: blob-123"
