"""
Pytest configuration and fixtures for Walrus SDK tests.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import AsyncGenerator, Callable, Generator
from unittest.mock import patch

import httpx
import pytest

from walrus_sdk.cache.blob_cache import BlobCache
from walrus_sdk.client import WalrusClient
from walrus_sdk.config import Settings, clear_settings_cache, get_settings

PUBLISHER_URL = "http://publisher.test"
AGGREGATOR_URL = "http://aggregator.test"

Handler = Callable[[httpx.Request], httpx.Response]


class RecordingTransport(httpx.MockTransport):
    """MockTransport that serves queued responses and records requests."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self._handlers: list[Handler] = []
        super().__init__(self._dispatch)

    def queue(self, handler: Handler) -> None:
        self._handlers.append(handler)

    def respond(self, status_code: int, **kwargs: object) -> None:
        self.queue(lambda request: httpx.Response(status_code, **kwargs))

    def _dispatch(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self._handlers:
            return httpx.Response(500, text="No handler configured")
        return self._handlers.pop(0)(request)


@pytest.fixture
def temp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test outputs."""
    return tmp_path


@pytest.fixture
async def cache(temp_dir: Path) -> AsyncGenerator[BlobCache, None]:
    """Provide a caller-owned cache with room for three entries."""
    blob_cache = BlobCache(cache_dir=temp_dir / "cache", max_size=3)
    yield blob_cache
    await blob_cache.dispose()


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
async def client(
    transport: RecordingTransport, temp_dir: Path
) -> AsyncGenerator[WalrusClient, None]:
    """Provide a client whose HTTP traffic goes to the recording transport."""
    http_client = httpx.AsyncClient(transport=transport)
    walrus = WalrusClient(
        PUBLISHER_URL,
        AGGREGATOR_URL,
        cache_dir=temp_dir / "client_cache",
        http_client=http_client,
    )
    yield walrus
    await walrus.close()
    await http_client.aclose()


@pytest.fixture
def mock_env_vars() -> Generator[dict[str, str], None, None]:
    """Provide mock environment variables for testing."""
    env_vars = {
        "WALRUS_PUBLISHER_URL": PUBLISHER_URL,
        "WALRUS_AGGREGATOR_URL": AGGREGATOR_URL,
        "WALRUS_TIMEOUT_SECONDS": "12.5",
        "WALRUS_USE_SECURE_CONNECTION": "true",
        "WALRUS_JWT_TOKEN": "header.payload.signature-token",
        "WALRUS_CACHE_MAX_SIZE": "7",
        "LOG_LEVEL": "DEBUG",
    }

    with patch.dict(os.environ, env_vars, clear=False):
        clear_settings_cache()
        yield env_vars


@pytest.fixture
def mock_settings(
    mock_env_vars: dict[str, str], temp_dir: Path
) -> Generator[Settings, None, None]:
    """Provide a Settings instance with mock configuration.

    Uses temp_dir for the cache directory.
    """
    with patch.dict(os.environ, {"WALRUS_CACHE_DIR": str(temp_dir / "cache")}):
        clear_settings_cache()
        yield get_settings()
        clear_settings_cache()


@pytest.fixture(autouse=True)
def reset_settings_cache() -> Generator[None, None, None]:
    """Automatically reset settings cache before and after each test."""
    clear_settings_cache()
    yield
    clear_settings_cache()
