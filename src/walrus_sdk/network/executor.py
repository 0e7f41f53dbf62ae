"""
Request executor: the thin transport layer over httpx.AsyncClient.

Sends one request, reads (or streams) the response and maps httpx
transport failures onto TransportError / RequestTimeoutError. It does not
retry and does not interpret status codes; that is the classifier's job.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Mapping

import httpx

from walrus_sdk.exceptions import InvalidArgumentError, RequestTimeoutError, TransportError
from walrus_sdk.logging import get_logger, log_context
from walrus_sdk.types import RawResponse, generate_id

logger = get_logger(__name__)


def _flatten_headers(headers: httpx.Headers) -> dict[str, str]:
    """Join repeated header values with ", " under lowercase names."""
    flattened: dict[str, str] = {}
    for name in headers.keys():
        flattened[name.lower()] = ", ".join(headers.get_list(name))
    return flattened


class RequestExecutor:
    """Executes HTTP requests with a fixed timeout and verbose tracing."""

    def __init__(self, client: httpx.AsyncClient, timeout: float) -> None:
        """Initialize the executor.

        Args:
            client: Shared async HTTP client.
            timeout: Per-request timeout in seconds.
        """
        self._client = client
        self._timeout = timeout

    def _build_request(
        self,
        method: str,
        url: str | httpx.URL,
        headers: Mapping[str, str] | None,
        params: Mapping[str, str] | None,
        body: bytes | None,
        body_stream: AsyncIterator[bytes] | None,
    ) -> httpx.Request:
        if body is not None and body_stream is not None:
            raise InvalidArgumentError(
                "Provide either body or body_stream, not both.",
                context="RequestExecutor",
            )
        content: Any = body if body is not None else body_stream
        return self._client.build_request(
            method.upper(),
            url,
            headers=dict(headers) if headers else None,
            params=dict(params) if params else None,
            content=content,
            timeout=self._timeout,
        )

    def _transport_error(
        self,
        exc: httpx.HTTPError,
        request: httpx.Request,
    ) -> TransportError:
        extra = {"method": request.method, "url": str(request.url)}
        description = f"{request.method} {request.url}"
        if isinstance(exc, httpx.TimeoutException):
            logger.error("Request timed out: %s", description)
            return RequestTimeoutError(
                f"Request exceeded timeout of {self._timeout}s",
                context=description,
                extra=extra,
            )
        logger.error("Transport failure: %s", description, error=str(exc))
        return TransportError(
            f"Transport failure: {exc.__class__.__name__}: {exc}",
            context=description,
            extra=extra,
        )

    async def send(
        self,
        method: str,
        url: str | httpx.URL,
        *,
        headers: Mapping[str, str] | None = None,
        params: Mapping[str, str] | None = None,
        body: bytes | None = None,
        body_stream: AsyncIterator[bytes] | None = None,
    ) -> RawResponse:
        """Send a request and read the whole response body.

        Raises:
            RequestTimeoutError: If the request times out.
            TransportError: On connection-level failures.
            InvalidArgumentError: If both body and body_stream are given.
        """
        request = self._build_request(method, url, headers, params, body, body_stream)
        description = f"{request.method} {request.url}"

        with log_context(request_id=generate_id("req")):
            logger.debug("→ %s", description)
            try:
                response = await self._client.send(request)
            except httpx.HTTPError as e:
                raise self._transport_error(e, request) from e
            logger.debug("← %s %s", response.status_code, description)

        return self.to_raw(response, response.content)

    @asynccontextmanager
    async def stream(
        self,
        method: str,
        url: str | httpx.URL,
        *,
        headers: Mapping[str, str] | None = None,
        params: Mapping[str, str] | None = None,
    ) -> AsyncIterator[httpx.Response]:
        """Send a request and yield the response with an unread body.

        Transport failures while reading the body inside the block are
        mapped the same way as in send().
        """
        request = self._build_request(method, url, headers, params, None, None)
        description = f"{request.method} {request.url}"

        with log_context(request_id=generate_id("req")):
            logger.debug("→ %s", description)
            try:
                response = await self._client.send(request, stream=True)
            except httpx.HTTPError as e:
                raise self._transport_error(e, request) from e
            logger.debug("← %s %s", response.status_code, description)

            try:
                yield response
            except httpx.HTTPError as e:
                raise self._transport_error(e, request) from e
            finally:
                await response.aclose()

    @staticmethod
    def to_raw(response: httpx.Response, body: bytes) -> RawResponse:
        """Build a RawResponse from a streamed response and its read body."""
        return RawResponse(
            status_code=response.status_code,
            body=body,
            headers=_flatten_headers(response.headers),
            reason_phrase=response.reason_phrase,
        )
