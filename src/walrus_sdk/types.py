"""
Core types for the Walrus SDK.

This module defines the data structures shared across the SDK:
- Enums for cache ownership and response classification outcomes
- RawResponse and ClassifiedResponse, the classifier input and result
- UploadResult and the blobId lookup used on publisher responses
- generate_id for time-ordered request IDs
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from uuid6 import uuid7

from walrus_sdk.exceptions import WalrusApiError


def generate_id(prefix: str = "") -> str:
    """Generate a time-ordered unique ID using UUID7.

    Args:
        prefix: Optional prefix for the ID (e.g., "req").

    Returns:
        A unique ID string, optionally prefixed.
    """
    uid = str(uuid7())
    return f"{prefix}_{uid}" if prefix else uid


class CacheOwnership(str, Enum):
    """Who owns the lifecycle of a cache directory."""

    EPHEMERAL = "ephemeral"  # created by the cache, deleted on dispose
    CALLER_OWNED = "caller_owned"


class ResponseKind(str, Enum):
    """Outcome of classifying an HTTP response."""

    SUCCESS = "success"
    API_ERROR = "api_error"
    HTTP_ERROR = "http_error"
    INVALID_RESPONSE = "invalid_response"


@dataclass(frozen=True)
class RawResponse:
    """A fully read HTTP response as returned by the request executor."""

    status_code: int
    body: bytes = b""
    headers: dict[str, str] = field(default_factory=dict)
    reason_phrase: str = ""


@dataclass(frozen=True)
class ClassifiedResponse:
    """Result of classifying one HTTP response.

    Exactly one of ``payload`` (on SUCCESS) or ``error`` (otherwise) is set.
    ``payload`` is a dict for JSON endpoints and bytes for binary endpoints.
    """

    kind: ResponseKind
    payload: dict[str, Any] | bytes | None = None
    error: WalrusApiError | None = None

    @property
    def ok(self) -> bool:
        return self.kind is ResponseKind.SUCCESS

    def unwrap(self) -> Any:
        """Return the payload, or raise the carried WalrusApiError."""
        if self.error is not None:
            raise self.error
        return self.payload

    @classmethod
    def success(cls, payload: dict[str, Any] | bytes) -> ClassifiedResponse:
        return cls(kind=ResponseKind.SUCCESS, payload=payload)

    @classmethod
    def failure(cls, kind: ResponseKind, error: WalrusApiError) -> ClassifiedResponse:
        return cls(kind=kind, error=error)


def find_blob_id(payload: Any) -> str | None:
    """Find the first non-empty ``blobId`` string in a publisher response.

    Searches depth-first through nested dicts and lists, so both the
    ``newlyCreated.blobObject.blobId`` and ``alreadyCertified.blobId``
    response shapes resolve.
    """
    if isinstance(payload, dict):
        for key, value in payload.items():
            if key == "blobId" and isinstance(value, str) and value:
                return value
            nested = find_blob_id(value)
            if nested is not None:
                return nested
    elif isinstance(payload, list):
        for element in payload:
            nested = find_blob_id(element)
            if nested is not None:
                return nested
    return None


@dataclass(frozen=True)
class UploadResult:
    """Publisher response for an upload, with the blob ID resolved."""

    response: dict[str, Any]
    blob_id: str | None

    @property
    def newly_created(self) -> bool:
        return "newlyCreated" in self.response

    @classmethod
    def from_response(cls, response: dict[str, Any]) -> UploadResult:
        return cls(response=response, blob_id=find_blob_id(response))
