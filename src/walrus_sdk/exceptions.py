"""
Exception hierarchy for the Walrus SDK.

All exceptions inherit from WalrusError, which carries a context string
naming the operation that failed plus optional structured fields for
logging/debugging.

A cache miss is not an error: BlobCache.get returns None.
"""

from __future__ import annotations

from typing import Any, Sequence


class WalrusError(Exception):
    """Base exception for all Walrus SDK errors.

    Attributes:
        message: Human-readable error message.
        context: Description of the operation that failed.
        extra: Optional structured fields for logging/debugging.
    """

    def __init__(
        self,
        message: str,
        context: str = "",
        extra: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.context = context
        self.extra = extra or {}

    def __str__(self) -> str:
        text = f"{self.context}: {self.message}" if self.context else self.message
        if self.extra:
            extra_str = ", ".join(f"{k}={v!r}" for k, v in self.extra.items())
            return f"{text} ({extra_str})"
        return text

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}({self.message!r}, "
            f"context={self.context!r}, extra={self.extra!r})"
        )


class InvalidArgumentError(WalrusError, ValueError):
    """Raised when a constructor or call receives an invalid parameter.

    Examples:
        - Cache capacity of zero or below
        - Base URL without a scheme or host
        - Both a body and a body stream supplied to one request
    """

    pass


class ConfigurationError(WalrusError):
    """Raised when settings are missing or invalid."""

    pass


class CacheError(WalrusError):
    """Raised when the blob cache cannot persist an entry.

    Read failures never surface as CacheError; the cache treats them as a miss.

    Extra should include:
        - blob_id: The logical key being written
        - path: The backing file path
    """

    pass


class TransportError(WalrusError):
    """Raised when a request cannot be completed at the transport level.

    Extra should include:
        - method: HTTP method
        - url: Request URL
    """

    pass


class RequestTimeoutError(TransportError):
    """Raised when a request exceeds the configured timeout."""

    pass


class WalrusApiError(WalrusError):
    """An error returned by the Walrus API or produced while reading a response.

    Instances are immutable and compare by value.

    Attributes:
        code: HTTP status code or API-specific error code.
        status: Error category such as CLIENT_ERROR, SERVER_ERROR,
            INVALID_RESPONSE or a server-provided value.
        message: Human-readable failure message.
        details: Additional error details forwarded from the server.
        context: Describes which operation failed (e.g. "Error uploading blob").
    """

    _FIELDS = ("code", "status", "message", "details", "context")

    def __init__(
        self,
        code: int,
        status: str,
        message: str,
        details: Sequence[Any] = (),
        context: str = "",
    ) -> None:
        super().__init__(message, context=context)
        object.__setattr__(self, "code", code)
        object.__setattr__(self, "status", status)
        object.__setattr__(self, "details", tuple(details))
        object.__setattr__(self, "_frozen", True)

    def __setattr__(self, name: str, value: Any) -> None:
        if getattr(self, "_frozen", False) and name in self._FIELDS + ("extra",):
            raise AttributeError(f"WalrusApiError is immutable; cannot set {name!r}")
        object.__setattr__(self, name, value)

    def __delattr__(self, name: str) -> None:
        if name in self._FIELDS:
            raise AttributeError(f"WalrusApiError is immutable; cannot delete {name!r}")
        object.__delattr__(self, name)

    @property
    def is_server_error(self) -> bool:
        return self.code >= 500

    def _key(self) -> tuple[Any, ...]:
        return (self.code, self.status, self.message, self.details, self.context)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, WalrusApiError):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self) -> int:
        try:
            return hash(self._key())
        except TypeError:
            # details may hold unhashable JSON values
            return hash((self.code, self.status, self.message, self.context))

    def __str__(self) -> str:
        text = f"HTTP {self.code} - {self.status}: {self.message}"
        if self.context:
            text = f"{self.context}: {text}"
        if self.details:
            text = f"{text} (Details: {list(self.details)})"
        return text

    def __repr__(self) -> str:
        return (
            f"WalrusApiError(code={self.code!r}, status={self.status!r}, "
            f"message={self.message!r}, details={self.details!r}, "
            f"context={self.context!r})"
        )

    def __reduce__(self) -> tuple[Any, ...]:
        return (
            self.__class__,
            (self.code, self.status, self.message, self.details, self.context),
        )
