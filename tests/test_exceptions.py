"""
Tests for the exception hierarchy.
"""

from __future__ import annotations

import pickle

import pytest

from walrus_sdk.exceptions import (
    CacheError,
    ConfigurationError,
    InvalidArgumentError,
    RequestTimeoutError,
    TransportError,
    WalrusApiError,
    WalrusError,
)


class TestWalrusError:
    """Test the base exception."""

    def test_message_only(self) -> None:
        error = WalrusError("something broke")

        assert str(error) == "something broke"
        assert error.context == ""
        assert error.extra == {}

    def test_context_and_extra(self) -> None:
        error = CacheError("Failed to write", context="BlobCache.put", extra={"blob_id": "abc"})

        assert str(error) == "BlobCache.put: Failed to write (blob_id='abc')"

    @pytest.mark.parametrize(
        "cls",
        [InvalidArgumentError, ConfigurationError, CacheError, TransportError, RequestTimeoutError, WalrusApiError],
    )
    def test_hierarchy(self, cls: type) -> None:
        assert issubclass(cls, WalrusError)

    def test_invalid_argument_is_value_error(self) -> None:
        with pytest.raises(ValueError):
            raise InvalidArgumentError("bad")

    def test_timeout_is_transport_error(self) -> None:
        assert issubclass(RequestTimeoutError, TransportError)


class TestWalrusApiError:
    """Test the API error value type."""

    def test_fields(self) -> None:
        error = WalrusApiError(
            code=404,
            status="NOT_FOUND",
            message="Blob not found",
            details=[{"reason": "missing"}],
            context="Error retrieving blob by blob ID: abc",
        )

        assert error.code == 404
        assert error.status == "NOT_FOUND"
        assert error.message == "Blob not found"
        assert error.details == ({"reason": "missing"},)
        assert error.context == "Error retrieving blob by blob ID: abc"

    def test_defaults(self) -> None:
        error = WalrusApiError(code=500, status="SERVER_ERROR", message="boom")

        assert error.details == ()
        assert error.context == ""

    def test_str_with_context(self) -> None:
        error = WalrusApiError(code=404, status="NOT_FOUND", message="Blob not found", context="Error uploading blob")

        assert str(error) == "Error uploading blob: HTTP 404 - NOT_FOUND: Blob not found"

    def test_str_without_context(self) -> None:
        error = WalrusApiError(code=500, status="SERVER_ERROR", message="Internal Server Error")

        assert str(error) == "HTTP 500 - SERVER_ERROR: Internal Server Error"

    def test_str_with_details(self) -> None:
        error = WalrusApiError(code=400, status="BAD", message="bad", details=["x"])

        assert str(error) == "HTTP 400 - BAD: bad (Details: ['x'])"

    @pytest.mark.parametrize("field", ["code", "status", "message", "details", "context"])
    def test_immutable(self, field: str) -> None:
        error = WalrusApiError(code=400, status="BAD", message="bad")

        with pytest.raises(AttributeError):
            setattr(error, field, "changed")

    def test_equality(self) -> None:
        a = WalrusApiError(code=404, status="NOT_FOUND", message="m", context="c")
        b = WalrusApiError(code=404, status="NOT_FOUND", message="m", context="c")
        c = WalrusApiError(code=404, status="NOT_FOUND", message="m", context="other")

        assert a == b
        assert hash(a) == hash(b)
        assert a != c

    def test_hash_with_unhashable_details(self) -> None:
        error = WalrusApiError(code=400, status="BAD", message="bad", details=[{"a": [1]}])

        assert isinstance(hash(error), int)

    def test_is_server_error(self) -> None:
        assert WalrusApiError(code=503, status="S", message="m").is_server_error
        assert not WalrusApiError(code=404, status="C", message="m").is_server_error

    def test_pickle_round_trip(self) -> None:
        error = WalrusApiError(code=429, status="RATE_LIMITED", message="slow down", details=[1], context="ctx")

        assert pickle.loads(pickle.dumps(error)) == error

    def test_can_be_raised(self) -> None:
        with pytest.raises(WalrusApiError, match="HTTP 500"):
            raise WalrusApiError(code=500, status="SERVER_ERROR", message="boom")
