"""
HTTP response classification and error building.

Every response from the publisher or aggregator ends in exactly one of
four outcomes:

- SUCCESS: 2xx with a usable body (JSON object or raw bytes)
- API_ERROR: non-2xx with an ``{"error": {"message": ...}}`` payload
- HTTP_ERROR: non-2xx without a structured payload
- INVALID_RESPONSE: 2xx whose body is not the JSON object that was expected

Classification never raises; callers decide whether to raise the carried
WalrusApiError (ClassifiedResponse.unwrap()).
"""

from __future__ import annotations

from typing import Any

import orjson

from walrus_sdk.exceptions import WalrusApiError
from walrus_sdk.logging import get_logger
from walrus_sdk.types import ClassifiedResponse, RawResponse, ResponseKind

logger = get_logger(__name__)

INVALID_RESPONSE_CODE = 500
INVALID_RESPONSE_STATUS = "INVALID_RESPONSE"
UNKNOWN_STATUS = "UNKNOWN"
SERVER_ERROR_STATUS = "SERVER_ERROR"
CLIENT_ERROR_STATUS = "CLIENT_ERROR"


def is_success_status(status_code: int) -> bool:
    return 200 <= status_code < 300


_UNPARSEABLE = object()


def _decode_json(body: bytes) -> Any:
    """Parse JSON, returning _UNPARSEABLE on any decode failure."""
    try:
        return orjson.loads(body)
    except (orjson.JSONDecodeError, ValueError, TypeError):
        return _UNPARSEABLE


def _parse_error_payload(
    body: bytes,
    status_code: int,
    context: str,
) -> WalrusApiError | None:
    """Build an error from a structured ``{"error": {...}}`` body, if present."""
    if not body:
        return None

    decoded = _decode_json(body)
    if not isinstance(decoded, dict):
        return None

    error_json = decoded.get("error")
    if not isinstance(error_json, dict):
        return None

    message = error_json.get("message")
    if not isinstance(message, str):
        return None

    code = error_json.get("code")
    if isinstance(code, bool) or not isinstance(code, int):
        code = status_code

    status = error_json.get("status")
    if not isinstance(status, str):
        status = UNKNOWN_STATUS

    details = error_json.get("details")
    if not isinstance(details, list):
        details = []

    return WalrusApiError(
        code=code,
        status=status,
        message=message,
        details=details,
        context=context,
    )


def build_error_from_response(
    response: RawResponse,
    context: str,
) -> ClassifiedResponse:
    """Classify a non-2xx response as API_ERROR or HTTP_ERROR.

    Args:
        response: The fully read response.
        context: Description of the failed operation, carried on the error.

    Returns:
        ClassifiedResponse with kind API_ERROR or HTTP_ERROR.
    """
    status_code = response.status_code

    error = _parse_error_payload(response.body, status_code, context)
    if error is not None:
        kind = ResponseKind.API_ERROR
    else:
        kind = ResponseKind.HTTP_ERROR
        error = WalrusApiError(
            code=status_code,
            status=SERVER_ERROR_STATUS if status_code >= 500 else CLIENT_ERROR_STATUS,
            message=response.reason_phrase or f"HTTP {status_code}",
            context=context,
        )

    logger.error(
        "Request failed: %s (status %s)",
        context,
        error.code,
        api_status=error.status,
        api_message=error.message or None,
    )
    return ClassifiedResponse.failure(kind, error)


def _invalid_response(message: str, context: str) -> ClassifiedResponse:
    error = WalrusApiError(
        code=INVALID_RESPONSE_CODE,
        status=INVALID_RESPONSE_STATUS,
        message=message,
        context=context,
    )
    logger.error("Invalid response: %s (%s)", context, message)
    return ClassifiedResponse.failure(ResponseKind.INVALID_RESPONSE, error)


def classify_json_response(response: RawResponse, context: str) -> ClassifiedResponse:
    """Classify a response from an endpoint that returns a JSON object.

    Args:
        response: The fully read response.
        context: Description of the operation, carried on any error.

    Returns:
        SUCCESS with the decoded dict, or one of the error outcomes.
    """
    if not is_success_status(response.status_code):
        return build_error_from_response(response, context)

    if not response.body:
        return _invalid_response("Empty response body where JSON was expected", context)

    decoded = _decode_json(response.body)
    if decoded is _UNPARSEABLE:
        return _invalid_response("Failed to parse response JSON", context)
    if not isinstance(decoded, dict):
        return _invalid_response("Expected a JSON object in response", context)

    return ClassifiedResponse.success(decoded)


def classify_binary_response(response: RawResponse, context: str) -> ClassifiedResponse:
    """Classify a response from an endpoint that returns raw bytes.

    Zero-length 2xx bodies are a valid (empty) blob.
    """
    if not is_success_status(response.status_code):
        return build_error_from_response(response, context)
    return ClassifiedResponse.success(bytes(response.body))
