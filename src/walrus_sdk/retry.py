"""
Opt-in retry policy for callers of the SDK.

The client itself never retries. Applications that want retries wrap
their calls:

    async for attempt in retrying(attempts=3):
        with attempt:
            data = await client.get_blob(blob_id)
"""

from __future__ import annotations

from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from walrus_sdk.exceptions import TransportError, WalrusApiError
from walrus_sdk.logging import get_logger

logger = get_logger(__name__)

RETRYABLE_STATUS_CODES = {429}


def is_retryable(exc: BaseException) -> bool:
    """Transport failures, 429s and 5xx API errors are worth retrying.

    INVALID_RESPONSE errors carry code 500 but come from a 2xx response
    with a bad body, so they are not retried.
    """
    if isinstance(exc, TransportError):
        return True
    if isinstance(exc, WalrusApiError):
        if exc.status == "INVALID_RESPONSE":
            return False
        return exc.is_server_error or exc.code in RETRYABLE_STATUS_CODES
    return False


def _log_retry(retry_state: object) -> None:
    outcome = getattr(retry_state, "outcome", None)
    attempt = getattr(retry_state, "attempt_number", 0)
    error = outcome.exception() if outcome is not None else None
    logger.warning("Retrying after failure", attempt=attempt, error=str(error))


def retrying(
    attempts: int = 3,
    min_wait: float = 1.0,
    max_wait: float = 10.0,
) -> AsyncRetrying:
    """Build a tenacity AsyncRetrying with exponential backoff.

    Args:
        attempts: Total attempts including the first (1 disables retries).
        min_wait: Minimum backoff in seconds.
        max_wait: Maximum backoff in seconds.
    """
    return AsyncRetrying(
        retry=retry_if_exception(is_retryable),
        stop=stop_after_attempt(max(1, attempts)),
        wait=wait_exponential(multiplier=min_wait, min=min_wait, max=max_wait),
        before_sleep=_log_retry,
        reraise=True,
    )
