"""
Network package.

- executor.py: RequestExecutor over httpx.AsyncClient (transport only)
- classifier.py: status/body classification into success or WalrusApiError
"""

from walrus_sdk.network.classifier import (
    build_error_from_response,
    classify_binary_response,
    classify_json_response,
    is_success_status,
)
from walrus_sdk.network.executor import RequestExecutor

__all__ = [
    "RequestExecutor",
    "build_error_from_response",
    "classify_binary_response",
    "classify_json_response",
    "is_success_status",
]
