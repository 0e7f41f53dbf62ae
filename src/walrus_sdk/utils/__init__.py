"""Utility modules for the Walrus SDK."""

from walrus_sdk.utils.hashing import sha256_hex

__all__ = [
    "sha256_hex",
]
