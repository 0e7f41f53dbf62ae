"""SHA-256 helper used to derive filesystem-safe cache filenames."""

from __future__ import annotations

import hashlib


def sha256_hex(key: str) -> str:
    """Return the 64-character lowercase hex SHA-256 digest of ``key``."""
    return hashlib.sha256(key.encode("utf-8", "surrogatepass")).hexdigest()
