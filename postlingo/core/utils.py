"""
Shared utility functions.
"""

from __future__ import annotations

import hashlib


def short_hash(value: str, length: int = 32) -> str:
    """
    Hex digest of a string, truncated.

    Args:
        value: Text to hash
        length: Number of hex characters to keep (32 -> 128 bits)

    Returns:
        Lowercase hex string
    """
    return hashlib.sha256(value.encode("utf-8")).hexdigest()[:length]
