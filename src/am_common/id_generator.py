"""Record ID generator for store keys.

Format: {prefix}-{unixMillis}-{6-char-random}, e.g. listing-1760700000000-k3v9qz.
Collision probability is negligible but not zero; the store treats a collision
as a fatal consistency error instead of overwriting.
"""

import secrets
import time
from collections.abc import Callable

_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyz"
_SUFFIX_LEN = 6
_PREFIXES = frozenset({"listing", "escrow", "offer", "auction"})


class RecordIdGenerator:
    """Generates prefixed, time-ordered record IDs."""

    def __init__(self, clock_ms: Callable[[], int] | None = None) -> None:
        self._clock_ms = clock_ms or (lambda: int(time.time() * 1000))

    def next_id(self, prefix: str) -> str:
        if prefix not in _PREFIXES:
            raise ValueError(f"Unknown record prefix: {prefix}")
        suffix = "".join(secrets.choice(_ALPHABET) for _ in range(_SUFFIX_LEN))
        return f"{prefix}-{self._clock_ms()}-{suffix}"

