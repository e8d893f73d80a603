"""UTC time utilities. Record timestamps are unix milliseconds."""

import time
from datetime import datetime, timezone


def utc_now() -> datetime:
    """Return timezone-aware UTC now."""
    return datetime.now(timezone.utc)


def now_ms() -> int:
    """Current unix time in milliseconds."""
    return int(time.time() * 1000)
