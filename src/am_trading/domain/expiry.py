"""Time-driven transitions shared by buyer actions and the store sweep.

Listings, escrows and offers lapse when now > expiry; auctions end when
now >= end_time. Records already past their window stay eligible for
nothing but the expiry transition, whatever status is stored.
"""

from enum import Enum

from src.am_common.enums import RecordKind, TradeAction
from src.am_store.domain.models import Auction, TradeRecord
from src.am_trading.domain.transitions import next_status


def is_past_window(record: TradeRecord, now: int) -> bool:
    if isinstance(record, Auction):
        return record.has_ended(now)
    return record.is_expired(now)


def expiry_target(kind: RecordKind, record: TradeRecord, now: int) -> Enum | None:
    """The status the record should move to because its window closed, or None."""
    if not is_past_window(record, now):
        return None
    return next_status(kind, record.status, TradeAction.EXPIRE)


def apply_expiry(kind: RecordKind, record: TradeRecord, now: int) -> bool:
    """Move `record` to its expiry status in place. Returns True if it changed."""
    target = expiry_target(kind, record, now)
    if target is None:
        return False
    record.status = target  # type: ignore[assignment]
    return True
