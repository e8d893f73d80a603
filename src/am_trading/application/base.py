"""Shared plumbing of the four trade services: loading, ownership, expiry."""

import logging
from collections.abc import Callable
from enum import Enum

from src.am_common.amounts import validate_positive_amount
from src.am_common.enums import ListingStatus, RecordKind
from src.am_common.errors import ExpiredError, NotFoundError, UnauthorizedError, ValidationError
from src.am_common.id_generator import RecordIdGenerator
from src.am_store.domain.models import Listing, TradeRecord
from src.am_store.domain.repository import RecordUpdate, TradeStoreProtocol
from src.am_trading.domain.expiry import apply_expiry, is_past_window

logger = logging.getLogger(__name__)

Clock = Callable[[], int]


class TradeServiceBase:
    kind: RecordKind

    def __init__(
        self,
        store: TradeStoreProtocol,
        clock: Clock,
        ids: RecordIdGenerator | None = None,
    ) -> None:
        self._store = store
        self._clock = clock
        self._ids = ids or RecordIdGenerator(clock)

    async def _load(self, record_id: str, kind: RecordKind | None = None) -> TradeRecord:
        kind = kind or self.kind
        record = await self._store.get(kind, record_id)
        if record is None:
            raise NotFoundError(kind.value, record_id)
        return record

    async def _reject_if_expired(self, record: TradeRecord, kind: RecordKind | None = None) -> None:
        """Raise ExpiredError once the record's window closed, recording the expiry first."""
        kind = kind or self.kind
        now = self._clock()
        if not is_past_window(record, now):
            return
        prior = record.status
        if apply_expiry(kind, record, now):
            await self._store.update(kind, record, expected_status=prior)
            logger.info("%s %s lapsed: %s -> %s", kind.value, record.id, prior.value, record.status.value)
        raise ExpiredError(kind.value, record.id)

    async def _record_confirmed(self, signature: str, *updates: RecordUpdate) -> None:
        """Persist the outcome of a confirmed ledger submission.

        A failed write is logged at ERROR with the confirmation signature and
        re-raised; the record is then left for reconciliation.
        """
        try:
            if len(updates) == 1:
                item = updates[0]
                await self._store.update(item.kind, item.record, expected_status=item.expected_status)
            else:
                await self._store.update_many(updates)
        except Exception:
            logger.error(
                "Ledger confirmed sig=%s but recording %s failed; reconcile to recover",
                signature,
                ", ".join(f"{u.kind.value} {u.record.id}" for u in updates),
            )
            raise

    async def _open_listing_for(self, asset: str) -> Listing | None:
        """The asset's active, unexpired listing, if any."""
        now = self._clock()
        matches = await self._store.list(
            RecordKind.LISTING,
            lambda r: r.asset == asset
            and r.status == ListingStatus.ACTIVE
            and not r.is_expired(now),
        )
        return matches[0] if matches else None

    def _new_expiry(self, expiry: int | None) -> int | None:
        if expiry is not None and expiry <= self._clock():
            raise ValidationError(f"expiry {expiry} is not in the future")
        return expiry


def require_actor(actor: str, expected: str, role: str) -> None:
    if actor != expected:
        raise UnauthorizedError(f"{actor} is not the {role}")


def require_price(amount: int, field: str = "price") -> None:
    try:
        validate_positive_amount(amount, field)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc


def status_is(*statuses: Enum) -> Callable[[TradeRecord], bool]:
    wanted = set(statuses)
    return lambda record: record.status in wanted
