"""SqlTradeStore: one row per trade record in `trade_records`.

All queries use raw text() SQL (no ORM). Each mutation runs in its own
transaction and takes a SELECT ... FOR UPDATE row lock first, so two
writers of the same record serialize on the row rather than on the whole
store. `payload` is the camelCase record JSON without its secret.
"""

import logging
from collections.abc import Callable, Sequence
from dataclasses import replace
from enum import Enum

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.am_common.datetime_utils import utc_now
from src.am_common.enums import RecordKind
from src.am_common.errors import NotFoundError, StoreConsistencyError
from src.am_store.domain.models import Offer, TradeRecord
from src.am_store.domain.repository import RecordFilter, RecordUpdate, SweepReport
from src.am_store.infrastructure.serialization import record_from_payload, record_payload
from src.am_trading.domain.expiry import apply_expiry

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# SQL
# ---------------------------------------------------------------------------

_GET_SQL = text("""
    SELECT kind, id, status, payload, secret
    FROM trade_records
    WHERE kind = :kind AND id = :id
""")

_LOCK_SQL = text("""
    SELECT kind, id, status, payload, secret
    FROM trade_records
    WHERE kind = :kind AND id = :id
    FOR UPDATE
""")

_INSERT_SQL = text("""
    INSERT INTO trade_records
        (kind, id, asset, owner, status, payload, secret, created_at, updated_at)
    VALUES
        (:kind, :id, :asset, :owner, :status, CAST(:payload AS JSONB), :secret,
         :created_at, :updated_at)
""")

_UPDATE_SQL = text("""
    UPDATE trade_records
    SET status = :status,
        payload = CAST(:payload AS JSONB),
        updated_at = :updated_at
    WHERE kind = :kind AND id = :id
""")

_LIST_SQL = text("""
    SELECT kind, id, status, payload, secret
    FROM trade_records
    WHERE kind = :kind
    ORDER BY created_at, id
""")

_OPEN_RECORDS_SQL = text("""
    SELECT kind, id, status, payload, secret
    FROM trade_records
    WHERE status IN ('active', 'pending', 'funded')
    ORDER BY kind, created_at, id
    FOR UPDATE
""")


# ---------------------------------------------------------------------------
# Row mappers
# ---------------------------------------------------------------------------

def _row_to_record(row: object) -> TradeRecord:
    kind = RecordKind(row.kind)  # type: ignore[attr-defined]
    return record_from_payload(kind, row.payload)  # type: ignore[attr-defined]


def _owner_of(record: TradeRecord) -> str:
    if isinstance(record, Offer):
        return record.bidder
    return record.seller


class SqlTradeStore:
    """Concrete store over an async session factory (see am_common.database)."""

    def __init__(self, session_factory: Callable[[], AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get(self, kind: RecordKind, record_id: str) -> TradeRecord | None:
        async with self._session_factory() as session:
            result = await session.execute(_GET_SQL, {"kind": kind.value, "id": record_id})
            row = result.fetchone()
        return _row_to_record(row) if row is not None else None

    async def get_secret(self, kind: RecordKind, record_id: str) -> str | None:
        async with self._session_factory() as session:
            result = await session.execute(_GET_SQL, {"kind": kind.value, "id": record_id})
            row = result.fetchone()
        return row.secret if row is not None else None

    async def list(
        self,
        kind: RecordKind,
        predicate: RecordFilter | None = None,
    ) -> list[TradeRecord]:
        async with self._session_factory() as session:
            result = await session.execute(_LIST_SQL, {"kind": kind.value})
            rows = result.fetchall()
        records = [_row_to_record(row) for row in rows]
        if predicate is None:
            return records
        return [r for r in records if predicate(r)]

    async def insert(
        self,
        kind: RecordKind,
        record: TradeRecord,
        secret: str | None = None,
    ) -> None:
        async with self._session_factory() as session:
            try:
                result = await session.execute(_LOCK_SQL, {"kind": kind.value, "id": record.id})
                if result.fetchone() is not None:
                    raise StoreConsistencyError(f"{kind.value} id collision: {record.id}")
                now = utc_now()
                await session.execute(
                    _INSERT_SQL,
                    {
                        "kind": kind.value,
                        "id": record.id,
                        "asset": record.asset,
                        "owner": _owner_of(record),
                        "status": record.status.value,
                        "payload": record_payload(kind, record),
                        "secret": secret,
                        "created_at": record.created_at,
                        "updated_at": now,
                    },
                )
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise StoreConsistencyError(
                    f"{kind.value} id collision: {record.id}"
                ) from exc
            except Exception:
                await session.rollback()
                raise
        logger.debug("Store insert %s %s", kind.value, record.id)

    async def update(
        self,
        kind: RecordKind,
        record: TradeRecord,
        expected_status: Enum | None = None,
    ) -> None:
        await self.update_many([RecordUpdate(kind, record, expected_status)])

    async def update_many(self, updates: Sequence[RecordUpdate]) -> None:
        async with self._session_factory() as session:
            try:
                versions = [await self._replace(session, item) for item in updates]
                await session.commit()
            except Exception:
                await session.rollback()
                raise
        for item, version in zip(updates, versions):
            item.record.version = version

    async def sweep_expired(self, now: int) -> SweepReport:
        counts = {kind.collection: 0 for kind in RecordKind}
        async with self._session_factory() as session:
            try:
                result = await session.execute(_OPEN_RECORDS_SQL)
                for row in result.fetchall():
                    kind = RecordKind(row.kind)
                    record = _row_to_record(row)
                    if not apply_expiry(kind, record, now):
                        continue
                    record.version += 1
                    await session.execute(_UPDATE_SQL, _update_params(kind, record))
                    counts[kind.collection] += 1
                await session.commit()
            except Exception:
                await session.rollback()
                raise
        report = SweepReport(**counts)
        if report.total:
            logger.info("Expiry sweep transitioned %d records: %s", report.total, counts)
        return report

    async def _replace(self, session: AsyncSession, item: RecordUpdate) -> int:
        params = {"kind": item.kind.value, "id": item.record.id}
        result = await session.execute(_LOCK_SQL, params)
        row = result.fetchone()
        if row is None:
            raise NotFoundError(item.kind.value, item.record.id)
        if item.expected_status is not None and row.status != item.expected_status.value:
            raise StoreConsistencyError(
                f"{item.kind.value} {item.record.id} changed concurrently: "
                f"expected {item.expected_status.value}, found {row.status}"
            )
        stored_version = _row_to_record(row).version
        if stored_version != item.record.version:
            raise StoreConsistencyError(
                f"{item.kind.value} {item.record.id} changed concurrently: "
                f"read version {item.record.version}, stored version {stored_version}"
            )
        written = replace(item.record, version=stored_version + 1)
        await session.execute(_UPDATE_SQL, _update_params(item.kind, written))
        return written.version


def _update_params(kind: RecordKind, record: TradeRecord) -> dict:
    return {
        "kind": kind.value,
        "id": record.id,
        "status": record.status.value,
        "payload": record_payload(kind, record),
        "updated_at": utc_now(),
    }
