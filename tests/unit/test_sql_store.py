"""Unit tests for SqlTradeStore using MagicMock/AsyncMock sessions."""
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import IntegrityError

from src.am_common.enums import ListingStatus, OfferStatus, RecordKind
from src.am_common.errors import NotFoundError, StoreConsistencyError
from src.am_store.domain.models import Listing, Offer
from src.am_store.infrastructure.serialization import record_payload
from src.am_store.infrastructure.sql_store import SqlTradeStore


def _make_listing(**kwargs) -> Listing:
    defaults = dict(
        id="listing-1760000000000-aaaaaa",
        asset="asset-1",
        seller="seller",
        price=1_000_000,
        seller_asset_account="acct_seller",
        delegate_identity="ab" * 32,
        created_at=1_760_000_000_000,
    )
    defaults.update(kwargs)
    return Listing(**defaults)


def _make_row(kind: RecordKind, record, secret: str | None = None) -> MagicMock:
    row = MagicMock()
    row.kind = kind.value
    row.id = record.id
    row.status = record.status.value
    row.payload = record_payload(kind, record)
    row.secret = secret
    return row


def _result(fetchone=None, fetchall=None) -> MagicMock:
    result = MagicMock()
    result.fetchone.return_value = fetchone
    result.fetchall.return_value = fetchall or []
    return result


@pytest.fixture
def session() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def sql_store(session) -> SqlTradeStore:
    ctx = MagicMock()
    ctx.__aenter__ = AsyncMock(return_value=session)
    ctx.__aexit__ = AsyncMock(return_value=False)
    return SqlTradeStore(MagicMock(return_value=ctx))


class TestGet:
    async def test_returns_record_from_payload(self, sql_store, session) -> None:
        listing = _make_listing(expiry=1_760_003_600_000)
        session.execute.return_value = _result(fetchone=_make_row(RecordKind.LISTING, listing, "sec"))

        loaded = await sql_store.get(RecordKind.LISTING, listing.id)

        assert loaded == listing
        params = session.execute.call_args.args[1]
        assert params == {"kind": "listing", "id": listing.id}

    async def test_returns_none_when_missing(self, sql_store, session) -> None:
        session.execute.return_value = _result(fetchone=None)
        assert await sql_store.get(RecordKind.LISTING, "listing-x") is None

    async def test_get_secret(self, sql_store, session) -> None:
        listing = _make_listing()
        session.execute.return_value = _result(fetchone=_make_row(RecordKind.LISTING, listing, "sec"))
        assert await sql_store.get_secret(RecordKind.LISTING, listing.id) == "sec"

    async def test_payload_as_dict_is_accepted(self, sql_store, session) -> None:
        offer = Offer("offer-1", "asset-1", "bidder", 25, "native", 0)
        row = _make_row(RecordKind.OFFER, offer)
        row.payload = {"id": "offer-1", "asset": "asset-1", "bidder": "bidder", "price": "25",
                       "currency": "native", "createdAt": 0, "status": "active"}
        session.execute.return_value = _result(fetchone=row)
        assert await sql_store.get(RecordKind.OFFER, "offer-1") == offer


class TestList:
    async def test_applies_predicate(self, sql_store, session) -> None:
        rows = [
            _make_row(RecordKind.LISTING, _make_listing(id="l-1", seller="a")),
            _make_row(RecordKind.LISTING, _make_listing(id="l-2", seller="b")),
        ]
        session.execute.return_value = _result(fetchall=rows)
        result = await sql_store.list(RecordKind.LISTING, lambda r: r.seller == "b")
        assert [r.id for r in result] == ["l-2"]


class TestInsert:
    async def test_insert_writes_row_and_commits(self, sql_store, session) -> None:
        listing = _make_listing()
        session.execute.side_effect = [_result(fetchone=None), _result()]

        await sql_store.insert(RecordKind.LISTING, listing, secret="c2VjcmV0")

        insert_params = session.execute.call_args_list[1].args[1]
        assert insert_params["owner"] == "seller"
        assert insert_params["status"] == "active"
        assert insert_params["secret"] == "c2VjcmV0"
        assert '"price":"1000000"' in insert_params["payload"]
        assert "delegateSecret" not in insert_params["payload"]
        session.commit.assert_awaited_once()

    async def test_offer_owner_is_bidder(self, sql_store, session) -> None:
        session.execute.side_effect = [_result(fetchone=None), _result()]
        await sql_store.insert(RecordKind.OFFER, Offer("offer-1", "asset", "bidder-9", 5, "native", 0))
        assert session.execute.call_args_list[1].args[1]["owner"] == "bidder-9"

    async def test_collision_rolls_back(self, sql_store, session) -> None:
        listing = _make_listing()
        session.execute.return_value = _result(fetchone=_make_row(RecordKind.LISTING, listing))

        with pytest.raises(StoreConsistencyError):
            await sql_store.insert(RecordKind.LISTING, listing)

        session.rollback.assert_awaited_once()
        session.commit.assert_not_awaited()

    async def test_concurrent_duplicate_becomes_consistency_error(self, sql_store, session) -> None:
        session.execute.side_effect = [
            _result(fetchone=None),
            IntegrityError("INSERT INTO trade_records", {}, Exception("duplicate key")),
        ]

        with pytest.raises(StoreConsistencyError, match="collision"):
            await sql_store.insert(RecordKind.LISTING, _make_listing())

        session.rollback.assert_awaited_once()
        session.commit.assert_not_awaited()


class TestUpdate:
    async def test_update_locks_then_writes(self, sql_store, session) -> None:
        listing = _make_listing()
        session.execute.side_effect = [
            _result(fetchone=_make_row(RecordKind.LISTING, listing, "sec")),
            _result(),
        ]
        listing.status = ListingStatus.SOLD

        await sql_store.update(RecordKind.LISTING, listing, expected_status=ListingStatus.ACTIVE)

        lock_sql = str(session.execute.call_args_list[0].args[0])
        assert "FOR UPDATE" in lock_sql
        update_params = session.execute.call_args_list[1].args[1]
        assert update_params["status"] == "sold"
        assert "secret" not in update_params
        session.commit.assert_awaited_once()

    async def test_stale_status_rejected(self, sql_store, session) -> None:
        stored = _make_listing(status=ListingStatus.CANCELLED)
        session.execute.return_value = _result(fetchone=_make_row(RecordKind.LISTING, stored))
        with pytest.raises(StoreConsistencyError):
            await sql_store.update(
                RecordKind.LISTING, _make_listing(status=ListingStatus.SOLD),
                expected_status=ListingStatus.ACTIVE,
            )
        session.rollback.assert_awaited_once()

    async def test_update_bumps_version(self, sql_store, session) -> None:
        listing = _make_listing(version=4)
        session.execute.side_effect = [
            _result(fetchone=_make_row(RecordKind.LISTING, listing)),
            _result(),
        ]

        await sql_store.update(RecordKind.LISTING, listing)

        assert '"version":5' in session.execute.call_args_list[1].args[1]["payload"]
        assert listing.version == 5

    async def test_stale_version_rejected(self, sql_store, session) -> None:
        stored = _make_listing(version=3)
        session.execute.return_value = _result(fetchone=_make_row(RecordKind.LISTING, stored))
        with pytest.raises(StoreConsistencyError, match="version"):
            await sql_store.update(
                RecordKind.LISTING, _make_listing(version=2), expected_status=ListingStatus.ACTIVE
            )
        assert session.execute.await_count == 1
        session.rollback.assert_awaited_once()
        session.commit.assert_not_awaited()

    async def test_missing_row(self, sql_store, session) -> None:
        session.execute.return_value = _result(fetchone=None)
        with pytest.raises(NotFoundError):
            await sql_store.update(RecordKind.LISTING, _make_listing())


class TestSweep:
    async def test_sweep_updates_lapsed_rows_only(self, sql_store, session) -> None:
        rows = [
            _make_row(RecordKind.LISTING, _make_listing(id="l-old", expiry=1_000)),
            _make_row(RecordKind.LISTING, _make_listing(id="l-new", expiry=9_000)),
            _make_row(RecordKind.OFFER, Offer("o-old", "a", "b", 1, "native", 0, expiry=10)),
        ]
        session.execute.side_effect = [_result(fetchall=rows), _result(), _result()]

        report = await sql_store.sweep_expired(5_000)

        assert report.listings == 1
        assert report.offers == 1
        assert report.total == 2
        statuses = [c.args[1]["status"] for c in session.execute.call_args_list[1:]]
        assert statuses == [ListingStatus.CANCELLED.value, OfferStatus.EXPIRED.value]
        session.commit.assert_awaited_once()
