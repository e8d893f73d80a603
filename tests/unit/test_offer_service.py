"""Unit tests for OfferService."""
import pytest

from src.am_common.enums import ListingStatus, OfferStatus
from src.am_common.errors import (
    ExpiredError,
    InvalidStateError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)

SELLER = "seller"
BUYER = "buyer"
CREATOR_A = "creator-a"
ROYAL_ASSET = "asset-royal"
PLAIN_ASSET = "asset-plain"


class TestMakeOffer:
    async def test_offer_is_recorded_without_ledger_activity(self, engine, ledger) -> None:
        offer = await engine.offers.make_offer(BUYER, PLAIN_ASSET, 300)
        assert offer.status == OfferStatus.ACTIVE
        assert ledger.confirmations == []

    async def test_zero_price(self, engine) -> None:
        with pytest.raises(ValidationError):
            await engine.offers.make_offer(BUYER, PLAIN_ASSET, 0)

    async def test_unknown_asset(self, engine) -> None:
        with pytest.raises(NotFoundError):
            await engine.offers.make_offer(BUYER, "asset-nowhere", 10)

    async def test_holder_cannot_offer_on_own_asset(self, engine) -> None:
        with pytest.raises(ValidationError):
            await engine.offers.make_offer(SELLER, PLAIN_ASSET, 10)


class TestAcceptOffer:
    async def test_holder_accepts(self, engine, ledger) -> None:
        offer = await engine.offers.make_offer(BUYER, ROYAL_ASSET, 200_000)

        accepted = await engine.offers.accept_offer(SELLER, offer.id)

        assert accepted.status == OfferStatus.ACCEPTED
        assert accepted.settle_signature
        assert await ledger.get_asset_holder(ROYAL_ASSET) == BUYER
        assert ledger.balance_of(SELLER) == 190_000
        assert ledger.balance_of(CREATOR_A) == 7_000

    async def test_non_holder_cannot_accept(self, engine) -> None:
        offer = await engine.offers.make_offer(BUYER, PLAIN_ASSET, 100)
        with pytest.raises(UnauthorizedError):
            await engine.offers.accept_offer("stranger", offer.id)

    async def test_expired_offer(self, engine, clock) -> None:
        offer = await engine.offers.make_offer(BUYER, PLAIN_ASSET, 100, expiry=clock.now + 10)
        clock.advance(11)
        with pytest.raises(ExpiredError):
            await engine.offers.accept_offer(SELLER, offer.id)
        assert (await engine.offers.get_offer(offer.id)).status == OfferStatus.EXPIRED

    async def test_acceptance_closes_holders_listing(self, engine, ledger) -> None:
        listing = await engine.listings.list_asset(SELLER, PLAIN_ASSET, 500)
        offer = await engine.offers.make_offer(BUYER, PLAIN_ASSET, 400)

        await engine.offers.accept_offer(SELLER, offer.id)

        closed = await engine.listings.get_listing(listing.id)
        assert closed.status == ListingStatus.CANCELLED
        assert closed.buyer is None
        assert await engine.listings.get_listing_for_asset(PLAIN_ASSET) is None
        assert await ledger.get_asset_holder(PLAIN_ASSET) == BUYER


class TestCancelAndReject:
    async def test_bidder_cancels(self, engine) -> None:
        offer = await engine.offers.make_offer(BUYER, PLAIN_ASSET, 100)
        with pytest.raises(UnauthorizedError):
            await engine.offers.cancel_offer(SELLER, offer.id)
        cancelled = await engine.offers.cancel_offer(BUYER, offer.id)
        assert cancelled.status == OfferStatus.CANCELLED
        with pytest.raises(InvalidStateError):
            await engine.offers.accept_offer(SELLER, offer.id)

    async def test_holder_rejects(self, engine) -> None:
        offer = await engine.offers.make_offer(BUYER, PLAIN_ASSET, 100)
        with pytest.raises(UnauthorizedError):
            await engine.offers.reject_offer(BUYER, offer.id)
        rejected = await engine.offers.reject_offer(SELLER, offer.id)
        assert rejected.status == OfferStatus.REJECTED


class TestQueries:
    async def test_offers_for_asset_and_bidder(self, engine) -> None:
        kept = await engine.offers.make_offer(BUYER, PLAIN_ASSET, 100)
        dropped = await engine.offers.make_offer(BUYER, PLAIN_ASSET, 150)
        await engine.offers.cancel_offer(BUYER, dropped.id)

        assert [o.id for o in await engine.offers.offers_for_asset(PLAIN_ASSET)] == [kept.id]
        assert len(await engine.offers.offers_for_asset(PLAIN_ASSET, None)) == 2
        assert len(await engine.offers.offers_for_bidder(BUYER)) == 2
        assert await engine.offers.offers_for_bidder(BUYER, OfferStatus.ACCEPTED) == []
