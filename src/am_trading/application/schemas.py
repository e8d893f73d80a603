"""Pydantic schemas for the trading API.

Money travels as int minor units; every amount also gets a *_display twin
(9 decimals) for humans. Timestamps are unix milliseconds.
"""

from pydantic import BaseModel, Field

from config.settings import settings
from src.am_common.amounts import minor_units_to_display
from src.am_common.enums import AuctionKind
from src.am_store.domain.models import Auction, Escrow, Listing, Offer

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class CreateListingRequest(BaseModel):
    asset: str = Field(..., min_length=1)
    price: int = Field(..., gt=0, description="Price in minor units")
    payment_asset: str | None = None
    expiry: int | None = Field(None, description="Unix ms after which the listing lapses")


class CreateEscrowRequest(BaseModel):
    asset: str = Field(..., min_length=1)
    price: int = Field(..., gt=0)
    currency: str = settings.DEFAULT_CURRENCY
    expiry: int | None = None


class CreateOfferRequest(BaseModel):
    asset: str = Field(..., min_length=1)
    price: int = Field(..., gt=0)
    currency: str = settings.DEFAULT_CURRENCY
    expiry: int | None = None


class CreateAuctionRequest(BaseModel):
    asset: str = Field(..., min_length=1)
    kind: AuctionKind
    start_price: int = Field(..., gt=0)
    end_time: int
    start_time: int | None = None
    reserve_price: int | None = Field(None, ge=0)
    price_decrement: int | None = Field(None, gt=0)
    decrement_interval_ms: int | None = Field(None, gt=0)
    currency: str = settings.DEFAULT_CURRENCY


class PlaceBidRequest(BaseModel):
    amount: int = Field(..., gt=0)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


def _display(amount: int | None) -> str | None:
    return minor_units_to_display(amount) if amount is not None else None


class ListingOut(BaseModel):
    id: str
    asset: str
    seller: str
    price: int
    price_display: str
    payment_asset: str | None
    seller_asset_account: str
    delegate_identity: str
    expiry: int | None
    created_at: int
    status: str
    buyer: str | None
    settle_signature: str | None

    @classmethod
    def from_domain(cls, listing: Listing) -> "ListingOut":
        return cls(
            id=listing.id,
            asset=listing.asset,
            seller=listing.seller,
            price=listing.price,
            price_display=minor_units_to_display(listing.price),
            payment_asset=listing.payment_asset,
            seller_asset_account=listing.seller_asset_account,
            delegate_identity=listing.delegate_identity,
            expiry=listing.expiry,
            created_at=listing.created_at,
            status=listing.status.value,
            buyer=listing.buyer,
            settle_signature=listing.settle_signature,
        )


class EscrowOut(BaseModel):
    id: str
    asset: str
    seller: str
    buyer: str | None
    price: int
    price_display: str
    currency: str
    escrow_account: str
    escrow_asset_account: str
    status: str
    signatures: list[str]
    expiry: int | None
    created_at: int

    @classmethod
    def from_domain(cls, escrow: Escrow) -> "EscrowOut":
        return cls(
            id=escrow.id,
            asset=escrow.asset,
            seller=escrow.seller,
            buyer=escrow.buyer,
            price=escrow.price,
            price_display=minor_units_to_display(escrow.price),
            currency=escrow.currency,
            escrow_account=escrow.escrow_account,
            escrow_asset_account=escrow.escrow_asset_account,
            status=escrow.status.value,
            signatures=list(escrow.signatures),
            expiry=escrow.expiry,
            created_at=escrow.created_at,
        )


class OfferOut(BaseModel):
    id: str
    asset: str
    bidder: str
    price: int
    price_display: str
    currency: str
    expiry: int | None
    created_at: int
    status: str
    settle_signature: str | None

    @classmethod
    def from_domain(cls, offer: Offer) -> "OfferOut":
        return cls(
            id=offer.id,
            asset=offer.asset,
            bidder=offer.bidder,
            price=offer.price,
            price_display=minor_units_to_display(offer.price),
            currency=offer.currency,
            expiry=offer.expiry,
            created_at=offer.created_at,
            status=offer.status.value,
            settle_signature=offer.settle_signature,
        )


class BidOut(BaseModel):
    bidder: str
    amount: int
    timestamp: int


class AuctionOut(BaseModel):
    id: str
    asset: str
    seller: str
    kind: str
    status: str
    start_price: int
    start_price_display: str
    reserve_price: int | None
    price_decrement: int | None
    decrement_interval_ms: int | None
    bids: list[BidOut]
    highest_bid: int | None
    highest_bid_display: str | None
    highest_bidder: str | None
    start_time: int
    end_time: int
    currency: str
    escrow_id: str
    winner: str | None
    final_price: int | None
    settle_signature: str | None
    created_at: int

    @classmethod
    def from_domain(cls, auction: Auction) -> "AuctionOut":
        return cls(
            id=auction.id,
            asset=auction.asset,
            seller=auction.seller,
            kind=auction.kind.value,
            status=auction.status.value,
            start_price=auction.start_price,
            start_price_display=minor_units_to_display(auction.start_price),
            reserve_price=auction.reserve_price,
            price_decrement=auction.price_decrement,
            decrement_interval_ms=auction.decrement_interval_ms,
            bids=[BidOut(bidder=b.bidder, amount=b.amount, timestamp=b.timestamp) for b in auction.bids],
            highest_bid=auction.highest_bid,
            highest_bid_display=_display(auction.highest_bid),
            highest_bidder=auction.highest_bidder,
            start_time=auction.start_time,
            end_time=auction.end_time,
            currency=auction.currency,
            escrow_id=auction.escrow_id,
            winner=auction.winner,
            final_price=auction.final_price,
            settle_signature=auction.settle_signature,
            created_at=auction.created_at,
        )


class DutchPriceOut(BaseModel):
    auction_id: str
    price: int
    price_display: str
    as_of: int
