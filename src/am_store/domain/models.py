"""Trade records: pure dataclasses, no persistence dependency.

Timestamps (created_at, expiry, start/end time, bid timestamp) are unix ms.
Money fields are int minor units. Identities are address strings; secrets
never live on these objects (the store keeps them beside the record).

`version` counts committed writes. The store bumps it on every update and
refuses a write whose version no longer matches the stored one.
"""

from dataclasses import dataclass, field
from typing import Union

from src.am_common.enums import (
    AuctionKind,
    AuctionStatus,
    EscrowStatus,
    ListingStatus,
    OfferStatus,
)

NATIVE_CURRENCY = "native"


def payment_asset_for(currency: str) -> str | None:
    """None means the ledger's native currency; anything else names a payment asset."""
    return None if currency == NATIVE_CURRENCY else currency


@dataclass
class Listing:
    id: str
    asset: str
    seller: str
    price: int
    seller_asset_account: str
    delegate_identity: str
    created_at: int
    status: ListingStatus = ListingStatus.ACTIVE
    payment_asset: str | None = None
    expiry: int | None = None
    buyer: str | None = None
    settle_signature: str | None = None
    version: int = 0

    def is_expired(self, now: int) -> bool:
        return self.expiry is not None and now > self.expiry


@dataclass
class Escrow:
    id: str
    asset: str
    seller: str
    price: int
    currency: str
    escrow_account: str        # escrow identity address (sole authority over the container)
    escrow_asset_account: str  # container holding the asset
    created_at: int
    status: EscrowStatus = EscrowStatus.PENDING
    buyer: str | None = None
    signatures: list[str] = field(default_factory=list)
    expiry: int | None = None
    version: int = 0

    def is_expired(self, now: int) -> bool:
        return self.expiry is not None and now > self.expiry


@dataclass
class Offer:
    id: str
    asset: str
    bidder: str
    price: int
    currency: str
    created_at: int
    status: OfferStatus = OfferStatus.ACTIVE
    expiry: int | None = None
    settle_signature: str | None = None
    version: int = 0

    def is_expired(self, now: int) -> bool:
        return self.expiry is not None and now > self.expiry


@dataclass(frozen=True)
class Bid:
    bidder: str
    amount: int
    timestamp: int


@dataclass
class Auction:
    id: str
    asset: str
    seller: str
    kind: AuctionKind
    start_price: int
    start_time: int
    end_time: int
    currency: str
    escrow_id: str
    created_at: int
    status: AuctionStatus = AuctionStatus.ACTIVE
    reserve_price: int | None = None
    price_decrement: int | None = None
    decrement_interval_ms: int | None = None
    bids: list[Bid] = field(default_factory=list)
    highest_bid: int | None = None
    highest_bidder: str | None = None
    winner: str | None = None
    final_price: int | None = None
    settle_signature: str | None = None
    version: int = 0

    def has_ended(self, now: int) -> bool:
        return now >= self.end_time

    def append_bid(self, bid: Bid) -> None:
        """Append-only; highest_bid / highest_bidder always mirror the last bid."""
        self.bids.append(bid)
        self.highest_bid = bid.amount
        self.highest_bidder = bid.bidder


TradeRecord = Union[Listing, Escrow, Offer, Auction]
