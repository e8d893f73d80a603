"""Global enums: string values are the persisted form in the store document."""

from enum import Enum


class RecordKind(str, Enum):
    """Store collection; the value is both the JSON top-level key and the ID prefix source."""

    LISTING = "listing"
    ESCROW = "escrow"
    OFFER = "offer"
    AUCTION = "auction"

    @property
    def collection(self) -> str:
        return f"{self.value}s"


class ListingStatus(str, Enum):
    ACTIVE = "active"
    SOLD = "sold"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class EscrowStatus(str, Enum):
    PENDING = "pending"
    FUNDED = "funded"
    SETTLED = "settled"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class OfferStatus(str, Enum):
    ACTIVE = "active"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class AuctionKind(str, Enum):
    ENGLISH = "english"
    DUTCH = "dutch"


class AuctionStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    ENDED = "ended"
    SETTLED = "settled"
    CANCELLED = "cancelled"


class TradeAction(str, Enum):
    """Every action a state machine may be asked to apply."""

    # Listing
    BUY = "buy"
    DELIST = "delist"
    # Escrow
    DEPOSIT_CONFIRMED = "deposit_confirmed"
    SETTLE = "settle"
    CANCEL = "cancel"
    # Offer
    ACCEPT = "accept"
    REJECT = "reject"
    # Auction
    BID = "bid"
    # Shared (listing → cancelled, escrow/offer → expired, auction → ended)
    EXPIRE = "expire"
