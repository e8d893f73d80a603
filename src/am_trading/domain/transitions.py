"""Allowed-transition tables for the four trade state machines.

Each table is the complete map (status, action) -> next status; any pair
absent from it is illegal and raises InvalidStateError. Terminal statuses
have no outgoing entries.
"""

from enum import Enum

from src.am_common.enums import (
    AuctionStatus,
    EscrowStatus,
    ListingStatus,
    OfferStatus,
    RecordKind,
    TradeAction,
)
from src.am_common.errors import InvalidStateError

A = TradeAction

LISTING_TRANSITIONS: dict[tuple[ListingStatus, TradeAction], ListingStatus] = {
    (ListingStatus.ACTIVE, A.BUY): ListingStatus.SOLD,
    (ListingStatus.ACTIVE, A.DELIST): ListingStatus.CANCELLED,
    (ListingStatus.ACTIVE, A.EXPIRE): ListingStatus.CANCELLED,
}

ESCROW_TRANSITIONS: dict[tuple[EscrowStatus, TradeAction], EscrowStatus] = {
    (EscrowStatus.PENDING, A.DEPOSIT_CONFIRMED): EscrowStatus.FUNDED,
    (EscrowStatus.PENDING, A.CANCEL): EscrowStatus.CANCELLED,
    (EscrowStatus.PENDING, A.EXPIRE): EscrowStatus.EXPIRED,
    (EscrowStatus.FUNDED, A.SETTLE): EscrowStatus.SETTLED,
    (EscrowStatus.FUNDED, A.CANCEL): EscrowStatus.CANCELLED,
    (EscrowStatus.FUNDED, A.EXPIRE): EscrowStatus.EXPIRED,
}

OFFER_TRANSITIONS: dict[tuple[OfferStatus, TradeAction], OfferStatus] = {
    (OfferStatus.ACTIVE, A.ACCEPT): OfferStatus.ACCEPTED,
    (OfferStatus.ACTIVE, A.CANCEL): OfferStatus.CANCELLED,
    (OfferStatus.ACTIVE, A.REJECT): OfferStatus.REJECTED,
    (OfferStatus.ACTIVE, A.EXPIRE): OfferStatus.EXPIRED,
}

AUCTION_TRANSITIONS: dict[tuple[AuctionStatus, TradeAction], AuctionStatus] = {
    (AuctionStatus.PENDING, A.BID): AuctionStatus.ACTIVE,
    (AuctionStatus.ACTIVE, A.BID): AuctionStatus.ACTIVE,
    (AuctionStatus.PENDING, A.BUY): AuctionStatus.SETTLED,
    (AuctionStatus.ACTIVE, A.BUY): AuctionStatus.SETTLED,
    (AuctionStatus.PENDING, A.EXPIRE): AuctionStatus.ENDED,
    (AuctionStatus.ACTIVE, A.EXPIRE): AuctionStatus.ENDED,
    (AuctionStatus.ACTIVE, A.SETTLE): AuctionStatus.SETTLED,
    (AuctionStatus.ENDED, A.SETTLE): AuctionStatus.SETTLED,
    (AuctionStatus.PENDING, A.CANCEL): AuctionStatus.CANCELLED,
    (AuctionStatus.ACTIVE, A.CANCEL): AuctionStatus.CANCELLED,
    (AuctionStatus.ENDED, A.CANCEL): AuctionStatus.CANCELLED,
}

_TABLES: dict[RecordKind, dict] = {
    RecordKind.LISTING: LISTING_TRANSITIONS,
    RecordKind.ESCROW: ESCROW_TRANSITIONS,
    RecordKind.OFFER: OFFER_TRANSITIONS,
    RecordKind.AUCTION: AUCTION_TRANSITIONS,
}

_STATUS_TYPES: dict[RecordKind, type[Enum]] = {
    RecordKind.LISTING: ListingStatus,
    RecordKind.ESCROW: EscrowStatus,
    RecordKind.OFFER: OfferStatus,
    RecordKind.AUCTION: AuctionStatus,
}

TERMINAL_VALUES = frozenset({"sold", "settled", "cancelled", "expired", "rejected", "accepted"})


def next_status(kind: RecordKind, status: Enum, action: TradeAction) -> Enum | None:
    """Pure lookup: the next status, or None when the pair is illegal."""
    return _TABLES[kind].get((status, action))


def transition(kind: RecordKind, record_id: str, status: Enum, action: TradeAction) -> Enum:
    """Apply `action` to `status`; raise InvalidStateError if the table has no entry."""
    target = next_status(kind, status, action)
    if target is None:
        raise InvalidStateError(kind.value, record_id, status.value, action.value)
    return target


def is_terminal(status: Enum) -> bool:
    return status.value in TERMINAL_VALUES


def statuses_of(kind: RecordKind) -> list[Enum]:
    return list(_STATUS_TYPES[kind])
