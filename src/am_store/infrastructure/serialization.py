"""Persisted shape of trade records.

One JSON document, top-level keys listings / offers / escrows / auctions,
each a map id -> record. Field names are camelCase, money is a decimal
string, enums are their string values, absent optionals are omitted.
Listing and Escrow documents carry the secondary identity's exportable
secret beside the record (delegateSecret / escrowSecret).
"""

from dataclasses import asdict
from typing import Annotated, ClassVar

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, PlainSerializer
from pydantic.alias_generators import to_camel

from src.am_common.amounts import parse_minor_units
from src.am_common.enums import (
    AuctionKind,
    AuctionStatus,
    EscrowStatus,
    ListingStatus,
    OfferStatus,
    RecordKind,
)
from src.am_store.domain.models import Auction, Bid, Escrow, Listing, Offer, TradeRecord

# int in memory, decimal string on disk
Money = Annotated[
    int,
    BeforeValidator(parse_minor_units),
    PlainSerializer(str, return_type=str, when_used="json"),
]


class _StoreModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    secret_field: ClassVar[str | None] = None


class ListingDocument(_StoreModel):
    secret_field: ClassVar[str | None] = "delegate_secret"

    id: str
    asset: str
    seller: str
    price: Money
    seller_asset_account: str
    delegate_identity: str
    created_at: int
    status: ListingStatus
    payment_asset: str | None = None
    expiry: int | None = None
    buyer: str | None = None
    settle_signature: str | None = None
    version: int = 0
    delegate_secret: str | None = None


class EscrowDocument(_StoreModel):
    secret_field: ClassVar[str | None] = "escrow_secret"

    id: str
    asset: str
    seller: str
    price: Money
    currency: str
    escrow_account: str
    escrow_asset_account: str
    created_at: int
    status: EscrowStatus
    buyer: str | None = None
    signatures: list[str] = Field(default_factory=list)
    expiry: int | None = None
    version: int = 0
    escrow_secret: str | None = None


class OfferDocument(_StoreModel):
    id: str
    asset: str
    bidder: str
    price: Money
    currency: str
    created_at: int
    status: OfferStatus
    expiry: int | None = None
    settle_signature: str | None = None
    version: int = 0


class BidDocument(_StoreModel):
    bidder: str
    amount: Money
    timestamp: int


class AuctionDocument(_StoreModel):
    id: str
    asset: str
    seller: str
    kind: AuctionKind
    start_price: Money
    start_time: int
    end_time: int
    currency: str
    escrow_id: str
    created_at: int
    status: AuctionStatus
    reserve_price: Money | None = None
    price_decrement: Money | None = None
    decrement_interval_ms: int | None = None
    bids: list[BidDocument] = Field(default_factory=list)
    highest_bid: Money | None = None
    highest_bidder: str | None = None
    winner: str | None = None
    final_price: Money | None = None
    settle_signature: str | None = None
    version: int = 0


class StoreDocument(_StoreModel):
    listings: dict[str, ListingDocument] = Field(default_factory=dict)
    offers: dict[str, OfferDocument] = Field(default_factory=dict)
    escrows: dict[str, EscrowDocument] = Field(default_factory=dict)
    auctions: dict[str, AuctionDocument] = Field(default_factory=dict)

    def collection(self, kind: RecordKind) -> dict:
        return getattr(self, kind.collection)

    def dump_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True, indent=2)


_DOCUMENT_TYPES: dict[RecordKind, type[_StoreModel]] = {
    RecordKind.LISTING: ListingDocument,
    RecordKind.ESCROW: EscrowDocument,
    RecordKind.OFFER: OfferDocument,
    RecordKind.AUCTION: AuctionDocument,
}

_RECORD_TYPES: dict[RecordKind, type] = {
    RecordKind.LISTING: Listing,
    RecordKind.ESCROW: Escrow,
    RecordKind.OFFER: Offer,
    RecordKind.AUCTION: Auction,
}


def to_document(kind: RecordKind, record: TradeRecord, secret: str | None = None) -> _StoreModel:
    if not isinstance(record, _RECORD_TYPES[kind]):
        raise TypeError(f"Expected {_RECORD_TYPES[kind].__name__}, got {type(record).__name__}")
    doc_type = _DOCUMENT_TYPES[kind]
    data = asdict(record)
    if secret is not None:
        if doc_type.secret_field is None:
            raise ValueError(f"{kind.value} records do not carry a secret")
        data[doc_type.secret_field] = secret
    return doc_type.model_validate(data)


def from_document(kind: RecordKind, document: _StoreModel) -> TradeRecord:
    doc_type = _DOCUMENT_TYPES[kind]
    exclude = {doc_type.secret_field} if doc_type.secret_field else set()
    data = document.model_dump(exclude=exclude)
    if kind == RecordKind.AUCTION:
        data["bids"] = [Bid(**bid) for bid in data["bids"]]
    return _RECORD_TYPES[kind](**data)


def secret_of(kind: RecordKind, document: _StoreModel) -> str | None:
    field = _DOCUMENT_TYPES[kind].secret_field
    return getattr(document, field) if field else None


def record_payload(kind: RecordKind, record: TradeRecord) -> str:
    """camelCase JSON of a record without its secret (the SQL payload column)."""
    return to_document(kind, record).model_dump_json(by_alias=True, exclude_none=True)


def record_from_payload(kind: RecordKind, payload: str | dict) -> TradeRecord:
    doc_type = _DOCUMENT_TYPES[kind]
    if isinstance(payload, str):
        document = doc_type.model_validate_json(payload)
    else:
        document = doc_type.model_validate(payload)
    return from_document(kind, document)
