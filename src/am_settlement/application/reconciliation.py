"""ReconciliationService: catch the store up with confirmed ledger state.

A crash between ledger confirmation and the store write leaves a record in
its prior status while the ledger already moved the asset. Reconciliation
reads custody facts from the ledger and records the transition that must
have happened. It never submits anything to the ledger.

Rules:
  listing  active, asset no longer held by seller     -> sold (buyer = holder),
                                                          cancelled when an accepted
                                                          offer moved it, untouched
                                                          when an escrow holds it
  escrow   funded, escrow container closed             -> settled, or cancelled
                                                          when the seller holds it
  auction  pending/active/ended, escrow container gone -> settled / cancelled,
                                                          owned escrow updated too
  offer    not accepted, bidder holds the asset        -> accepted, unless another
                                                          recorded trade delivered it

The ledger port has no confirmation lookup, so an offer's acceptance is
inferred from the holder alone.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum

from src.am_common.enums import (
    AuctionKind,
    AuctionStatus,
    EscrowStatus,
    ListingStatus,
    OfferStatus,
    RecordKind,
    TradeAction,
)
from src.am_common.errors import NotFoundError
from src.am_ledger.domain.ports import LedgerProtocol
from src.am_store.domain.models import Auction, Escrow, Listing, Offer, TradeRecord
from src.am_store.domain.repository import RecordUpdate, TradeStoreProtocol
from src.am_trading.domain.transitions import transition

logger = logging.getLogger(__name__)

_RECONCILABLE = {
    RecordKind.LISTING: (ListingStatus.ACTIVE,),
    RecordKind.ESCROW: (EscrowStatus.FUNDED,),
    RecordKind.OFFER: (
        OfferStatus.ACTIVE,
        OfferStatus.CANCELLED,
        OfferStatus.REJECTED,
        OfferStatus.EXPIRED,
    ),
    RecordKind.AUCTION: (AuctionStatus.PENDING, AuctionStatus.ACTIVE, AuctionStatus.ENDED),
}


@dataclass(frozen=True)
class Discrepancy:
    kind: RecordKind
    record_id: str
    stored_status: str
    ledger_status: str
    holder: str | None
    updates: tuple[RecordUpdate, ...] = field(default=(), repr=False, compare=False)


class ReconciliationService:
    def __init__(self, store: TradeStoreProtocol, ledger: LedgerProtocol) -> None:
        self._store = store
        self._ledger = ledger

    async def reconcile(self, kind: RecordKind, record_id: str) -> Discrepancy | None:
        """Apply the ledger-implied transition of one record; None when already in sync."""
        record = await self._store.get(kind, record_id)
        if record is None:
            raise NotFoundError(kind.value, record_id)
        if kind == RecordKind.ESCROW:
            owner = await self._owning_auction(record.id)
            if owner is not None:
                kind, record = RecordKind.AUCTION, owner

        discrepancy = await self._inspect(kind, record)
        if discrepancy is None:
            return None
        await self._store.update_many(discrepancy.updates)
        logger.warning(
            "Reconciled %s %s: %s -> %s (holder=%s)",
            kind.value,
            discrepancy.record_id,
            discrepancy.stored_status,
            discrepancy.ledger_status,
            discrepancy.holder,
        )
        return discrepancy

    async def find_discrepancies(self) -> list[Discrepancy]:
        """Read-only scan of every reconcilable record."""
        found: list[Discrepancy] = []
        auction_escrows = {a.escrow_id for a in await self._store.list(RecordKind.AUCTION)}
        for kind, statuses in _RECONCILABLE.items():
            records = await self._store.list(kind, lambda r, s=statuses: r.status in s)
            for record in records:
                if kind == RecordKind.ESCROW and record.id in auction_escrows:
                    continue
                discrepancy = await self._inspect(kind, record)
                if discrepancy is not None:
                    found.append(discrepancy)
        return found

    async def _inspect(self, kind: RecordKind, record: TradeRecord) -> Discrepancy | None:
        if record.status not in _RECONCILABLE[kind]:
            return None
        if isinstance(record, Listing):
            return await self._inspect_listing(record)
        if isinstance(record, Escrow):
            return await self._inspect_escrow(record)
        if isinstance(record, Offer):
            return await self._inspect_offer(record)
        return await self._inspect_auction(record)

    async def _inspect_listing(self, listing: Listing) -> Discrepancy | None:
        holder = await self._ledger.get_asset_holder(listing.asset)
        if holder == listing.seller or await self._is_escrow_authority(holder):
            return None
        prior = listing.status
        if await self._accepted_offer_exists(listing.asset, holder):
            listing.status = transition(RecordKind.LISTING, listing.id, prior, TradeAction.DELIST)
        else:
            listing.status = transition(RecordKind.LISTING, listing.id, prior, TradeAction.BUY)
            listing.buyer = holder
        return _discrepancy(RecordKind.LISTING, listing, prior, holder, [
            RecordUpdate(RecordKind.LISTING, listing, prior),
        ])

    async def _inspect_escrow(self, escrow: Escrow) -> Discrepancy | None:
        if await self._ledger.container_exists(escrow.escrow_asset_account):
            return None
        holder = await self._ledger.get_asset_holder(escrow.asset)
        prior = escrow.status
        _close_escrow(escrow, holder)
        return _discrepancy(RecordKind.ESCROW, escrow, prior, holder, [
            RecordUpdate(RecordKind.ESCROW, escrow, prior),
        ])

    async def _inspect_offer(self, offer: Offer) -> Discrepancy | None:
        holder = await self._ledger.get_asset_holder(offer.asset)
        if holder != offer.bidder or await self._delivered_elsewhere(offer):
            return None
        prior = offer.status
        if prior == OfferStatus.ACTIVE:
            offer.status = transition(RecordKind.OFFER, offer.id, prior, TradeAction.ACCEPT)
        else:
            # a status written after the swap confirmed yields to the ledger
            offer.status = OfferStatus.ACCEPTED
        return _discrepancy(RecordKind.OFFER, offer, prior, holder, [
            RecordUpdate(RecordKind.OFFER, offer, prior),
        ])

    async def _inspect_auction(self, auction: Auction) -> Discrepancy | None:
        escrow = await self._store.get(RecordKind.ESCROW, auction.escrow_id)
        if escrow is None:
            raise NotFoundError(RecordKind.ESCROW.value, auction.escrow_id)
        if await self._ledger.container_exists(escrow.escrow_asset_account):
            return None
        holder = await self._ledger.get_asset_holder(auction.asset)
        prior, prior_escrow = auction.status, escrow.status
        if holder == auction.seller:
            auction.status = transition(RecordKind.AUCTION, auction.id, prior, TradeAction.CANCEL)
        else:
            action = TradeAction.BUY if auction.kind == AuctionKind.DUTCH else TradeAction.SETTLE
            auction.status = transition(RecordKind.AUCTION, auction.id, prior, action)
            auction.winner = holder
            if holder is not None and holder == auction.highest_bidder:
                auction.final_price = auction.highest_bid
        updates = [RecordUpdate(RecordKind.AUCTION, auction, prior)]
        if escrow.status == EscrowStatus.FUNDED:
            _close_escrow(escrow, holder)
            updates.append(RecordUpdate(RecordKind.ESCROW, escrow, prior_escrow))
        return _discrepancy(RecordKind.AUCTION, auction, prior, holder, updates)

    async def _owning_auction(self, escrow_id: str) -> Auction | None:
        owners = await self._store.list(RecordKind.AUCTION, lambda a: a.escrow_id == escrow_id)
        return owners[0] if owners else None

    async def _is_escrow_authority(self, address: str | None) -> bool:
        if address is None:
            return False
        escrows = await self._store.list(RecordKind.ESCROW, lambda e: e.escrow_account == address)
        return bool(escrows)

    async def _accepted_offer_exists(self, asset: str, bidder: str | None) -> bool:
        offers = await self._store.list(
            RecordKind.OFFER,
            lambda o: o.asset == asset and o.bidder == bidder and o.status == OfferStatus.ACCEPTED,
        )
        return bool(offers)

    async def _delivered_elsewhere(self, offer: Offer) -> bool:
        """True when another recorded trade already moved the asset to the bidder."""
        asset, bidder = offer.asset, offer.bidder
        checks = (
            (RecordKind.LISTING, lambda r: r.status == ListingStatus.SOLD and r.buyer == bidder),
            (RecordKind.ESCROW, lambda r: r.status == EscrowStatus.SETTLED and r.buyer == bidder),
            (RecordKind.AUCTION, lambda r: r.status == AuctionStatus.SETTLED and r.winner == bidder),
            (
                RecordKind.OFFER,
                lambda r: r.status == OfferStatus.ACCEPTED and r.bidder == bidder and r.id != offer.id,
            ),
        )
        for kind, predicate in checks:
            if await self._store.list(kind, lambda r, p=predicate: r.asset == asset and p(r)):
                return True
        return False


def _close_escrow(escrow: Escrow, holder: str | None) -> None:
    if holder == escrow.seller:
        escrow.status = transition(RecordKind.ESCROW, escrow.id, escrow.status, TradeAction.CANCEL)
    else:
        escrow.status = transition(RecordKind.ESCROW, escrow.id, escrow.status, TradeAction.SETTLE)
        escrow.buyer = holder


def _discrepancy(
    kind: RecordKind,
    record: TradeRecord,
    prior: Enum,
    holder: str | None,
    updates: list[RecordUpdate],
) -> Discrepancy:
    return Discrepancy(
        kind=kind,
        record_id=record.id,
        stored_status=prior.value,
        ledger_status=record.status.value,
        holder=holder,
        updates=tuple(updates),
    )
