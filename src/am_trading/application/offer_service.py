"""OfferService: off-chain bids on an asset, settled when the holder accepts.

An offer touches the ledger only on acceptance. The holder moves the asset
out of their own container and the bidder co-signs the payment side, so no
secondary identity is involved.
"""

import logging

from src.am_common.enums import ListingStatus, OfferStatus, RecordKind, TradeAction
from src.am_common.errors import NotFoundError, ValidationError
from src.am_ledger.domain.ports import LedgerProtocol
from src.am_settlement.application.service import SettlementService
from src.am_settlement.domain.plan import SettlementRequest
from src.am_store.domain.models import NATIVE_CURRENCY, Offer
from src.am_store.domain.repository import RecordUpdate, TradeStoreProtocol
from src.am_trading.application.base import (
    Clock,
    TradeServiceBase,
    require_actor,
    require_price,
)
from src.am_trading.domain.transitions import transition

logger = logging.getLogger(__name__)


class OfferService(TradeServiceBase):
    kind = RecordKind.OFFER

    def __init__(
        self,
        store: TradeStoreProtocol,
        ledger: LedgerProtocol,
        settlement: SettlementService,
        clock: Clock,
        **kwargs,
    ) -> None:
        super().__init__(store, clock, **kwargs)
        self._ledger = ledger
        self._settlement = settlement

    async def make_offer(
        self,
        actor: str,
        asset: str,
        price: int,
        currency: str = NATIVE_CURRENCY,
        expiry: int | None = None,
    ) -> Offer:
        require_price(price)
        expiry = self._new_expiry(expiry)
        holder = await self._holder_of(asset)
        if holder == actor:
            raise ValidationError(f"{actor} already holds {asset}")

        offer = Offer(
            id=self._ids.next_id(self.kind.value),
            asset=asset,
            bidder=actor,
            price=price,
            currency=currency,
            created_at=self._clock(),
            expiry=expiry,
        )
        await self._store.insert(self.kind, offer)
        logger.info("Offer %s on %s price=%d", offer.id, asset, price)
        return offer

    async def accept_offer(self, actor: str, offer_id: str) -> Offer:
        offer = await self._load(offer_id)
        target = transition(self.kind, offer.id, offer.status, TradeAction.ACCEPT)
        await self._reject_if_expired(offer)
        require_actor(actor, await self._holder_of(offer.asset), "asset holder")
        # the transfer consumes any delegate approval the holder granted
        superseded = await self._store.list(
            RecordKind.LISTING,
            lambda r: r.asset == offer.asset
            and r.seller == actor
            and r.status == ListingStatus.ACTIVE,
        )

        result = await self._settlement.settle(
            SettlementRequest(
                action="accept_offer",
                asset=offer.asset,
                seller=actor,
                receiver=offer.bidder,
                price=offer.price,
                currency=offer.currency,
                source_account=self._ledger.derive_asset_account(actor, offer.asset),
                authority=actor,
                signers=(actor, offer.bidder),
            )
        )
        offer.status = target
        offer.settle_signature = result.signature
        updates = [RecordUpdate(self.kind, offer, OfferStatus.ACTIVE)]
        for listing in superseded:
            listing.status = transition(
                RecordKind.LISTING, listing.id, listing.status, TradeAction.DELIST
            )
            updates.append(RecordUpdate(RecordKind.LISTING, listing, ListingStatus.ACTIVE))
        await self._record_confirmed(result.signature, *updates)
        logger.info("Offer %s accepted by %s", offer.id, actor)
        return offer

    async def cancel_offer(self, actor: str, offer_id: str) -> Offer:
        offer = await self._load(offer_id)
        require_actor(actor, offer.bidder, "bidder")
        offer.status = transition(self.kind, offer.id, offer.status, TradeAction.CANCEL)
        await self._store.update(self.kind, offer, expected_status=OfferStatus.ACTIVE)
        return offer

    async def reject_offer(self, actor: str, offer_id: str) -> Offer:
        offer = await self._load(offer_id)
        require_actor(actor, await self._holder_of(offer.asset), "asset holder")
        offer.status = transition(self.kind, offer.id, offer.status, TradeAction.REJECT)
        await self._store.update(self.kind, offer, expected_status=OfferStatus.ACTIVE)
        return offer

    async def get_offer(self, offer_id: str) -> Offer:
        return await self._load(offer_id)

    async def offers_for_asset(
        self, asset: str, status: OfferStatus | None = OfferStatus.ACTIVE
    ) -> list[Offer]:
        return await self._store.list(
            self.kind,
            lambda r: r.asset == asset and (status is None or r.status == status),
        )

    async def offers_for_bidder(
        self, bidder: str, status: OfferStatus | None = None
    ) -> list[Offer]:
        return await self._store.list(
            self.kind,
            lambda r: r.bidder == bidder and (status is None or r.status == status),
        )

    async def _holder_of(self, asset: str) -> str:
        holder = await self._ledger.get_asset_holder(asset)
        if holder is None:
            raise NotFoundError("asset", asset)
        return holder
