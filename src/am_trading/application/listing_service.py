"""ListingService: delegated listings.

The seller keeps the asset; a fresh delegate identity is approved to move
it, and its secret is stored beside the listing so a buyer can settle
without the seller online.
"""

import logging

from src.am_common.enums import ListingStatus, RecordKind, TradeAction
from src.am_common.errors import InvalidStateError, ValidationError
from src.am_custody.application.service import CustodyService
from src.am_settlement.application.service import SettlementService
from src.am_settlement.domain.plan import SettlementRequest
from src.am_store.domain.models import NATIVE_CURRENCY, Listing
from src.am_store.domain.repository import RecordUpdate, TradeStoreProtocol
from src.am_trading.application.base import (
    Clock,
    TradeServiceBase,
    require_actor,
    require_price,
)
from src.am_trading.domain.expiry import apply_expiry
from src.am_trading.domain.transitions import transition

logger = logging.getLogger(__name__)


class ListingService(TradeServiceBase):
    kind = RecordKind.LISTING

    def __init__(
        self,
        store: TradeStoreProtocol,
        custody: CustodyService,
        settlement: SettlementService,
        clock: Clock,
        **kwargs,
    ) -> None:
        super().__init__(store, clock, **kwargs)
        self._custody = custody
        self._settlement = settlement

    async def list_asset(
        self,
        actor: str,
        asset: str,
        price: int,
        payment_asset: str | None = None,
        expiry: int | None = None,
    ) -> Listing:
        require_price(price)
        expiry = self._new_expiry(expiry)
        existing = await self.get_listing_for_asset(asset)
        if existing is not None:
            raise ValidationError(f"asset {asset} is already listed as {existing.id}")

        delegate = self._custody.create_delegate_identity()
        owner_account, _ = await self._custody.authorize_delegate(actor, asset, delegate)

        listing = Listing(
            id=self._ids.next_id(self.kind.value),
            asset=asset,
            seller=actor,
            price=price,
            seller_asset_account=owner_account,
            delegate_identity=delegate.address,
            created_at=self._clock(),
            payment_asset=payment_asset,
            expiry=expiry,
        )
        await self._store.insert(self.kind, listing, secret=delegate.export_secret())
        logger.info("Listed %s as %s price=%d", asset, listing.id, price)
        return listing

    async def delist(self, actor: str, listing_id: str) -> Listing:
        listing = await self._load(listing_id)
        require_actor(actor, listing.seller, "seller")
        target = transition(self.kind, listing.id, listing.status, TradeAction.DELIST)

        await self._custody.revoke_delegate(listing.seller, listing.seller_asset_account)
        listing.status = target
        await self._store.update(self.kind, listing, expected_status=ListingStatus.ACTIVE)
        logger.info("Delisted %s", listing.id)
        return listing

    async def revoke_lapsed_listing(self, actor: str, listing_id: str) -> Listing:
        """Withdraw a lapsed listing's delegate approval; the status stays cancelled."""
        listing = await self._load(listing_id)
        require_actor(actor, listing.seller, "seller")
        prior = listing.status
        if apply_expiry(self.kind, listing, self._clock()):
            await self._store.update(self.kind, listing, expected_status=prior)
        if listing.status != ListingStatus.CANCELLED:
            raise InvalidStateError(self.kind.value, listing.id, listing.status.value, "revoke")
        relisted = await self.get_listing_for_asset(listing.asset)
        if relisted is not None:
            raise ValidationError(
                f"asset {listing.asset} is listed again as {relisted.id}; "
                "its approval replaced this one"
            )

        confirmation = await self._custody.revoke_delegate(
            listing.seller, listing.seller_asset_account
        )
        logger.info("Lapsed listing %s revoked sig=%s", listing.id, confirmation.signature[:12])
        return listing

    async def buy_listing(self, actor: str, listing_id: str) -> Listing:
        listing = await self._load(listing_id)
        target = transition(self.kind, listing.id, listing.status, TradeAction.BUY)
        await self._reject_if_expired(listing)

        delegate = await self._custody.retrieve_identity(self.kind, listing.id)
        result = await self._settlement.settle(
            SettlementRequest(
                action="buy_listing",
                asset=listing.asset,
                seller=listing.seller,
                receiver=actor,
                price=listing.price,
                currency=listing.payment_asset or NATIVE_CURRENCY,
                source_account=listing.seller_asset_account,
                authority=delegate.address,
                signers=(actor,),
                co_signers=(delegate,),
            )
        )
        listing.status = target
        listing.buyer = actor
        listing.settle_signature = result.signature
        await self._record_confirmed(
            result.signature, RecordUpdate(self.kind, listing, ListingStatus.ACTIVE)
        )
        return listing

    async def get_listing(self, listing_id: str) -> Listing:
        return await self._load(listing_id)

    async def get_listing_for_asset(self, asset: str) -> Listing | None:
        """The asset's active, unexpired listing, if any."""
        return await self._open_listing_for(asset)

    async def active_listings(self) -> list[Listing]:
        now = self._clock()
        return await self._store.list(
            self.kind,
            lambda r: r.status == ListingStatus.ACTIVE and not r.is_expired(now),
        )

    async def listings_for_seller(
        self, seller: str, status: ListingStatus | None = None
    ) -> list[Listing]:
        return await self._store.list(
            self.kind,
            lambda r: r.seller == seller and (status is None or r.status == status),
        )
