"""AuctionService: English and Dutch auctions over an owned escrow.

Creating an auction deposits the asset into an escrow that the auction
drives for its whole life: settlement transfers out of that escrow and
closes it, cancellation returns the asset to the seller. Auction and
escrow are written together in one store critical section.

English: bids while now < end_time, each above the last (first >= start);
settle after end_time by the highest bidder, reserve permitting.
Dutch: no bids; buy_dutch settles at the price of the moment.
"""

import logging

from src.am_common.enums import (
    AuctionKind,
    AuctionStatus,
    EscrowStatus,
    RecordKind,
    TradeAction,
)
from src.am_common.errors import InvalidStateError, UnauthorizedError, ValidationError
from src.am_custody.application.service import CustodyService
from src.am_settlement.application.service import SettlementService
from src.am_settlement.domain.plan import SettlementRequest
from src.am_store.domain.models import NATIVE_CURRENCY, Auction, Bid, Escrow
from src.am_store.domain.repository import RecordUpdate, TradeStoreProtocol
from src.am_trading.application.base import (
    Clock,
    TradeServiceBase,
    require_actor,
    require_price,
)
from src.am_trading.application.escrow_service import EscrowService
from src.am_trading.domain.dutch import auction_dutch_price
from src.am_trading.domain.expiry import apply_expiry
from src.am_trading.domain.transitions import transition

logger = logging.getLogger(__name__)

_OPEN = (AuctionStatus.PENDING, AuctionStatus.ACTIVE)


class AuctionService(TradeServiceBase):
    kind = RecordKind.AUCTION

    def __init__(
        self,
        store: TradeStoreProtocol,
        custody: CustodyService,
        escrows: EscrowService,
        settlement: SettlementService,
        clock: Clock,
        **kwargs,
    ) -> None:
        super().__init__(store, clock, **kwargs)
        self._custody = custody
        self._escrows = escrows
        self._settlement = settlement

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def create_auction(
        self,
        actor: str,
        asset: str,
        kind: AuctionKind,
        start_price: int,
        end_time: int,
        start_time: int | None = None,
        reserve_price: int | None = None,
        price_decrement: int | None = None,
        decrement_interval_ms: int | None = None,
        currency: str = NATIVE_CURRENCY,
    ) -> Auction:
        now = self._clock()
        start_time = now if start_time is None else start_time
        _validate_terms(
            kind, start_price, start_time, end_time, now,
            reserve_price, price_decrement, decrement_interval_ms,
        )

        escrow = await self._escrows.create_escrow(actor, asset, start_price, currency)
        auction = Auction(
            id=self._ids.next_id(self.kind.value),
            asset=asset,
            seller=actor,
            kind=kind,
            start_price=start_price,
            start_time=start_time,
            end_time=end_time,
            currency=currency,
            escrow_id=escrow.id,
            created_at=now,
            status=AuctionStatus.PENDING if start_time > now else AuctionStatus.ACTIVE,
            reserve_price=reserve_price,
        )
        if kind == AuctionKind.DUTCH:
            auction.price_decrement = price_decrement
            auction.decrement_interval_ms = decrement_interval_ms
        await self._store.insert(self.kind, auction)
        logger.info(
            "Auction %s (%s) on %s start=%d escrow=%s",
            auction.id, kind.value, asset, start_price, escrow.id,
        )
        return auction

    # ------------------------------------------------------------------
    # English
    # ------------------------------------------------------------------

    async def place_bid(self, actor: str, auction_id: str, amount: int) -> Auction:
        auction = await self._load(auction_id)
        if auction.kind != AuctionKind.ENGLISH:
            raise ValidationError(f"auction {auction.id} is dutch and does not accept bids")
        prior = auction.status
        target = transition(self.kind, auction.id, prior, TradeAction.BID)
        await self._reject_if_expired(auction)
        if actor == auction.seller:
            raise ValidationError("seller cannot bid on their own auction")
        require_price(amount, "bid")
        if auction.highest_bid is None:
            if amount < auction.start_price:
                raise ValidationError(
                    f"first bid {amount} is below start price {auction.start_price}"
                )
        elif amount <= auction.highest_bid:
            raise ValidationError(f"bid {amount} does not exceed {auction.highest_bid}")

        auction.append_bid(Bid(bidder=actor, amount=amount, timestamp=self._clock()))
        auction.status = target
        await self._store.update(self.kind, auction, expected_status=prior)
        logger.info("Bid on %s by %s amount=%d", auction.id, actor, amount)
        return auction

    async def settle_english(self, actor: str, auction_id: str) -> Auction:
        auction = await self._load(auction_id)
        if auction.kind != AuctionKind.ENGLISH:
            raise ValidationError(f"auction {auction.id} is dutch; use buy_dutch")
        now = self._clock()
        if not auction.has_ended(now):
            raise InvalidStateError(self.kind.value, auction.id, auction.status.value, "settle")
        prior = auction.status
        if apply_expiry(self.kind, auction, now):
            await self._store.update(self.kind, auction, expected_status=prior)
        target = transition(self.kind, auction.id, auction.status, TradeAction.SETTLE)

        if not auction.bids or auction.highest_bid is None:
            raise ValidationError(f"auction {auction.id} has no bids; cancel it instead")
        if auction.reserve_price is not None and auction.highest_bid < auction.reserve_price:
            raise ValidationError(
                f"highest bid {auction.highest_bid} is below reserve {auction.reserve_price}"
            )
        if actor != auction.highest_bidder:
            raise UnauthorizedError(f"{actor} is not the highest bidder")

        return await self._settle(auction, actor, auction.highest_bid, target, "settle_english")

    # ------------------------------------------------------------------
    # Dutch
    # ------------------------------------------------------------------

    async def current_dutch_price(self, auction_id: str) -> int:
        auction = await self._load(auction_id)
        if auction.kind != AuctionKind.DUTCH:
            raise ValidationError(f"auction {auction.id} is not a dutch auction")
        return auction_dutch_price(auction, self._clock())

    async def buy_dutch(self, actor: str, auction_id: str) -> Auction:
        auction = await self._load(auction_id)
        if auction.kind != AuctionKind.DUTCH:
            raise ValidationError(f"auction {auction.id} is not a dutch auction")
        target = transition(self.kind, auction.id, auction.status, TradeAction.BUY)
        await self._reject_if_expired(auction)
        price = auction_dutch_price(auction, self._clock())
        return await self._settle(auction, actor, price, target, "buy_dutch")

    # ------------------------------------------------------------------
    # Cancellation
    # ------------------------------------------------------------------

    async def cancel_auction(self, actor: str, auction_id: str) -> Auction:
        auction = await self._load(auction_id)
        require_actor(actor, auction.seller, "seller")
        target = transition(self.kind, auction.id, auction.status, TradeAction.CANCEL)
        if auction.bids and not self._reserve_unmet_after_end(auction):
            raise InvalidStateError(
                self.kind.value, auction.id, auction.status.value, "cancel with bids"
            )

        escrow = await self._owned_escrow(auction)
        signature = await self._escrows.release_to_seller(escrow)
        prior_auction, prior_escrow = auction.status, escrow.status
        auction.status = target
        escrow.status = transition(RecordKind.ESCROW, escrow.id, escrow.status, TradeAction.CANCEL)
        escrow.signatures.append(signature)
        await self._record_confirmed(
            signature,
            RecordUpdate(self.kind, auction, prior_auction),
            RecordUpdate(RecordKind.ESCROW, escrow, prior_escrow),
        )
        logger.info("Auction %s cancelled", auction.id)
        return auction

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_auction(self, auction_id: str) -> Auction:
        return await self._load(auction_id)

    async def active_auctions(self) -> list[Auction]:
        now = self._clock()
        return await self._store.list(
            self.kind, lambda a: a.status in _OPEN and not a.has_ended(now)
        )

    async def ended_auctions(self) -> list[Auction]:
        """Auctions past end_time that are neither settled nor cancelled."""
        now = self._clock()
        return await self._store.list(
            self.kind,
            lambda a: a.status == AuctionStatus.ENDED
            or (a.status in _OPEN and a.has_ended(now)),
        )

    async def auctions_for_seller(self, seller: str) -> list[Auction]:
        return await self._store.list(self.kind, lambda a: a.seller == seller)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _settle(
        self,
        auction: Auction,
        buyer: str,
        price: int,
        target: AuctionStatus,
        action: str,
    ) -> Auction:
        escrow = await self._owned_escrow(auction)
        escrow_target = transition(RecordKind.ESCROW, escrow.id, escrow.status, TradeAction.SETTLE)
        authority = await self._custody.retrieve_identity(RecordKind.ESCROW, escrow.id)
        result = await self._settlement.settle(
            SettlementRequest(
                action=action,
                asset=auction.asset,
                seller=auction.seller,
                receiver=buyer,
                price=price,
                currency=auction.currency,
                source_account=escrow.escrow_asset_account,
                authority=authority.address,
                signers=(buyer,),
                co_signers=(authority,),
                close_account=escrow.escrow_asset_account,
            )
        )
        prior_auction = auction.status
        auction.status = target
        auction.winner = buyer
        auction.final_price = price
        auction.settle_signature = result.signature
        escrow.status = escrow_target
        escrow.buyer = buyer
        escrow.signatures.append(result.signature)
        await self._record_confirmed(
            result.signature,
            RecordUpdate(self.kind, auction, prior_auction),
            RecordUpdate(RecordKind.ESCROW, escrow, EscrowStatus.FUNDED),
        )
        logger.info("Auction %s settled to %s at %d", auction.id, buyer, price)
        return auction

    async def _owned_escrow(self, auction: Auction) -> Escrow:
        return await self._load(auction.escrow_id, RecordKind.ESCROW)

    def _reserve_unmet_after_end(self, auction: Auction) -> bool:
        return (
            auction.kind == AuctionKind.ENGLISH
            and auction.has_ended(self._clock())
            and auction.reserve_price is not None
            and (auction.highest_bid or 0) < auction.reserve_price
        )


def _validate_terms(
    kind: AuctionKind,
    start_price: int,
    start_time: int,
    end_time: int,
    now: int,
    reserve_price: int | None,
    price_decrement: int | None,
    decrement_interval_ms: int | None,
) -> None:
    require_price(start_price, "start_price")
    if end_time <= start_time:
        raise ValidationError("end_time must be after start_time")
    if end_time <= now:
        raise ValidationError("end_time must be in the future")
    if reserve_price is not None and reserve_price < 0:
        raise ValidationError("reserve_price must not be negative")
    if kind != AuctionKind.DUTCH:
        return
    if reserve_price is None or reserve_price <= 0:
        raise ValidationError("dutch auction requires a positive reserve_price")
    if reserve_price > start_price:
        raise ValidationError("reserve_price must not exceed start_price")
    if price_decrement is None or price_decrement <= 0:
        raise ValidationError("dutch auction requires a positive price_decrement")
    if decrement_interval_ms is None or decrement_interval_ms <= 0:
        raise ValidationError("dutch auction requires a positive decrement_interval_ms")
