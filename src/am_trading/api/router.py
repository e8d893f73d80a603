"""Trading REST endpoints.

Listings
  POST /listings                      — list an asset (delegate approved)
  GET  /listings                      — active listings, or ?seller=
  GET  /listings/by-asset/{asset}     — the asset's active listing
  GET  /listings/{id}
  POST /listings/{id}/buy | /delist | /revoke
Escrows
  POST /escrows                       — deposit an asset into a fresh escrow
  GET  /escrows                       — ?status= &seller=
  GET  /escrows/{id}
  POST /escrows/{id}/settle | /cancel | /reclaim
Offers
  POST /offers
  GET  /offers                        — ?asset= or ?bidder=
  GET  /offers/{id}
  POST /offers/{id}/accept | /cancel | /reject
Auctions
  POST /auctions
  GET  /auctions                      — ?state=active|ended, or ?seller=
  GET  /auctions/{id}
  GET  /auctions/{id}/price           — current dutch price
  POST /auctions/{id}/bids | /buy | /settle | /cancel

The acting party is the X-Actor-Address header.
"""

from typing import Literal

from fastapi import APIRouter, Query, Request

from src.am_common.amounts import minor_units_to_display
from src.am_common.enums import EscrowStatus, ListingStatus, OfferStatus
from src.am_common.errors import NotFoundError, ValidationError
from src.am_common.response import ApiResponse
from src.am_gateway.dependencies import Actor, Engine, respond
from src.am_trading.application.schemas import (
    AuctionOut,
    CreateAuctionRequest,
    CreateEscrowRequest,
    CreateListingRequest,
    CreateOfferRequest,
    DutchPriceOut,
    EscrowOut,
    ListingOut,
    OfferOut,
    PlaceBidRequest,
)

listings_router = APIRouter(prefix="/listings", tags=["listings"])
escrows_router = APIRouter(prefix="/escrows", tags=["escrows"])
offers_router = APIRouter(prefix="/offers", tags=["offers"])
auctions_router = APIRouter(prefix="/auctions", tags=["auctions"])


# ---------------------------------------------------------------------------
# Listings
# ---------------------------------------------------------------------------


@listings_router.post("", status_code=201)
async def create_listing(
    body: CreateListingRequest, request: Request, actor: Actor, engine: Engine
) -> ApiResponse:
    listing = await engine.listings.list_asset(
        actor, body.asset, body.price, payment_asset=body.payment_asset, expiry=body.expiry
    )
    return respond(request, ListingOut.from_domain(listing).model_dump())


@listings_router.get("")
async def list_listings(
    request: Request,
    engine: Engine,
    seller: str | None = Query(None),
    status: ListingStatus | None = Query(None),
) -> ApiResponse:
    if seller is not None:
        listings = await engine.listings.listings_for_seller(seller, status)
    else:
        listings = await engine.listings.active_listings()
    return respond(request, [ListingOut.from_domain(x).model_dump() for x in listings])


@listings_router.get("/by-asset/{asset}")
async def get_listing_for_asset(asset: str, request: Request, engine: Engine) -> ApiResponse:
    listing = await engine.listings.get_listing_for_asset(asset)
    if listing is None:
        raise NotFoundError("listing for asset", asset)
    return respond(request, ListingOut.from_domain(listing).model_dump())


@listings_router.get("/{listing_id}")
async def get_listing(listing_id: str, request: Request, engine: Engine) -> ApiResponse:
    listing = await engine.listings.get_listing(listing_id)
    return respond(request, ListingOut.from_domain(listing).model_dump())


@listings_router.post("/{listing_id}/buy")
async def buy_listing(listing_id: str, request: Request, actor: Actor, engine: Engine) -> ApiResponse:
    listing = await engine.listings.buy_listing(actor, listing_id)
    return respond(request, ListingOut.from_domain(listing).model_dump())


@listings_router.post("/{listing_id}/delist")
async def delist(listing_id: str, request: Request, actor: Actor, engine: Engine) -> ApiResponse:
    listing = await engine.listings.delist(actor, listing_id)
    return respond(request, ListingOut.from_domain(listing).model_dump())


@listings_router.post("/{listing_id}/revoke")
async def revoke_lapsed_listing(
    listing_id: str, request: Request, actor: Actor, engine: Engine
) -> ApiResponse:
    listing = await engine.listings.revoke_lapsed_listing(actor, listing_id)
    return respond(request, ListingOut.from_domain(listing).model_dump())


# ---------------------------------------------------------------------------
# Escrows
# ---------------------------------------------------------------------------


@escrows_router.post("", status_code=201)
async def create_escrow(
    body: CreateEscrowRequest, request: Request, actor: Actor, engine: Engine
) -> ApiResponse:
    escrow = await engine.escrows.create_escrow(
        actor, body.asset, body.price, currency=body.currency, expiry=body.expiry
    )
    return respond(request, EscrowOut.from_domain(escrow).model_dump())


@escrows_router.get("")
async def list_escrows(
    request: Request,
    engine: Engine,
    status: EscrowStatus | None = Query(None),
    seller: str | None = Query(None),
) -> ApiResponse:
    escrows = await engine.escrows.list_escrows(status=status, seller=seller)
    return respond(request, [EscrowOut.from_domain(x).model_dump() for x in escrows])


@escrows_router.get("/{escrow_id}")
async def get_escrow(escrow_id: str, request: Request, engine: Engine) -> ApiResponse:
    escrow = await engine.escrows.get_escrow(escrow_id)
    return respond(request, EscrowOut.from_domain(escrow).model_dump())


@escrows_router.post("/{escrow_id}/settle")
async def settle_escrow(escrow_id: str, request: Request, actor: Actor, engine: Engine) -> ApiResponse:
    escrow = await engine.escrows.settle_escrow(actor, escrow_id)
    return respond(request, EscrowOut.from_domain(escrow).model_dump())


@escrows_router.post("/{escrow_id}/cancel")
async def cancel_escrow(escrow_id: str, request: Request, actor: Actor, engine: Engine) -> ApiResponse:
    escrow = await engine.escrows.cancel_escrow(actor, escrow_id)
    return respond(request, EscrowOut.from_domain(escrow).model_dump())


@escrows_router.post("/{escrow_id}/reclaim")
async def reclaim_escrow(escrow_id: str, request: Request, actor: Actor, engine: Engine) -> ApiResponse:
    escrow = await engine.escrows.reclaim_expired_escrow(actor, escrow_id)
    return respond(request, EscrowOut.from_domain(escrow).model_dump())


# ---------------------------------------------------------------------------
# Offers
# ---------------------------------------------------------------------------


@offers_router.post("", status_code=201)
async def make_offer(
    body: CreateOfferRequest, request: Request, actor: Actor, engine: Engine
) -> ApiResponse:
    offer = await engine.offers.make_offer(
        actor, body.asset, body.price, currency=body.currency, expiry=body.expiry
    )
    return respond(request, OfferOut.from_domain(offer).model_dump())


@offers_router.get("")
async def list_offers(
    request: Request,
    engine: Engine,
    asset: str | None = Query(None),
    bidder: str | None = Query(None),
    status: OfferStatus | None = Query(None),
) -> ApiResponse:
    if asset is not None:
        offers = await engine.offers.offers_for_asset(asset, status or OfferStatus.ACTIVE)
    elif bidder is not None:
        offers = await engine.offers.offers_for_bidder(bidder, status)
    else:
        raise ValidationError("one of asset or bidder is required")
    return respond(request, [OfferOut.from_domain(x).model_dump() for x in offers])


@offers_router.get("/{offer_id}")
async def get_offer(offer_id: str, request: Request, engine: Engine) -> ApiResponse:
    offer = await engine.offers.get_offer(offer_id)
    return respond(request, OfferOut.from_domain(offer).model_dump())


@offers_router.post("/{offer_id}/accept")
async def accept_offer(offer_id: str, request: Request, actor: Actor, engine: Engine) -> ApiResponse:
    offer = await engine.offers.accept_offer(actor, offer_id)
    return respond(request, OfferOut.from_domain(offer).model_dump())


@offers_router.post("/{offer_id}/cancel")
async def cancel_offer(offer_id: str, request: Request, actor: Actor, engine: Engine) -> ApiResponse:
    offer = await engine.offers.cancel_offer(actor, offer_id)
    return respond(request, OfferOut.from_domain(offer).model_dump())


@offers_router.post("/{offer_id}/reject")
async def reject_offer(offer_id: str, request: Request, actor: Actor, engine: Engine) -> ApiResponse:
    offer = await engine.offers.reject_offer(actor, offer_id)
    return respond(request, OfferOut.from_domain(offer).model_dump())


# ---------------------------------------------------------------------------
# Auctions
# ---------------------------------------------------------------------------


@auctions_router.post("", status_code=201)
async def create_auction(
    body: CreateAuctionRequest, request: Request, actor: Actor, engine: Engine
) -> ApiResponse:
    auction = await engine.auctions.create_auction(
        actor,
        body.asset,
        body.kind,
        body.start_price,
        body.end_time,
        start_time=body.start_time,
        reserve_price=body.reserve_price,
        price_decrement=body.price_decrement,
        decrement_interval_ms=body.decrement_interval_ms,
        currency=body.currency,
    )
    return respond(request, AuctionOut.from_domain(auction).model_dump())


@auctions_router.get("")
async def list_auctions(
    request: Request,
    engine: Engine,
    state: Literal["active", "ended"] = Query("active"),
    seller: str | None = Query(None),
) -> ApiResponse:
    if seller is not None:
        auctions = await engine.auctions.auctions_for_seller(seller)
    elif state == "ended":
        auctions = await engine.auctions.ended_auctions()
    else:
        auctions = await engine.auctions.active_auctions()
    return respond(request, [AuctionOut.from_domain(x).model_dump() for x in auctions])


@auctions_router.get("/{auction_id}")
async def get_auction(auction_id: str, request: Request, engine: Engine) -> ApiResponse:
    auction = await engine.auctions.get_auction(auction_id)
    return respond(request, AuctionOut.from_domain(auction).model_dump())


@auctions_router.get("/{auction_id}/price")
async def get_dutch_price(auction_id: str, request: Request, engine: Engine) -> ApiResponse:
    price = await engine.auctions.current_dutch_price(auction_id)
    out = DutchPriceOut(
        auction_id=auction_id,
        price=price,
        price_display=minor_units_to_display(price),
        as_of=engine.clock(),
    )
    return respond(request, out.model_dump())


@auctions_router.post("/{auction_id}/bids")
async def place_bid(
    auction_id: str, body: PlaceBidRequest, request: Request, actor: Actor, engine: Engine
) -> ApiResponse:
    auction = await engine.auctions.place_bid(actor, auction_id, body.amount)
    return respond(request, AuctionOut.from_domain(auction).model_dump())


@auctions_router.post("/{auction_id}/buy")
async def buy_dutch(auction_id: str, request: Request, actor: Actor, engine: Engine) -> ApiResponse:
    auction = await engine.auctions.buy_dutch(actor, auction_id)
    return respond(request, AuctionOut.from_domain(auction).model_dump())


@auctions_router.post("/{auction_id}/settle")
async def settle_english(auction_id: str, request: Request, actor: Actor, engine: Engine) -> ApiResponse:
    auction = await engine.auctions.settle_english(actor, auction_id)
    return respond(request, AuctionOut.from_domain(auction).model_dump())


@auctions_router.post("/{auction_id}/cancel")
async def cancel_auction(auction_id: str, request: Request, actor: Actor, engine: Engine) -> ApiResponse:
    auction = await engine.auctions.cancel_auction(actor, auction_id)
    return respond(request, AuctionOut.from_domain(auction).model_dump())
