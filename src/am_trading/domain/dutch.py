"""Dutch auction pricing: pure, recomputed on every query.

    decrements = floor(max(0, now - start_time) / decrement_interval_ms)
    raw        = max(0, start_price - decrements * price_decrement)
    price      = max(raw, reserve_price)

Non-increasing in `now` and never below reserve, before, at, or long after
end_time.
"""

from src.am_common.enums import AuctionKind
from src.am_store.domain.models import Auction


def dutch_price(
    start_price: int,
    reserve_price: int,
    price_decrement: int,
    decrement_interval_ms: int,
    start_time: int,
    now: int,
) -> int:
    elapsed = max(0, now - start_time)
    decrements = elapsed // decrement_interval_ms
    raw = max(0, start_price - decrements * price_decrement)
    return max(raw, reserve_price)


def auction_dutch_price(auction: Auction, now: int) -> int:
    if auction.kind != AuctionKind.DUTCH:
        raise ValueError(f"Auction {auction.id} is not a dutch auction")
    return dutch_price(
        auction.start_price,
        auction.reserve_price or 0,
        auction.price_decrement or 0,
        auction.decrement_interval_ms or 1,
        auction.start_time,
        now,
    )
