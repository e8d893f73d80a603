"""Royalty distribution math: pure, integer-only, no ledger dependency.

Secondary sale: total_royalty = floor(sale_price * fee_bps / 10000)
Primary sale:   total_royalty = sale_price (all proceeds go to creators)
Per creator:    floor(total_royalty * share / 100)

Floor division leaves up to len(creators) - 1 minor units of rounding dust
undistributed. The dust stays with the payer; it is not redistributed.
"""

from collections.abc import Iterable

from src.am_common.amounts import SHARE_DENOMINATOR, apply_bps
from src.am_royalty.domain.models import Creator, RoyaltyDistribution, RoyaltyPayment


def calculate_distribution(
    sale_price: int,
    fee_basis_points: int,
    creators: Iterable[Creator],
    is_primary_sale: bool = False,
) -> RoyaltyDistribution:
    creators = tuple(creators)
    if sale_price <= 0:
        return RoyaltyDistribution(
            sale_price=sale_price,
            fee_basis_points=fee_basis_points,
            is_primary_sale=is_primary_sale,
            total_royalty=0,
            seller_proceeds=0,
        )

    if is_primary_sale:
        total_royalty = sale_price
    else:
        total_royalty = apply_bps(sale_price, fee_basis_points)

    payments = tuple(
        RoyaltyPayment(
            creator=c.address,
            share=c.share,
            amount=total_royalty * c.share // SHARE_DENOMINATOR,
        )
        for c in creators
    )
    return RoyaltyDistribution(
        sale_price=sale_price,
        fee_basis_points=fee_basis_points,
        is_primary_sale=is_primary_sale,
        total_royalty=total_royalty,
        seller_proceeds=max(0, sale_price - total_royalty),
        payments=payments,
    )


def validate_creator_shares(creators: Iterable[Creator]) -> None:
    """Raise ValueError unless shares are each in [0, 100] and sum to 100 (or no creators)."""
    creators = tuple(creators)
    if not creators:
        return
    for c in creators:
        if not (0 <= c.share <= SHARE_DENOMINATOR):
            raise ValueError(f"Creator share out of range: {c.address}={c.share}")
    total = sum(c.share for c in creators)
    if total != SHARE_DENOMINATOR:
        raise ValueError(f"Creator shares must sum to {SHARE_DENOMINATOR}, got {total}")
