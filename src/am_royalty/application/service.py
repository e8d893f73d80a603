"""RoyaltyService: impure lookup into the metadata source plus the pure split."""

import logging

from src.am_common.errors import ValidationError
from src.am_royalty.domain.distribution import calculate_distribution, validate_creator_shares
from src.am_royalty.domain.models import RoyaltyDistribution, RoyaltyInfo
from src.am_royalty.domain.ports import MetadataSourceProtocol

logger = logging.getLogger(__name__)


class RoyaltyService:
    def __init__(self, metadata: MetadataSourceProtocol) -> None:
        self._metadata = metadata

    async def get_royalty_info(self, asset: str) -> RoyaltyInfo:
        info = await self._metadata.get_royalty_info(asset)
        try:
            validate_creator_shares(info.creators)
        except ValueError as exc:
            raise ValidationError(f"royalty config for {asset}: {exc}") from exc
        if info.fee_basis_points < 0:
            raise ValidationError(f"royalty config for {asset}: negative fee_basis_points")
        return info

    async def distribution_for(self, asset: str, sale_price: int) -> RoyaltyDistribution:
        """Secondary-sale split of `sale_price` for `asset`."""
        info = await self.get_royalty_info(asset)
        distribution = calculate_distribution(
            sale_price,
            info.fee_basis_points,
            info.creators,
            is_primary_sale=False,
        )
        logger.debug(
            "Royalty split asset=%s price=%d royalty=%d proceeds=%d dust=%d",
            asset,
            sale_price,
            distribution.total_royalty,
            distribution.seller_proceeds,
            distribution.rounding_dust,
        )
        return distribution
