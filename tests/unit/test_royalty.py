"""Tests for the royalty engine: pure distribution, share validation, metadata lookup."""

import json

import pytest

from src.am_common.errors import ValidationError
from src.am_royalty.application.service import RoyaltyService
from src.am_royalty.domain.distribution import calculate_distribution, validate_creator_shares
from src.am_royalty.domain.models import Creator, RoyaltyInfo
from src.am_royalty.infrastructure.static_metadata import StaticMetadataSource

THREE_WAY = (Creator("a", 34), Creator("b", 33), Creator("c", 33))


class TestCalculateDistribution:
    def test_secondary_sale(self) -> None:
        dist = calculate_distribution(
            1_000_000, 500, [Creator("a", 70), Creator("b", 30)]
        )
        assert dist.total_royalty == 50_000
        assert dist.seller_proceeds == 950_000
        assert [p.amount for p in dist.payments] == [35_000, 15_000]
        assert dist.rounding_dust == 0

    def test_primary_sale_pays_everything_to_creators(self) -> None:
        dist = calculate_distribution(1_000, 500, [Creator("a", 100)], is_primary_sale=True)
        assert dist.total_royalty == 1_000
        assert dist.seller_proceeds == 0
        assert dist.payments[0].amount == 1_000

    @pytest.mark.parametrize("price", [0, -10])
    def test_non_positive_price_is_zero_distribution(self, price: int) -> None:
        dist = calculate_distribution(price, 500, THREE_WAY)
        assert dist.total_royalty == 0
        assert dist.seller_proceeds == 0
        assert dist.payments == ()

    def test_rounding_dust_is_not_redistributed(self) -> None:
        # 10_000 * 100 bps = 100; 34/33/33 of 100 = 34, 33, 33 -> no dust
        # 10_100 * 100 bps = 101; 34.34 / 33.33 / 33.33 -> 34, 33, 33 -> 1 dust
        dist = calculate_distribution(10_100, 100, THREE_WAY)
        assert dist.total_royalty == 101
        assert dist.distributed == 100
        assert dist.rounding_dust == 1
        assert dist.seller_proceeds == 10_100 - 101

    def test_dust_bounded_by_creator_count(self) -> None:
        for price in range(1, 5_000, 37):
            dist = calculate_distribution(price, 777, THREE_WAY)
            assert 0 <= dist.rounding_dust <= len(THREE_WAY) - 1

    def test_conservation(self) -> None:
        for price in [1, 2, 99, 10_001, 1_000_000, 987_654_321]:
            for bps in [0, 1, 250, 500, 9_999, 10_000]:
                dist = calculate_distribution(price, bps, THREE_WAY)
                assert dist.seller_proceeds + dist.total_royalty == price
                assert dist.distributed <= dist.total_royalty

    def test_no_creators_keeps_royalty_undistributed(self) -> None:
        dist = calculate_distribution(1_000, 1_000, [])
        assert dist.total_royalty == 100
        assert dist.payments == ()


class TestValidateCreatorShares:
    def test_sum_100_ok(self) -> None:
        validate_creator_shares(THREE_WAY)

    def test_empty_ok(self) -> None:
        validate_creator_shares([])

    def test_sum_not_100(self) -> None:
        with pytest.raises(ValueError, match="sum to 100"):
            validate_creator_shares([Creator("a", 60), Creator("b", 30)])

    def test_share_out_of_range(self) -> None:
        with pytest.raises(ValueError, match="out of range"):
            validate_creator_shares([Creator("a", 120), Creator("b", -20)])


class TestStaticMetadataSource:
    async def test_unknown_asset_has_no_royalties(self) -> None:
        info = await StaticMetadataSource().get_royalty_info("mystery")
        assert info.fee_basis_points == 0
        assert info.has_royalties is False

    async def test_from_file(self, tmp_path) -> None:
        path = tmp_path / "royalties.json"
        path.write_text(json.dumps({
            "asset-1": {
                "fee_basis_points": 250,
                "creators": [{"address": "c1", "share": 100, "verified": True}],
            }
        }))
        info = await StaticMetadataSource.from_file(path).get_royalty_info("asset-1")
        assert info.fee_basis_points == 250
        assert info.creators == (Creator("c1", 100, True),)
        assert info.has_royalties


class TestRoyaltyService:
    async def test_distribution_for_uses_metadata(self) -> None:
        source = StaticMetadataSource()
        source.register(RoyaltyInfo("asset-1", 1_000, (Creator("c1", 100),)))
        dist = await RoyaltyService(source).distribution_for("asset-1", 5_000)
        assert dist.total_royalty == 500
        assert dist.is_primary_sale is False

    async def test_invalid_shares_rejected(self) -> None:
        source = StaticMetadataSource()
        source.register(RoyaltyInfo("asset-1", 1_000, (Creator("c1", 50),)))
        with pytest.raises(ValidationError):
            await RoyaltyService(source).get_royalty_info("asset-1")
