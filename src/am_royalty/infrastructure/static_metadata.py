"""StaticMetadataSource: royalty configuration from a dict or a JSON file.

File format (keyed by asset id):
{
  "<asset>": {
    "fee_basis_points": 500,
    "creators": [{"address": "...", "share": 100, "verified": true}],
    "primary_sale_happened": true
  }
}
Assets absent from the table have no royalties, matching an asset without
on-ledger metadata.
"""

import json
from pathlib import Path

from pydantic import BaseModel, Field

from src.am_royalty.domain.models import Creator, RoyaltyInfo


class _CreatorEntry(BaseModel):
    address: str
    share: int = Field(ge=0, le=100)
    verified: bool = False


class _RoyaltyEntry(BaseModel):
    fee_basis_points: int = Field(ge=0)
    creators: list[_CreatorEntry] = Field(default_factory=list)
    primary_sale_happened: bool = True


class StaticMetadataSource:
    def __init__(self, table: dict[str, RoyaltyInfo] | None = None) -> None:
        self._table: dict[str, RoyaltyInfo] = dict(table or {})

    @classmethod
    def from_file(cls, path: Path) -> "StaticMetadataSource":
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
        table = {
            asset: _to_info(asset, _RoyaltyEntry.model_validate(entry))
            for asset, entry in raw.items()
        }
        return cls(table)

    def register(self, info: RoyaltyInfo) -> None:
        self._table[info.asset] = info

    async def get_royalty_info(self, asset: str) -> RoyaltyInfo:
        return self._table.get(asset) or RoyaltyInfo(asset=asset, fee_basis_points=0)


def _to_info(asset: str, entry: _RoyaltyEntry) -> RoyaltyInfo:
    return RoyaltyInfo(
        asset=asset,
        fee_basis_points=entry.fee_basis_points,
        creators=tuple(
            Creator(address=c.address, share=c.share, verified=c.verified)
            for c in entry.creators
        ),
        primary_sale_happened=entry.primary_sale_happened,
    )
