from typing import Protocol

from src.am_royalty.domain.models import RoyaltyInfo


class MetadataSourceProtocol(Protocol):
    async def get_royalty_info(self, asset: str) -> RoyaltyInfo: ...
