"""Domain models for am_royalty: pure dataclasses, no I/O."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class Creator:
    address: str
    share: int  # percent, 0-100; shares of one asset sum to 100
    verified: bool = False


@dataclass(frozen=True)
class RoyaltyInfo:
    """Royalty configuration of one asset as reported by the metadata source."""

    asset: str
    fee_basis_points: int
    creators: tuple[Creator, ...] = ()
    primary_sale_happened: bool = True

    @property
    def has_royalties(self) -> bool:
        return self.fee_basis_points > 0 and len(self.creators) > 0


@dataclass(frozen=True)
class RoyaltyPayment:
    creator: str
    share: int
    amount: int  # minor units


@dataclass(frozen=True)
class RoyaltyDistribution:
    sale_price: int
    fee_basis_points: int
    is_primary_sale: bool
    total_royalty: int
    seller_proceeds: int
    payments: tuple[RoyaltyPayment, ...] = field(default_factory=tuple)

    @property
    def distributed(self) -> int:
        """Sum actually paid to creators; may trail total_royalty by rounding dust."""
        return sum(p.amount for p in self.payments)

    @property
    def rounding_dust(self) -> int:
        return self.total_royalty - self.distributed
