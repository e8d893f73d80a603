"""Settlement plan: the ordered op list of one buyer-facing trade.

Order inside the single atomic submission:
  1. EnsureAssetContainer for the receiver (idempotent)
  2. one royalty payment per creator with amount > 0
  3. net proceeds to the seller (skipped when 0)
  4. TransferAsset out of custody, authorized by `authority`
  5. CloseContainer of the escrow container (escrow-backed trades only)
"""

from dataclasses import dataclass, field

from src.am_custody.domain.identity import SigningIdentity
from src.am_ledger.domain.operations import (
    CloseContainer,
    EnsureAssetContainer,
    LedgerOp,
    PayNative,
    PayToken,
    TransferAsset,
)
from src.am_royalty.domain.models import RoyaltyDistribution
from src.am_store.domain.models import payment_asset_for


@dataclass(frozen=True)
class SettlementRequest:
    action: str
    asset: str
    seller: str
    receiver: str          # pays and receives the asset
    price: int
    currency: str
    source_account: str    # container the asset leaves
    authority: str         # address allowed to move it (delegate, escrow or owner)
    signers: tuple[str, ...]
    co_signers: tuple[SigningIdentity, ...] = ()
    close_account: str | None = None


@dataclass(frozen=True)
class SettlementPlan:
    request: SettlementRequest
    distribution: RoyaltyDistribution
    ops: tuple[LedgerOp, ...] = field(default_factory=tuple)


def _payment(source: str, destination: str, amount: int, currency: str) -> LedgerOp:
    payment_asset = payment_asset_for(currency)
    if payment_asset is None:
        return PayNative(source=source, destination=destination, amount=amount)
    return PayToken(
        source=source,
        destination=destination,
        amount=amount,
        payment_asset=payment_asset,
    )


def build_settlement_plan(
    request: SettlementRequest, distribution: RoyaltyDistribution
) -> SettlementPlan:
    ops: list[LedgerOp] = [
        EnsureAssetContainer(owner=request.receiver, asset=request.asset, payer=request.receiver)
    ]
    for payment in distribution.payments:
        if payment.amount > 0:
            ops.append(_payment(request.receiver, payment.creator, payment.amount, request.currency))
    if distribution.seller_proceeds > 0:
        ops.append(
            _payment(request.receiver, request.seller, distribution.seller_proceeds, request.currency)
        )
    ops.append(
        TransferAsset(
            source_account=request.source_account,
            destination_owner=request.receiver,
            asset=request.asset,
            authority=request.authority,
        )
    )
    if request.close_account is not None:
        ops.append(
            CloseContainer(
                account=request.close_account,
                destination=request.seller,
                authority=request.authority,
            )
        )
    return SettlementPlan(request=request, distribution=distribution, ops=tuple(ops))
