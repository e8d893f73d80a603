"""SettlementService: royalty split + custody transfer as one ledger submission.

Validation happens before anything is submitted. A LedgerError becomes
SettlementFailureError and nothing else happens: callers update the store
only with the confirmation this returns.
"""

import logging
from dataclasses import dataclass

from src.am_common.errors import SettlementFailureError, ValidationError
from src.am_ledger.domain.operations import Confirmation
from src.am_ledger.domain.ports import LedgerError, LedgerProtocol
from src.am_royalty.application.service import RoyaltyService
from src.am_royalty.domain.models import RoyaltyDistribution
from src.am_settlement.domain.plan import (
    SettlementPlan,
    SettlementRequest,
    build_settlement_plan,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SettlementResult:
    confirmation: Confirmation
    distribution: RoyaltyDistribution

    @property
    def signature(self) -> str:
        return self.confirmation.signature


class SettlementService:
    def __init__(self, ledger: LedgerProtocol, royalty: RoyaltyService) -> None:
        self._ledger = ledger
        self._royalty = royalty

    async def plan(self, request: SettlementRequest) -> SettlementPlan:
        if request.price <= 0:
            raise ValidationError(f"{request.action}: price must be positive, got {request.price}")
        if request.receiver == request.seller:
            raise ValidationError(f"{request.action}: seller cannot buy their own asset")
        distribution = await self._royalty.distribution_for(request.asset, request.price)
        if distribution.total_royalty > request.price:
            raise ValidationError(
                f"{request.action}: royalty {distribution.total_royalty} exceeds price {request.price}"
            )
        return build_settlement_plan(request, distribution)

    async def settle(self, request: SettlementRequest) -> SettlementResult:
        plan = await self.plan(request)
        try:
            confirmation = await self._ledger.submit_atomic(
                plan.ops, request.signers, request.co_signers
            )
        except LedgerError as exc:
            logger.warning(
                "Settlement %s rejected asset=%s price=%d: %s",
                request.action,
                request.asset,
                request.price,
                exc,
            )
            raise SettlementFailureError(request.action, str(exc)) from exc

        logger.info(
            "Settlement %s confirmed asset=%s price=%d royalty=%d sig=%s",
            request.action,
            request.asset,
            request.price,
            plan.distribution.total_royalty,
            confirmation.signature[:12],
        )
        return SettlementResult(confirmation=confirmation, distribution=plan.distribution)
