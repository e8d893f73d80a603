"""EscrowService: escrow-held sales.

The asset sits in a container whose only authority is a fresh escrow
identity. Escrows opened on behalf of an auction are driven by the
auction; the direct escrow actions refuse them.
"""

import logging

from src.am_common.enums import EscrowStatus, RecordKind, TradeAction
from src.am_common.errors import InvalidStateError, ValidationError
from src.am_custody.application.service import CustodyService
from src.am_ledger.domain.ports import LedgerProtocol
from src.am_settlement.application.service import SettlementService
from src.am_settlement.domain.plan import SettlementRequest
from src.am_store.domain.models import NATIVE_CURRENCY, Escrow
from src.am_store.domain.repository import RecordUpdate, TradeStoreProtocol
from src.am_trading.application.base import (
    Clock,
    TradeServiceBase,
    require_actor,
    require_price,
)
from src.am_trading.domain.expiry import apply_expiry
from src.am_trading.domain.transitions import transition

logger = logging.getLogger(__name__)


class EscrowService(TradeServiceBase):
    kind = RecordKind.ESCROW

    def __init__(
        self,
        store: TradeStoreProtocol,
        ledger: LedgerProtocol,
        custody: CustodyService,
        settlement: SettlementService,
        clock: Clock,
        **kwargs,
    ) -> None:
        super().__init__(store, clock, **kwargs)
        self._ledger = ledger
        self._custody = custody
        self._settlement = settlement

    async def create_escrow(
        self,
        actor: str,
        asset: str,
        price: int,
        currency: str = NATIVE_CURRENCY,
        expiry: int | None = None,
    ) -> Escrow:
        require_price(price)
        expiry = self._new_expiry(expiry)
        listing = await self._open_listing_for(asset)
        if listing is not None:
            raise ValidationError(f"asset {asset} is listed as {listing.id}; delist it first")

        authority = self._custody.create_escrow_identity()
        escrow_account, confirmation = await self._custody.deposit_to_escrow(
            actor, asset, authority
        )

        escrow = Escrow(
            id=self._ids.next_id(self.kind.value),
            asset=asset,
            seller=actor,
            price=price,
            currency=currency,
            escrow_account=authority.address,
            escrow_asset_account=escrow_account,
            created_at=self._clock(),
            expiry=expiry,
        )
        escrow.status = transition(
            self.kind, escrow.id, escrow.status, TradeAction.DEPOSIT_CONFIRMED
        )
        escrow.signatures.append(confirmation.signature)
        await self._store.insert(self.kind, escrow, secret=authority.export_secret())
        logger.info("Escrow %s funded with %s price=%d", escrow.id, asset, price)
        return escrow

    async def settle_escrow(self, actor: str, escrow_id: str) -> Escrow:
        escrow = await self._load(escrow_id)
        await self._refuse_auction_owned(escrow)
        target = transition(self.kind, escrow.id, escrow.status, TradeAction.SETTLE)
        await self._reject_if_expired(escrow)

        authority = await self._custody.retrieve_identity(self.kind, escrow.id)
        result = await self._settlement.settle(
            SettlementRequest(
                action="settle_escrow",
                asset=escrow.asset,
                seller=escrow.seller,
                receiver=actor,
                price=escrow.price,
                currency=escrow.currency,
                source_account=escrow.escrow_asset_account,
                authority=authority.address,
                signers=(actor,),
                co_signers=(authority,),
                close_account=escrow.escrow_asset_account,
            )
        )
        escrow.status = target
        escrow.buyer = actor
        escrow.signatures.append(result.signature)
        await self._record_confirmed(
            result.signature, RecordUpdate(self.kind, escrow, EscrowStatus.FUNDED)
        )
        return escrow

    async def cancel_escrow(self, actor: str, escrow_id: str) -> Escrow:
        escrow = await self._load(escrow_id)
        require_actor(actor, escrow.seller, "seller")
        await self._refuse_auction_owned(escrow)
        prior = escrow.status
        target = transition(self.kind, escrow.id, prior, TradeAction.CANCEL)

        escrow.status = target
        if prior == EscrowStatus.FUNDED:
            signature = await self._release(escrow)
            escrow.signatures.append(signature)
            await self._record_confirmed(signature, RecordUpdate(self.kind, escrow, prior))
        else:
            await self._store.update(self.kind, escrow, expected_status=prior)
        logger.info("Escrow %s cancelled", escrow.id)
        return escrow

    async def reclaim_expired_escrow(self, actor: str, escrow_id: str) -> Escrow:
        """Return a lapsed escrow's asset to its seller; the status stays expired."""
        escrow = await self._load(escrow_id)
        require_actor(actor, escrow.seller, "seller")
        await self._refuse_auction_owned(escrow)
        prior = escrow.status
        if apply_expiry(self.kind, escrow, self._clock()):
            await self._store.update(self.kind, escrow, expected_status=prior)
        if escrow.status != EscrowStatus.EXPIRED:
            raise InvalidStateError(self.kind.value, escrow.id, escrow.status.value, "reclaim")
        if not await self._ledger.container_exists(escrow.escrow_asset_account):
            raise ValidationError(f"escrow {escrow.id} holds nothing to reclaim")

        signature = await self._release(escrow)
        escrow.signatures.append(signature)
        await self._record_confirmed(
            signature, RecordUpdate(self.kind, escrow, EscrowStatus.EXPIRED)
        )
        logger.info("Escrow %s reclaimed by seller", escrow.id)
        return escrow

    async def get_escrow(self, escrow_id: str) -> Escrow:
        return await self._load(escrow_id)

    async def list_escrows(
        self, status: EscrowStatus | None = None, seller: str | None = None
    ) -> list[Escrow]:
        return await self._store.list(
            self.kind,
            lambda r: (status is None or r.status == status)
            and (seller is None or r.seller == seller),
        )

    async def release_to_seller(self, escrow: Escrow) -> str:
        """Return the asset to the seller; used by auction cancellation."""
        return await self._release(escrow)

    async def _release(self, escrow: Escrow) -> str:
        authority = await self._custody.retrieve_identity(self.kind, escrow.id)
        confirmation = await self._custody.return_from_escrow(
            escrow.escrow_asset_account, escrow.seller, escrow.asset, authority
        )
        return confirmation.signature

    async def _refuse_auction_owned(self, escrow: Escrow) -> None:
        owners = await self._store.list(RecordKind.AUCTION, lambda a: a.escrow_id == escrow.id)
        if owners:
            raise ValidationError(f"escrow {escrow.id} is driven by auction {owners[0].id}")
