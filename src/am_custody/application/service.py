"""CustodyService: secondary identities and the ledger operations that arm/disarm them.

Order of effects is fixed:
  create identity -> submit ledger op -> (caller) persist record + secret
Nothing here writes to the store; the caller inserts the record only once
the returned confirmation exists.
"""

import logging

from src.am_common.enums import RecordKind
from src.am_common.errors import NotFoundError, SettlementFailureError, StoreConsistencyError
from src.am_custody.domain.identity import SigningIdentity
from src.am_ledger.domain.operations import (
    AuthorizeDelegate,
    Confirmation,
    DepositToEscrow,
    LedgerOp,
    ReturnFromEscrow,
    RevokeDelegate,
)
from src.am_ledger.domain.ports import LedgerError, LedgerProtocol, SecondarySigner
from src.am_store.domain.repository import TradeStoreProtocol

logger = logging.getLogger(__name__)


class CustodyService:
    def __init__(self, ledger: LedgerProtocol, store: TradeStoreProtocol) -> None:
        self._ledger = ledger
        self._store = store

    def create_delegate_identity(self) -> SigningIdentity:
        return SigningIdentity.generate()

    def create_escrow_identity(self) -> SigningIdentity:
        return SigningIdentity.generate()

    async def authorize_delegate(
        self, owner: str, asset: str, delegate: SigningIdentity
    ) -> tuple[str, Confirmation]:
        """Approve `delegate` to move `asset` out of `owner`'s container."""
        owner_account = self._ledger.derive_asset_account(owner, asset)
        op = AuthorizeDelegate(
            owner=owner,
            owner_asset_account=owner_account,
            delegate=delegate.address,
            asset=asset,
        )
        confirmation = await self._submit("authorize_delegate", [op], [owner])
        return owner_account, confirmation

    async def revoke_delegate(self, owner: str, owner_asset_account: str) -> Confirmation:
        op = RevokeDelegate(owner=owner, owner_asset_account=owner_asset_account)
        return await self._submit("revoke_delegate", [op], [owner])

    async def deposit_to_escrow(
        self, owner: str, asset: str, escrow: SigningIdentity
    ) -> tuple[str, Confirmation]:
        """Move `asset` into a fresh container under `escrow`'s sole authority."""
        escrow_account = self._ledger.derive_asset_account(escrow.address, asset)
        op = DepositToEscrow(
            owner=owner,
            owner_asset_account=self._ledger.derive_asset_account(owner, asset),
            escrow_authority=escrow.address,
            escrow_asset_account=escrow_account,
            asset=asset,
        )
        confirmation = await self._submit("deposit_to_escrow", [op], [owner])
        return escrow_account, confirmation

    async def return_from_escrow(
        self,
        escrow_asset_account: str,
        destination_owner: str,
        asset: str,
        escrow: SigningIdentity,
    ) -> Confirmation:
        op = ReturnFromEscrow(
            escrow_asset_account=escrow_asset_account,
            destination_owner=destination_owner,
            asset=asset,
            authority=escrow.address,
        )
        return await self._submit(
            "return_from_escrow", [op], [destination_owner], co_signers=[escrow]
        )

    async def retrieve_identity(self, kind: RecordKind, record_id: str) -> SigningIdentity:
        """Rebuild the record's secondary identity from its persisted secret."""
        secret = await self._store.get_secret(kind, record_id)
        if secret is None:
            if await self._store.get(kind, record_id) is None:
                raise NotFoundError(kind.value, record_id)
            raise StoreConsistencyError(f"{kind.value} {record_id} has no stored secret")
        try:
            return SigningIdentity.from_secret(secret)
        except ValueError as exc:
            raise StoreConsistencyError(
                f"{kind.value} {record_id} has a corrupt secret: {exc}"
            ) from exc

    async def _submit(
        self,
        action: str,
        ops: list[LedgerOp],
        signers: list[str],
        co_signers: list[SecondarySigner] | None = None,
    ) -> Confirmation:
        try:
            confirmation = await self._ledger.submit_atomic(ops, signers, co_signers or ())
        except LedgerError as exc:
            logger.warning("Custody %s rejected: %s", action, exc)
            raise SettlementFailureError(action, str(exc)) from exc
        logger.info("Custody %s confirmed sig=%s", action, confirmation.signature[:12])
        return confirmation
