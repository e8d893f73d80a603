"""InMemoryLedger: atomic ledger simulation for local runs and tests.

Tracks native balances, payment-asset balances and per-(owner, asset)
containers. A submission is applied to a deep copy of the state and swapped
in only if every op succeeds, so a rejected submission leaves no trace.

Authorization model:
  - primary signers (addresses) are trusted as signed by the wallet layer
  - co-signers are verified cryptographically over the canonical message
  - moving an asset out of a container needs its owner or approved delegate
"""

import copy
import hashlib
import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from src.am_custody.domain.identity import verify_signature
from src.am_ledger.domain.operations import (
    AuthorizeDelegate,
    CloseContainer,
    Confirmation,
    DepositToEscrow,
    EnsureAssetContainer,
    LedgerOp,
    PayNative,
    PayToken,
    ReturnFromEscrow,
    RevokeDelegate,
    TransferAsset,
    canonical_message,
    message_digest,
)
from src.am_ledger.domain.ports import LedgerError, SecondarySigner

logger = logging.getLogger(__name__)


@dataclass
class _Container:
    owner: str
    asset: str
    amount: int = 0
    delegate: str | None = None
    rent: int = 0


@dataclass
class _State:
    native: dict[str, int]
    tokens: dict[tuple[str, str], int]
    containers: dict[str, _Container]


class InMemoryLedger:
    def __init__(
        self,
        container_rent: int = 0,
        clock_ms: Callable[[], int] | None = None,
    ) -> None:
        self._state = _State(native={}, tokens={}, containers={})
        self._container_rent = container_rent
        self._clock_ms = clock_ms or (lambda: int(time.time() * 1000))
        self._nonce = 0
        self._fail_reason: str | None = None
        self.confirmations: list[Confirmation] = []
        self.submissions: list[tuple[LedgerOp, ...]] = []

    # ------------------------------------------------------------------
    # Test / dev seeding
    # ------------------------------------------------------------------

    def fund(self, address: str, amount: int) -> None:
        self._state.native[address] = self._state.native.get(address, 0) + amount

    def fund_token(self, address: str, payment_asset: str, amount: int) -> None:
        key = (address, payment_asset)
        self._state.tokens[key] = self._state.tokens.get(key, 0) + amount

    def mint_asset(self, owner: str, asset: str) -> str:
        """Create `owner`'s container holding the unique `asset`. Returns the container address."""
        account = self.derive_asset_account(owner, asset)
        self._state.containers[account] = _Container(owner=owner, asset=asset, amount=1)
        return account

    def fail_next(self, reason: str = "simulated rejection") -> None:
        """Make the next submit_atomic raise LedgerError without applying anything."""
        self._fail_reason = reason

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def balance_of(self, address: str) -> int:
        return self._state.native.get(address, 0)

    def token_balance_of(self, address: str, payment_asset: str) -> int:
        return self._state.tokens.get((address, payment_asset), 0)

    def delegate_of(self, account: str) -> str | None:
        container = self._state.containers.get(account)
        return container.delegate if container else None

    def derive_asset_account(self, owner: str, asset: str) -> str:
        digest = hashlib.sha256(f"{owner}:{asset}".encode()).hexdigest()
        return f"acct_{digest[:40]}"

    async def get_asset_holder(self, asset: str) -> str | None:
        for container in self._state.containers.values():
            if container.asset == asset and container.amount > 0:
                return container.owner
        return None

    async def container_exists(self, account: str) -> bool:
        return account in self._state.containers

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    async def submit_atomic(
        self,
        ops: Sequence[LedgerOp],
        signers: Sequence[str],
        co_signers: Sequence[SecondarySigner] = (),
    ) -> Confirmation:
        if self._fail_reason is not None:
            reason, self._fail_reason = self._fail_reason, None
            raise LedgerError(reason)
        if not ops:
            raise LedgerError("Empty operation list")

        self._nonce += 1
        message = canonical_message(tuple(ops), nonce=str(self._nonce))
        authorized = set(signers)
        for co_signer in co_signers:
            if not verify_signature(co_signer.address, message, co_signer.sign(message)):
                raise LedgerError(f"Invalid co-signature from {co_signer.address}")
            authorized.add(co_signer.address)

        staged = copy.deepcopy(self._state)
        for op in ops:
            self._apply(staged, op, authorized)
        self._state = staged

        confirmation = Confirmation(
            signature=message_digest(message),
            confirmed_at=self._clock_ms(),
        )
        self.confirmations.append(confirmation)
        self.submissions.append(tuple(ops))
        logger.debug("Ledger confirmed %d ops sig=%s", len(ops), confirmation.signature[:12])
        return confirmation

    # ------------------------------------------------------------------
    # Op application (mutates `state`, which is a staged copy)
    # ------------------------------------------------------------------

    def _apply(self, state: _State, op: LedgerOp, authorized: set[str]) -> None:
        if isinstance(op, EnsureAssetContainer):
            _require_signer(op.payer, authorized)
            account = self.derive_asset_account(op.owner, op.asset)
            if account not in state.containers:
                _debit_native(state, op.payer, self._container_rent)
                state.containers[account] = _Container(
                    owner=op.owner, asset=op.asset, rent=self._container_rent
                )
        elif isinstance(op, PayNative):
            _require_signer(op.source, authorized)
            _require_positive(op.amount)
            _debit_native(state, op.source, op.amount)
            state.native[op.destination] = state.native.get(op.destination, 0) + op.amount
        elif isinstance(op, PayToken):
            _require_signer(op.source, authorized)
            _require_positive(op.amount)
            src_key = (op.source, op.payment_asset)
            if state.tokens.get(src_key, 0) < op.amount:
                raise LedgerError(f"Insufficient {op.payment_asset} balance for {op.source}")
            state.tokens[src_key] -= op.amount
            dst_key = (op.destination, op.payment_asset)
            state.tokens[dst_key] = state.tokens.get(dst_key, 0) + op.amount
        elif isinstance(op, TransferAsset):
            source = _holding_container(state, op.source_account, op.asset)
            if op.authority not in (source.owner, source.delegate):
                raise LedgerError(f"{op.authority} may not move {op.asset}")
            _require_signer(op.authority, authorized)
            dest_account = self.derive_asset_account(op.destination_owner, op.asset)
            dest = state.containers.get(dest_account)
            if dest is None:
                raise LedgerError(f"Destination container missing for {op.destination_owner}")
            source.amount -= 1
            source.delegate = None
            dest.amount += 1
        elif isinstance(op, CloseContainer):
            container = state.containers.get(op.account)
            if container is None:
                raise LedgerError(f"Container not found: {op.account}")
            if container.amount != 0:
                raise LedgerError(f"Container {op.account} is not empty")
            if op.authority != container.owner:
                raise LedgerError(f"{op.authority} does not own {op.account}")
            _require_signer(op.authority, authorized)
            del state.containers[op.account]
            state.native[op.destination] = state.native.get(op.destination, 0) + container.rent
        elif isinstance(op, AuthorizeDelegate):
            container = _holding_container(state, op.owner_asset_account, op.asset)
            if container.owner != op.owner:
                raise LedgerError(f"{op.owner} does not own {op.owner_asset_account}")
            _require_signer(op.owner, authorized)
            container.delegate = op.delegate
        elif isinstance(op, RevokeDelegate):
            container = state.containers.get(op.owner_asset_account)
            if container is None or container.owner != op.owner:
                raise LedgerError(f"{op.owner} does not own {op.owner_asset_account}")
            _require_signer(op.owner, authorized)
            container.delegate = None
        elif isinstance(op, DepositToEscrow):
            source = _holding_container(state, op.owner_asset_account, op.asset)
            if source.owner != op.owner:
                raise LedgerError(f"{op.owner} does not own {op.owner_asset_account}")
            _require_signer(op.owner, authorized)
            expected = self.derive_asset_account(op.escrow_authority, op.asset)
            if op.escrow_asset_account != expected or expected in state.containers:
                raise LedgerError(f"Escrow container unusable: {op.escrow_asset_account}")
            _debit_native(state, op.owner, self._container_rent)
            source.amount -= 1
            source.delegate = None
            state.containers[expected] = _Container(
                owner=op.escrow_authority, asset=op.asset, amount=1, rent=self._container_rent
            )
        elif isinstance(op, ReturnFromEscrow):
            escrow = _holding_container(state, op.escrow_asset_account, op.asset)
            if op.authority != escrow.owner:
                raise LedgerError(f"{op.authority} does not control {op.escrow_asset_account}")
            _require_signer(op.authority, authorized)
            dest_account = self.derive_asset_account(op.destination_owner, op.asset)
            dest = state.containers.setdefault(
                dest_account, _Container(owner=op.destination_owner, asset=op.asset)
            )
            escrow.amount -= 1
            dest.amount += 1
            del state.containers[op.escrow_asset_account]
            state.native[op.destination_owner] = (
                state.native.get(op.destination_owner, 0) + escrow.rent
            )
        else:  # pragma: no cover
            raise LedgerError(f"Unsupported operation: {type(op).__name__}")


def _require_signer(address: str, authorized: set[str]) -> None:
    if address not in authorized:
        raise LedgerError(f"Missing signature for {address}")


def _require_positive(amount: int) -> None:
    if amount <= 0:
        raise LedgerError(f"Payment amount must be positive, got {amount}")


def _debit_native(state: _State, address: str, amount: int) -> None:
    if amount == 0:
        return
    balance = state.native.get(address, 0)
    if balance < amount:
        raise LedgerError(f"Insufficient funds for {address}: need {amount}, have {balance}")
    state.native[address] = balance - amount


def _holding_container(state: _State, account: str, asset: str) -> _Container:
    container = state.containers.get(account)
    if container is None or container.asset != asset or container.amount < 1:
        raise LedgerError(f"Container {account} does not hold {asset}")
    return container
