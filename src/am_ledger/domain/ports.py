# src/am_ledger/domain/ports.py
"""Ledger Protocol: dependency inversion for the distributed-ledger collaborator.

Unit tests inject InMemoryLedger, which conforms to this Protocol.
A deployment provides the real client (RPC transport, wallet, encoding).
"""

from collections.abc import Sequence
from typing import Protocol

from src.am_ledger.domain.operations import Confirmation, LedgerOp


class LedgerError(Exception):
    """Raised by a Ledger when an atomic submission is rejected or reverted."""


class SecondarySigner(Protocol):
    """Signing capability of a secondary identity (delegate / escrow authority)."""

    @property
    def address(self) -> str: ...

    def sign(self, payload: bytes) -> bytes: ...


class LedgerProtocol(Protocol):
    def derive_asset_account(self, owner: str, asset: str) -> str: ...

    async def submit_atomic(
        self,
        ops: Sequence[LedgerOp],
        signers: Sequence[str],
        co_signers: Sequence[SecondarySigner] = (),
    ) -> Confirmation:
        """Apply every op or none. `signers` are primary identities signed by the wallet layer."""
        ...

    async def get_asset_holder(self, asset: str) -> str | None: ...

    async def container_exists(self, account: str) -> bool: ...
