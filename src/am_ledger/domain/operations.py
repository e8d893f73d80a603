"""Ledger operations: frozen dataclasses the Ledger collaborator executes.

The wire encoding of each operation is the Ledger's concern; the engine only
composes them in order and submits them as one atomic unit.
All amounts are int minor units.
"""

import hashlib
import json
from dataclasses import asdict, dataclass
from typing import Union


@dataclass(frozen=True)
class EnsureAssetContainer:
    """Idempotent create of `owner`'s container for `asset`, funded by `payer`."""

    owner: str
    asset: str
    payer: str


@dataclass(frozen=True)
class PayNative:
    source: str
    destination: str
    amount: int


@dataclass(frozen=True)
class PayToken:
    """Payment denominated in a fungible payment asset instead of the native currency."""

    source: str
    destination: str
    amount: int
    payment_asset: str


@dataclass(frozen=True)
class TransferAsset:
    """Move `asset` out of `source_account` to `destination_owner`'s container."""

    source_account: str
    destination_owner: str
    asset: str
    authority: str


@dataclass(frozen=True)
class CloseContainer:
    """Close an empty container; residual rent goes to `destination`."""

    account: str
    destination: str
    authority: str


@dataclass(frozen=True)
class AuthorizeDelegate:
    owner: str
    owner_asset_account: str
    delegate: str
    asset: str


@dataclass(frozen=True)
class RevokeDelegate:
    owner: str
    owner_asset_account: str


@dataclass(frozen=True)
class DepositToEscrow:
    """Create the escrow container owned by `escrow_authority` and move the asset into it."""

    owner: str
    owner_asset_account: str
    escrow_authority: str
    escrow_asset_account: str
    asset: str


@dataclass(frozen=True)
class ReturnFromEscrow:
    """Move the asset back to `destination_owner` and close the escrow container."""

    escrow_asset_account: str
    destination_owner: str
    asset: str
    authority: str


LedgerOp = Union[
    EnsureAssetContainer,
    PayNative,
    PayToken,
    TransferAsset,
    CloseContainer,
    AuthorizeDelegate,
    RevokeDelegate,
    DepositToEscrow,
    ReturnFromEscrow,
]


@dataclass(frozen=True)
class Confirmation:
    """Proof that an atomic submission landed."""

    signature: str
    confirmed_at: int  # unix ms


def canonical_message(ops: list[LedgerOp] | tuple[LedgerOp, ...], nonce: str = "") -> bytes:
    """Deterministic byte encoding of an operation list, the payload co-signers sign.

    Rules: one object per op tagged with its type, keys sorted, no whitespace.
    """
    body = {
        "nonce": nonce,
        "ops": [{"type": type(op).__name__, **asdict(op)} for op in ops],
    }
    return json.dumps(body, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode(
        "utf-8"
    )


def message_digest(message: bytes) -> str:
    """SHA-256 hex digest of a canonical message."""
    return hashlib.sha256(message).hexdigest()
