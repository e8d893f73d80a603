"""Unit tests for InMemoryLedger atomicity and authorization."""
import pytest

from src.am_custody.domain.identity import SigningIdentity
from src.am_ledger.domain.operations import (
    AuthorizeDelegate,
    CloseContainer,
    EnsureAssetContainer,
    PayNative,
    TransferAsset,
    canonical_message,
)
from src.am_ledger.domain.ports import LedgerError
from src.am_ledger.infrastructure.memory_ledger import InMemoryLedger

SELLER = "seller"
BUYER = "buyer"
ASSET = "asset-1"


@pytest.fixture
def mem_ledger() -> InMemoryLedger:
    ledger = InMemoryLedger(clock_ms=lambda: 1_000)
    ledger.mint_asset(SELLER, ASSET)
    ledger.fund(BUYER, 1_000)
    return ledger


def _delegated_sale(ledger: InMemoryLedger, delegate: str, amount: int = 400) -> list:
    return [
        EnsureAssetContainer(owner=BUYER, asset=ASSET, payer=BUYER),
        PayNative(source=BUYER, destination=SELLER, amount=amount),
        TransferAsset(
            source_account=ledger.derive_asset_account(SELLER, ASSET),
            destination_owner=BUYER,
            asset=ASSET,
            authority=delegate,
        ),
    ]


class TestSubmission:
    async def test_delegate_moves_asset_with_payment(self, mem_ledger) -> None:
        delegate = SigningIdentity.generate()
        account = mem_ledger.derive_asset_account(SELLER, ASSET)
        await mem_ledger.submit_atomic(
            [AuthorizeDelegate(SELLER, account, delegate.address, ASSET)], [SELLER]
        )

        conf = await mem_ledger.submit_atomic(
            _delegated_sale(mem_ledger, delegate.address), [BUYER], [delegate]
        )

        assert conf.confirmed_at == 1_000
        assert await mem_ledger.get_asset_holder(ASSET) == BUYER
        assert mem_ledger.balance_of(BUYER) == 600
        assert mem_ledger.balance_of(SELLER) == 400
        assert mem_ledger.delegate_of(account) is None

    async def test_failed_op_rolls_back_everything(self, mem_ledger) -> None:
        stranger = SigningIdentity.generate()
        with pytest.raises(LedgerError, match="may not move"):
            await mem_ledger.submit_atomic(
                _delegated_sale(mem_ledger, stranger.address), [BUYER], [stranger]
            )
        assert mem_ledger.balance_of(BUYER) == 1_000
        assert mem_ledger.balance_of(SELLER) == 0
        assert await mem_ledger.get_asset_holder(ASSET) == SELLER
        assert not await mem_ledger.container_exists(mem_ledger.derive_asset_account(BUYER, ASSET))
        assert mem_ledger.confirmations == []

    async def test_missing_primary_signature(self, mem_ledger) -> None:
        with pytest.raises(LedgerError, match="Missing signature"):
            await mem_ledger.submit_atomic([PayNative(BUYER, SELLER, 10)], [SELLER])

    async def test_insufficient_funds(self, mem_ledger) -> None:
        with pytest.raises(LedgerError, match="Insufficient funds"):
            await mem_ledger.submit_atomic([PayNative(BUYER, SELLER, 5_000)], [BUYER])

    async def test_zero_payment_rejected(self, mem_ledger) -> None:
        with pytest.raises(LedgerError, match="positive"):
            await mem_ledger.submit_atomic([PayNative(BUYER, SELLER, 0)], [BUYER])

    async def test_empty_submission_rejected(self, mem_ledger) -> None:
        with pytest.raises(LedgerError):
            await mem_ledger.submit_atomic([], [BUYER])

    async def test_fail_next_applies_once(self, mem_ledger) -> None:
        mem_ledger.fail_next("congested")
        with pytest.raises(LedgerError, match="congested"):
            await mem_ledger.submit_atomic([PayNative(BUYER, SELLER, 10)], [BUYER])
        await mem_ledger.submit_atomic([PayNative(BUYER, SELLER, 10)], [BUYER])
        assert mem_ledger.balance_of(SELLER) == 10


class _ForgingSigner:
    """Claims an address but signs with a different key."""

    def __init__(self, address: str) -> None:
        self.address = address
        self._key = SigningIdentity.generate()

    def sign(self, payload: bytes) -> bytes:
        return self._key.sign(payload)


class TestCoSigners:
    async def test_forged_co_signature_rejected(self, mem_ledger) -> None:
        delegate = SigningIdentity.generate()
        account = mem_ledger.derive_asset_account(SELLER, ASSET)
        await mem_ledger.submit_atomic(
            [AuthorizeDelegate(SELLER, account, delegate.address, ASSET)], [SELLER]
        )
        with pytest.raises(LedgerError, match="Invalid co-signature"):
            await mem_ledger.submit_atomic(
                _delegated_sale(mem_ledger, delegate.address),
                [BUYER],
                [_ForgingSigner(delegate.address)],
            )
        assert await mem_ledger.get_asset_holder(ASSET) == SELLER


class TestContainers:
    async def test_rent_charged_and_refunded_on_close(self) -> None:
        ledger = InMemoryLedger(container_rent=7, clock_ms=lambda: 0)
        ledger.fund(BUYER, 100)
        account = ledger.derive_asset_account(BUYER, ASSET)

        await ledger.submit_atomic([EnsureAssetContainer(BUYER, ASSET, BUYER)], [BUYER])
        assert ledger.balance_of(BUYER) == 93
        await ledger.submit_atomic([EnsureAssetContainer(BUYER, ASSET, BUYER)], [BUYER])
        assert ledger.balance_of(BUYER) == 93

        await ledger.submit_atomic([CloseContainer(account, SELLER, BUYER)], [BUYER])
        assert ledger.balance_of(SELLER) == 7
        assert not await ledger.container_exists(account)

    async def test_close_non_empty_container_rejected(self, mem_ledger) -> None:
        account = mem_ledger.derive_asset_account(SELLER, ASSET)
        with pytest.raises(LedgerError, match="not empty"):
            await mem_ledger.submit_atomic([CloseContainer(account, SELLER, SELLER)], [SELLER])


class TestCanonicalMessage:
    def test_deterministic_and_nonce_bound(self) -> None:
        ops = [PayNative("a", "b", 1)]
        assert canonical_message(ops, "1") == canonical_message(tuple(ops), "1")
        assert canonical_message(ops, "1") != canonical_message(ops, "2")
        assert b" " not in canonical_message(ops, "1")
