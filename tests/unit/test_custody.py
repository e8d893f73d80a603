"""Unit tests for signing identities and CustodyService."""
import base64

import pytest

from src.am_common.enums import RecordKind
from src.am_common.errors import NotFoundError, SettlementFailureError, StoreConsistencyError
from src.am_custody.application.service import CustodyService
from src.am_custody.domain.identity import SigningIdentity, verify_signature
from src.am_store.domain.models import Listing

SELLER = "seller"
PLAIN_ASSET = "asset-plain"


class TestSigningIdentity:
    def test_secret_round_trip_keeps_address(self) -> None:
        identity = SigningIdentity.generate()
        rebuilt = SigningIdentity.from_secret(identity.export_secret())
        assert rebuilt.address == identity.address
        assert rebuilt == identity

    def test_address_is_hex_public_key(self) -> None:
        identity = SigningIdentity.generate()
        assert len(identity.address) == 64
        bytes.fromhex(identity.address)

    def test_signature_verifies(self) -> None:
        identity = SigningIdentity.generate()
        sig = identity.sign(b"payload")
        assert verify_signature(identity.address, b"payload", sig)
        assert not verify_signature(identity.address, b"other", sig)
        assert not verify_signature(SigningIdentity.generate().address, b"payload", sig)

    def test_garbage_address_does_not_verify(self) -> None:
        assert not verify_signature("zz", b"payload", b"\x00" * 64)

    def test_repr_hides_key_material(self) -> None:
        identity = SigningIdentity.generate()
        text = repr(identity)
        assert identity.export_secret() not in text
        assert identity.address not in text
        assert identity.address[:8] in text

    @pytest.mark.parametrize("secret", ["not base64!", base64.b64encode(b"short").decode()])
    def test_malformed_secret(self, secret: str) -> None:
        with pytest.raises(ValueError):
            SigningIdentity.from_secret(secret)

    def test_mismatched_public_half(self) -> None:
        a = base64.b64decode(SigningIdentity.generate().export_secret())
        b = base64.b64decode(SigningIdentity.generate().export_secret())
        with pytest.raises(ValueError, match="does not match"):
            SigningIdentity.from_secret(base64.b64encode(a[:32] + b[32:]).decode())


class TestCustodyService:
    async def test_authorize_then_revoke_delegate(self, ledger, store) -> None:
        custody = CustodyService(ledger, store)
        delegate = custody.create_delegate_identity()

        account, conf = await custody.authorize_delegate(SELLER, PLAIN_ASSET, delegate)

        assert conf.signature
        assert ledger.delegate_of(account) == delegate.address
        await custody.revoke_delegate(SELLER, account)
        assert ledger.delegate_of(account) is None

    async def test_deposit_and_return(self, ledger, store) -> None:
        custody = CustodyService(ledger, store)
        escrow = custody.create_escrow_identity()

        account, _ = await custody.deposit_to_escrow(SELLER, PLAIN_ASSET, escrow)

        assert await ledger.get_asset_holder(PLAIN_ASSET) == escrow.address
        await custody.return_from_escrow(account, SELLER, PLAIN_ASSET, escrow)
        assert await ledger.get_asset_holder(PLAIN_ASSET) == SELLER
        assert not await ledger.container_exists(account)

    async def test_ledger_rejection_becomes_settlement_failure(self, ledger, store) -> None:
        custody = CustodyService(ledger, store)
        ledger.fail_next("node unavailable")
        with pytest.raises(SettlementFailureError) as exc_info:
            await custody.authorize_delegate(SELLER, PLAIN_ASSET, custody.create_delegate_identity())
        assert exc_info.value.action == "authorize_delegate"

    async def test_retrieve_identity(self, ledger, store) -> None:
        custody = CustodyService(ledger, store)
        delegate = custody.create_delegate_identity()
        listing = Listing(
            id="listing-1", asset=PLAIN_ASSET, seller=SELLER, price=10,
            seller_asset_account="acct", delegate_identity=delegate.address, created_at=0,
        )
        await store.insert(RecordKind.LISTING, listing, secret=delegate.export_secret())

        assert await custody.retrieve_identity(RecordKind.LISTING, "listing-1") == delegate

    async def test_retrieve_identity_missing(self, ledger, store) -> None:
        custody = CustodyService(ledger, store)
        with pytest.raises(NotFoundError):
            await custody.retrieve_identity(RecordKind.ESCROW, "escrow-missing")

    async def test_retrieve_identity_without_secret(self, ledger, store) -> None:
        custody = CustodyService(ledger, store)
        listing = Listing(
            id="listing-3", asset=PLAIN_ASSET, seller=SELLER, price=10,
            seller_asset_account="acct", delegate_identity="ab" * 32, created_at=0,
        )
        await store.insert(RecordKind.LISTING, listing)
        with pytest.raises(StoreConsistencyError, match="no stored secret"):
            await custody.retrieve_identity(RecordKind.LISTING, "listing-3")

    async def test_retrieve_identity_corrupt(self, ledger, store) -> None:
        custody = CustodyService(ledger, store)
        listing = Listing(
            id="listing-2", asset=PLAIN_ASSET, seller=SELLER, price=10,
            seller_asset_account="acct", delegate_identity="ab" * 32, created_at=0,
        )
        await store.insert(RecordKind.LISTING, listing, secret="not-a-secret")
        with pytest.raises(StoreConsistencyError):
            await custody.retrieve_identity(RecordKind.LISTING, "listing-2")
