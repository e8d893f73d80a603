"""Shared test fixtures.

Services run against InMemoryLedger and a JSON store under tmp_path, with a
manual clock so expiry and auction timing are deterministic.
"""

import pytest
from httpx import ASGITransport, AsyncClient

from src.am_ledger.infrastructure.memory_ledger import InMemoryLedger
from src.am_royalty.domain.models import Creator, RoyaltyInfo
from src.am_royalty.infrastructure.static_metadata import StaticMetadataSource
from src.am_store.infrastructure.json_store import JsonFileTradeStore
from src.am_trading.application.engine import (
    TradingEngine,
    build_trading_engine,
    set_trading_engine,
)

T0 = 1_760_000_000_000
SELLER = "seller"
BUYER = "buyer"
CREATOR_A = "creator-a"
CREATOR_B = "creator-b"
ROYAL_ASSET = "asset-royal"
PLAIN_ASSET = "asset-plain"


class ManualClock:
    def __init__(self, start: int = T0) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def ledger(clock: ManualClock) -> InMemoryLedger:
    ledger = InMemoryLedger(clock_ms=clock)
    ledger.mint_asset(SELLER, ROYAL_ASSET)
    ledger.mint_asset(SELLER, PLAIN_ASSET)
    ledger.fund(BUYER, 10_000_000)
    return ledger


@pytest.fixture
def metadata() -> StaticMetadataSource:
    return StaticMetadataSource({
        ROYAL_ASSET: RoyaltyInfo(
            asset=ROYAL_ASSET,
            fee_basis_points=500,
            creators=(Creator(CREATOR_A, 70, True), Creator(CREATOR_B, 30)),
        ),
    })


@pytest.fixture
def store(tmp_path) -> JsonFileTradeStore:
    return JsonFileTradeStore(tmp_path / "state" / "marketplace-state.json")


@pytest.fixture
def engine(store, ledger, metadata, clock) -> TradingEngine:
    return build_trading_engine(store, ledger, metadata, clock)


@pytest.fixture
async def client(engine: TradingEngine) -> AsyncClient:
    """Async HTTP client against the app, wired to the test engine."""
    from src.main import app

    set_trading_engine(engine)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    set_trading_engine(None)
