"""TradingEngine: one wired set of services over a store, a ledger and metadata.

The process-wide instance is built lazily from config.settings; tests and
embedding code install their own with set_trading_engine().
"""

from collections.abc import Callable
from dataclasses import dataclass

from config.settings import Settings, settings
from src.am_common.database import get_session_factory
from src.am_common.datetime_utils import now_ms
from src.am_common.id_generator import RecordIdGenerator
from src.am_custody.application.service import CustodyService
from src.am_ledger.domain.ports import LedgerProtocol
from src.am_ledger.infrastructure.memory_ledger import InMemoryLedger
from src.am_royalty.application.service import RoyaltyService
from src.am_royalty.domain.ports import MetadataSourceProtocol
from src.am_royalty.infrastructure.static_metadata import StaticMetadataSource
from src.am_settlement.application.reconciliation import ReconciliationService
from src.am_settlement.application.service import SettlementService
from src.am_store.domain.repository import TradeStoreProtocol
from src.am_store.infrastructure.json_store import JsonFileTradeStore
from src.am_store.infrastructure.sql_store import SqlTradeStore
from src.am_trading.application.auction_service import AuctionService
from src.am_trading.application.escrow_service import EscrowService
from src.am_trading.application.listing_service import ListingService
from src.am_trading.application.offer_service import OfferService


@dataclass
class TradingEngine:
    store: TradeStoreProtocol
    ledger: LedgerProtocol
    clock: Callable[[], int]
    custody: CustodyService
    royalty: RoyaltyService
    settlement: SettlementService
    reconciliation: ReconciliationService
    listings: ListingService
    escrows: EscrowService
    offers: OfferService
    auctions: AuctionService


def build_trading_engine(
    store: TradeStoreProtocol,
    ledger: LedgerProtocol,
    metadata: MetadataSourceProtocol,
    clock: Callable[[], int] = now_ms,
) -> TradingEngine:
    ids = RecordIdGenerator(clock)
    custody = CustodyService(ledger, store)
    royalty = RoyaltyService(metadata)
    settlement = SettlementService(ledger, royalty)
    escrows = EscrowService(store, ledger, custody, settlement, clock, ids=ids)
    return TradingEngine(
        store=store,
        ledger=ledger,
        clock=clock,
        custody=custody,
        royalty=royalty,
        settlement=settlement,
        reconciliation=ReconciliationService(store, ledger),
        listings=ListingService(store, custody, settlement, clock, ids=ids),
        escrows=escrows,
        offers=OfferService(store, ledger, settlement, clock, ids=ids),
        auctions=AuctionService(store, custody, escrows, settlement, clock, ids=ids),
    )


def store_from_settings(cfg: Settings) -> TradeStoreProtocol:
    if cfg.STORE_BACKEND == "sql":
        return SqlTradeStore(get_session_factory())
    return JsonFileTradeStore(cfg.STORE_PATH)


def ledger_from_settings(cfg: Settings) -> LedgerProtocol:
    if cfg.LEDGER_BACKEND == "memory":
        return InMemoryLedger()
    raise ValueError(f"Unsupported LEDGER_BACKEND: {cfg.LEDGER_BACKEND}")


def metadata_from_settings(cfg: Settings) -> MetadataSourceProtocol:
    if cfg.ROYALTY_METADATA_PATH is not None:
        return StaticMetadataSource.from_file(cfg.ROYALTY_METADATA_PATH)
    return StaticMetadataSource()


_engine: TradingEngine | None = None


def get_trading_engine() -> TradingEngine:
    """FastAPI dependency and module-level accessor."""
    global _engine  # noqa: PLW0603
    if _engine is None:
        _engine = build_trading_engine(
            store_from_settings(settings),
            ledger_from_settings(settings),
            metadata_from_settings(settings),
        )
    return _engine


def set_trading_engine(engine: TradingEngine | None) -> None:
    global _engine  # noqa: PLW0603
    _engine = engine
