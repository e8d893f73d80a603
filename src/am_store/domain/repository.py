# src/am_store/domain/repository.py
"""Store Protocol: dependency inversion between trade services and persistence.

Two backends conform: JsonFileTradeStore (the single-document file) and
SqlTradeStore (one row per record). Unit tests use the JSON backend on a
tmp path.

Contract shared by both:
  - insert never overwrites; an existing id raises StoreConsistencyError
  - update replaces one record, keeps its secret, and when
    `expected_status` is given fails unless the stored status still matches
  - update also fails unless the record's `version` equals the stored one;
    a successful write bumps both, so a caller that read a stale copy
    gets StoreConsistencyError instead of overwriting a newer write
  - update_many applies several updates in one critical section
  - every mutation is serialized per store (file lock / row lock)
"""

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from src.am_common.enums import RecordKind
from src.am_store.domain.models import TradeRecord


@dataclass(frozen=True)
class SweepReport:
    listings: int = 0
    offers: int = 0
    escrows: int = 0
    auctions: int = 0

    @property
    def total(self) -> int:
        return self.listings + self.offers + self.escrows + self.auctions


@dataclass(frozen=True)
class RecordUpdate:
    kind: RecordKind
    record: TradeRecord
    expected_status: Enum | None = None


RecordFilter = Callable[[TradeRecord], bool]


class TradeStoreProtocol(Protocol):
    async def insert(
        self,
        kind: RecordKind,
        record: TradeRecord,
        secret: str | None = None,
    ) -> None: ...

    async def get(self, kind: RecordKind, record_id: str) -> TradeRecord | None: ...

    async def get_secret(self, kind: RecordKind, record_id: str) -> str | None: ...

    async def update(
        self,
        kind: RecordKind,
        record: TradeRecord,
        expected_status: Enum | None = None,
    ) -> None: ...

    async def update_many(self, updates: Sequence[RecordUpdate]) -> None: ...

    async def list(
        self,
        kind: RecordKind,
        predicate: RecordFilter | None = None,
    ) -> list[TradeRecord]: ...

    async def sweep_expired(self, now: int) -> SweepReport: ...
