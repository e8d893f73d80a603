# src/am_admin/application/service.py
"""Admin application service: expiry sweep, reconciliation, store summary."""
from collections import Counter
from typing import Any

from src.am_common.enums import RecordKind
from src.am_settlement.application.reconciliation import Discrepancy, ReconciliationService
from src.am_store.domain.repository import TradeStoreProtocol
from src.am_trading.application.base import Clock


def _discrepancy_out(d: Discrepancy) -> dict[str, Any]:
    return {
        "kind": d.kind.value,
        "record_id": d.record_id,
        "stored_status": d.stored_status,
        "ledger_status": d.ledger_status,
        "holder": d.holder,
    }


class AdminService:
    def __init__(
        self,
        store: TradeStoreProtocol,
        reconciliation: ReconciliationService,
        clock: Clock,
    ) -> None:
        self._store = store
        self._reconciliation = reconciliation
        self._clock = clock

    async def sweep_expired(self) -> dict[str, Any]:
        now = self._clock()
        report = await self._store.sweep_expired(now)
        return {
            "swept_at": now,
            "listings": report.listings,
            "offers": report.offers,
            "escrows": report.escrows,
            "auctions": report.auctions,
            "total": report.total,
        }

    async def reconcile(self, kind: RecordKind, record_id: str) -> dict[str, Any]:
        discrepancy = await self._reconciliation.reconcile(kind, record_id)
        if discrepancy is None:
            return {"kind": kind.value, "record_id": record_id, "changed": False}
        return {**_discrepancy_out(discrepancy), "changed": True}

    async def find_discrepancies(self) -> dict[str, Any]:
        found = await self._reconciliation.find_discrepancies()
        return {"count": len(found), "items": [_discrepancy_out(d) for d in found]}

    async def store_summary(self) -> dict[str, dict[str, int]]:
        """Record counts per collection and status."""
        summary: dict[str, dict[str, int]] = {}
        for kind in RecordKind:
            records = await self._store.list(kind)
            summary[kind.collection] = dict(Counter(r.status.value for r in records))
        return summary
