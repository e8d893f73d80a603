# src/am_admin/api/router.py
"""Admin REST API."""
from typing import Annotated

from fastapi import APIRouter, Depends, Request

from src.am_admin.application.service import AdminService
from src.am_common.enums import RecordKind
from src.am_common.response import ApiResponse
from src.am_gateway.dependencies import AdminActor, respond
from src.am_trading.application.engine import TradingEngine, get_trading_engine

router = APIRouter(prefix="/admin", tags=["admin"])


def get_admin_service(
    engine: Annotated[TradingEngine, Depends(get_trading_engine)],
) -> AdminService:
    return AdminService(engine.store, engine.reconciliation, engine.clock)


Admin = Annotated[AdminService, Depends(get_admin_service)]


@router.post("/sweep")
async def sweep_expired(request: Request, admin: AdminActor, service: Admin) -> ApiResponse:
    return respond(request, await service.sweep_expired())


@router.post("/reconcile/{kind}/{record_id}")
async def reconcile(
    kind: RecordKind, record_id: str, request: Request, admin: AdminActor, service: Admin
) -> ApiResponse:
    return respond(request, await service.reconcile(kind, record_id))


@router.get("/discrepancies")
async def find_discrepancies(request: Request, admin: AdminActor, service: Admin) -> ApiResponse:
    return respond(request, await service.find_discrepancies())


@router.get("/summary")
async def store_summary(request: Request, admin: AdminActor, service: Admin) -> ApiResponse:
    return respond(request, await service.store_summary())
