"""FastAPI dependencies shared by the trading and admin routers."""

from typing import Annotated

from fastapi import Depends, Header, Request

from config.settings import settings
from src.am_common.errors import UnauthorizedError
from src.am_common.response import ApiResponse, success_response
from src.am_trading.application.engine import TradingEngine, get_trading_engine


async def get_actor(
    x_actor_address: Annotated[str | None, Header()] = None,
) -> str:
    """The acting party; signing for it is the ledger wallet's concern."""
    if not x_actor_address or not x_actor_address.strip():
        raise UnauthorizedError("missing X-Actor-Address header")
    return x_actor_address.strip()


Actor = Annotated[str, Depends(get_actor)]


async def get_admin_actor(actor: Actor) -> str:
    if settings.ADMIN_ADDRESSES and actor not in settings.ADMIN_ADDRESSES:
        raise UnauthorizedError(f"{actor} is not an administrator")
    return actor


AdminActor = Annotated[str, Depends(get_admin_actor)]
Engine = Annotated[TradingEngine, Depends(get_trading_engine)]


def respond(request: Request, data: object) -> ApiResponse:
    return success_response(data, getattr(request.state, "request_id", None))
