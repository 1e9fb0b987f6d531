"""Trade-server event intake. Admin (service) token required."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.pt_common.database import get_db_session
from src.pt_common.response import ApiResponse, respond
from src.pt_gateway.auth.dependencies import require_admin
from src.pt_gateway.user.db_models import UserModel
from src.pt_trading.application.schemas import (
    DailyRolloverEvent,
    EquitySnapshotEvent,
    TradeCloseEvent,
)
from src.pt_trading.application.service import TradeEventService

router = APIRouter(prefix="/events", tags=["events"])

_service = TradeEventService()


@router.post("/trade-close")
async def trade_close(
    body: TradeCloseEvent,
    _admin: Annotated[UserModel, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.trade_close(db, body)
    return respond(request, data)


@router.post("/equity-snapshot")
async def equity_snapshot(
    body: EquitySnapshotEvent,
    _admin: Annotated[UserModel, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.equity_snapshot(db, body)
    return respond(request, data)


@router.post("/daily-rollover")
async def daily_rollover(
    body: DailyRolloverEvent,
    _admin: Annotated[UserModel, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.daily_rollover(db, body)
    return respond(request, data)
