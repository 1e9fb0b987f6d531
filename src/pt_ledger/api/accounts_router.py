"""Trading account REST API: open, list, inspect, archive. JWT required."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.pt_common.database import get_db_session
from src.pt_common.response import ApiResponse, respond
from src.pt_gateway.auth.dependencies import get_current_user
from src.pt_gateway.user.db_models import UserModel
from src.pt_ledger.application.schemas import OpenAccountRequest
from src.pt_ledger.application.service import LedgerApplicationService

router = APIRouter(prefix="/accounts", tags=["accounts"])

_service = LedgerApplicationService()


@router.post("", status_code=status.HTTP_201_CREATED)
async def open_account(
    body: OpenAccountRequest,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.open_account(db, current_user.id, body.account_type, body.leverage)
    return respond(request, data, "Account opened")


@router.get("")
async def list_accounts(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.list_accounts(db, current_user.id)
    return respond(request, data)


@router.get("/{account_id}")
async def get_account(
    account_id: str,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_account(db, current_user.id, account_id)
    return respond(request, data)


@router.post("/{account_id}/archive")
async def archive_account(
    account_id: str,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.archive_account(db, current_user.id, account_id)
    return respond(request, data)
