"""pt_commission REST API: IB programme for the authenticated user."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.pt_commission.application.schemas import IBWithdrawRequest
from src.pt_commission.application.service import CommissionApplicationService
from src.pt_common.database import get_db_session
from src.pt_common.response import ApiResponse, respond
from src.pt_gateway.auth.dependencies import get_current_user
from src.pt_gateway.user.db_models import UserModel

router = APIRouter(prefix="/ib", tags=["ib"])

_service = CommissionApplicationService()


@router.post("/apply")
async def apply(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.apply(db, current_user.id)
    return respond(request, data, "IB application submitted")


@router.get("/profile")
async def get_profile(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_profile(db, current_user.id)
    return respond(request, data)


@router.get("/referrals")
async def list_referrals(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.list_referrals(db, current_user.id)
    return respond(request, [r.model_dump(mode="json") for r in data])


@router.get("/downline")
async def get_downline(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_downline(db, current_user.id)
    return respond(request, data)


@router.get("/commissions")
async def list_commissions(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    cursor: str | None = Query(None, description="Pagination cursor (opaque Base64)"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
) -> ApiResponse:
    data = await _service.list_commissions(db, current_user.id, cursor, limit)
    return respond(request, data)


@router.post("/withdraw")
async def withdraw(
    body: IBWithdrawRequest,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.withdraw(db, current_user.id, body.amount_cents)
    return respond(request, data, "Commission moved to wallet")
