"""pt_challenge REST API: catalogue, purchase, and evaluation status."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.pt_challenge.application.schemas import BuyChallengeRequest
from src.pt_challenge.application.service import ChallengeApplicationService
from src.pt_common.database import get_db_session
from src.pt_common.response import ApiResponse, respond
from src.pt_gateway.auth.dependencies import get_current_user
from src.pt_gateway.user.db_models import UserModel

router = APIRouter(tags=["challenge"])

_service = ChallengeApplicationService()


@router.get("/challenge/templates")
async def list_templates(
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.list_templates(db)
    return respond(request, [t.model_dump(mode="json") for t in data])


@router.post("/challenge/buy", status_code=status.HTTP_201_CREATED)
async def buy_challenge(
    body: BuyChallengeRequest,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.buy_challenge(db, current_user.id, body.challenge_id)
    return respond(request, data, "Challenge purchased")


@router.get("/challenge/accounts")
async def list_challenge_accounts(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.list_accounts(db, current_user.id)
    return respond(request, [a.model_dump(mode="json") for a in data])


@router.get("/account/status/{account_id}")
async def get_status(
    account_id: str,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_status(db, current_user.id, account_id)
    return respond(request, data)
