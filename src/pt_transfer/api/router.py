"""pt_transfer REST API: wallet/account transfers and external flows. JWT required.

The acting user is always the token subject; request bodies never name a user.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.pt_common.database import get_db_session
from src.pt_common.response import ApiResponse, respond
from src.pt_gateway.auth.dependencies import get_current_user
from src.pt_gateway.user.db_models import UserModel
from src.pt_transfer.application.schemas import (
    AccountToAccountRequest,
    DepositRequest,
    TransferRequest,
    WithdrawRequest,
)
from src.pt_transfer.application.service import TransferApplicationService

router = APIRouter(tags=["transfer"])

_service = TransferApplicationService()


@router.post("/transfer")
async def transfer(
    body: TransferRequest,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.transfer(
        db, current_user.id, body.account_id, body.amount_cents, body.direction
    )
    return respond(request, data, "Transfer completed")


@router.post("/transfer/account-to-account")
async def account_to_account(
    body: AccountToAccountRequest,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.account_to_account(
        db, current_user.id, body.from_account_id, body.to_account_id, body.amount_cents
    )
    return respond(request, data, "Transfer completed")


@router.post("/wallet/withdraw", status_code=status.HTTP_202_ACCEPTED)
async def request_withdrawal(
    body: WithdrawRequest,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.request_withdrawal(db, current_user.id, body.amount_cents, body.payout)
    return respond(request, data, "Withdrawal submitted for approval")


@router.post("/wallet/deposit", status_code=status.HTTP_202_ACCEPTED)
async def request_deposit(
    body: DepositRequest,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.request_deposit(
        db, current_user.id, body.amount_cents, body.method, body.reference
    )
    return respond(request, data, "Deposit submitted for approval")
