"""Admin REST API: payment decisions, challenge catalogue and lifecycle, IB review.

Every endpoint requires an ADMIN token.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.pt_admin.application.service import AdminService
from src.pt_challenge.application.schemas import CreateChallengeRequest
from src.pt_challenge.application.service import ChallengeApplicationService
from src.pt_commission.application.service import CommissionApplicationService
from src.pt_common.database import get_db_session
from src.pt_common.response import ApiResponse, respond
from src.pt_gateway.auth.dependencies import require_admin
from src.pt_gateway.user.db_models import UserModel
from src.pt_transfer.application.service import TransferApplicationService

router = APIRouter(prefix="/admin", tags=["admin"])

_service = AdminService()
_transfers = TransferApplicationService()
_challenges = ChallengeApplicationService()
_commissions = CommissionApplicationService()

Admin = Annotated[UserModel, Depends(require_admin)]
Session = Annotated[AsyncSession, Depends(get_db_session)]


# ---------------------------------------------------------------------------
# Wallet payments
# ---------------------------------------------------------------------------


@router.post("/withdraw/{tx_id}/approve")
async def approve_withdrawal(tx_id: int, _admin: Admin, db: Session, request: Request) -> ApiResponse:
    return respond(request, await _transfers.approve_withdrawal(db, tx_id))


@router.post("/withdraw/{tx_id}/reject")
async def reject_withdrawal(tx_id: int, _admin: Admin, db: Session, request: Request) -> ApiResponse:
    return respond(request, await _transfers.reject_withdrawal(db, tx_id))


@router.post("/deposit/{tx_id}/approve")
async def approve_deposit(tx_id: int, _admin: Admin, db: Session, request: Request) -> ApiResponse:
    return respond(request, await _transfers.approve_deposit(db, tx_id))


@router.post("/deposit/{tx_id}/reject")
async def reject_deposit(tx_id: int, _admin: Admin, db: Session, request: Request) -> ApiResponse:
    return respond(request, await _transfers.reject_deposit(db, tx_id))


# ---------------------------------------------------------------------------
# Challenges
# ---------------------------------------------------------------------------


@router.post("/challenge/templates", status_code=status.HTTP_201_CREATED)
async def create_challenge_template(
    body: CreateChallengeRequest, _admin: Admin, db: Session, request: Request
) -> ApiResponse:
    data = await _challenges.create_template(db, body)
    return respond(request, data, "Challenge template created")


@router.post("/challenge/accounts/{account_id}/fund")
async def fund_challenge_account(
    account_id: str, _admin: Admin, db: Session, request: Request
) -> ApiResponse:
    return respond(request, await _challenges.promote_to_funded(db, account_id))


@router.post("/challenge/accounts/{account_id}/archive")
async def archive_challenge_account(
    account_id: str, _admin: Admin, db: Session, request: Request
) -> ApiResponse:
    return respond(request, await _challenges.archive(db, account_id))


# ---------------------------------------------------------------------------
# IB programme
# ---------------------------------------------------------------------------


@router.post("/ib/{user_id}/approve")
async def approve_ib(user_id: str, _admin: Admin, db: Session, request: Request) -> ApiResponse:
    return respond(request, await _commissions.approve(db, user_id))


@router.post("/ib/{user_id}/suspend")
async def suspend_ib(user_id: str, _admin: Admin, db: Session, request: Request) -> ApiResponse:
    return respond(request, await _commissions.suspend(db, user_id))


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@router.get("/invariants")
async def verify_invariants(_admin: Admin, db: Session, request: Request) -> ApiResponse:
    return respond(request, await _service.verify_all_invariants(db))
