"""User service: register, login, refresh.

Registration creates the user row, its wallet and its IB profile in one
unit of work, so a user never exists without a wallet.
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.pt_commission.application.service import CommissionApplicationService
from src.pt_commission.domain.models import IBProfile
from src.pt_common.database import unit_of_work
from src.pt_common.datetime_utils import utc_now
from src.pt_common.enums import UserRole
from src.pt_common.errors import (
    AccountDisabledError,
    EmailExistsError,
    InvalidCredentialsError,
    UsernameExistsError,
)
from src.pt_common.id_generator import generate_id
from src.pt_gateway.auth.jwt_handler import (
    create_access_token,
    create_refresh_token,
    decode_token,
)
from src.pt_gateway.auth.password import hash_password, verify_password
from src.pt_gateway.user.db_models import UserModel
from src.pt_ledger.domain.repository import LedgerRepositoryProtocol
from src.pt_ledger.infrastructure.persistence import LedgerRepository

logger = logging.getLogger(__name__)


class UserService:
    """Stateless service: instantiate once, reuse across requests."""

    def __init__(
        self,
        ledger: LedgerRepositoryProtocol | None = None,
        commissions: CommissionApplicationService | None = None,
    ) -> None:
        self._ledger: LedgerRepositoryProtocol = ledger or LedgerRepository()
        self._commissions = commissions or CommissionApplicationService()

    async def register(
        self,
        db: AsyncSession,
        username: str,
        email: str,
        password: str,
        referral_code: str | None = None,
    ) -> tuple[UserModel, IBProfile]:
        async with unit_of_work(db):
            # DB UNIQUE constraints are the final guard
            result = await db.execute(select(UserModel).where(UserModel.username == username))
            if result.scalar_one_or_none() is not None:
                raise UsernameExistsError()

            result = await db.execute(select(UserModel).where(UserModel.email == email))
            if result.scalar_one_or_none() is not None:
                raise EmailExistsError()

            now = utc_now()
            user = UserModel(
                id=generate_id(),
                username=username,
                email=email,
                password_hash=hash_password(password),
                role=UserRole.USER.value,
                is_active=True,
                created_at=now,
                updated_at=now,
            )
            db.add(user)
            await db.flush()

            await self._ledger.create_wallet(db, user.id)
            profile = await self._commissions.create_profile(db, user.id, referral_code)

        logger.info(
            "User registered: %s (%s) referrer=%s",
            user.id, username, profile.referrer_user_id or "-",
        )
        return user, profile

    async def login(
        self, db: AsyncSession, username: str, password: str
    ) -> tuple[UserModel, str, str]:
        """Authenticate and return (user, access_token, refresh_token).

        Unknown user and wrong password both raise InvalidCredentialsError
        so usernames cannot be enumerated.
        """
        result = await db.execute(select(UserModel).where(UserModel.username == username))
        user = result.scalar_one_or_none()

        if user is None or not verify_password(password, user.password_hash):
            raise InvalidCredentialsError()

        if not user.is_active:
            raise AccountDisabledError()

        return user, create_access_token(user.id), create_refresh_token(user.id)

    async def refresh(self, refresh_token: str) -> str:
        """Validate a refresh token and issue a new access token (no rotation)."""
        payload = decode_token(refresh_token, expected_type="refresh")
        return create_access_token(str(payload["sub"]))
