"""Shared test fixtures.

Database tests run against in-memory SQLite (aiosqlite) with the ORM
metadata created directly; FOR UPDATE is dropped by the SQLite dialect.
"""

import os

os.environ.setdefault("JWT_SECRET", "test-secret-key-for-unit-tests-only")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

from collections.abc import AsyncIterator, Awaitable, Callable  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402

from src.pt_challenge.infrastructure import db_models as _challenge_models  # noqa: E402,F401
from src.pt_commission.application.service import CommissionApplicationService  # noqa: E402
from src.pt_commission.infrastructure import db_models as _commission_models  # noqa: E402,F401
from src.pt_common.database import Base, unit_of_work  # noqa: E402
from src.pt_common.datetime_utils import utc_now  # noqa: E402
from src.pt_common.enums import UserRole  # noqa: E402
from src.pt_gateway.user.db_models import UserModel  # noqa: E402
from src.pt_ledger.domain.constants import PLATFORM_REVENUE_USER_ID  # noqa: E402
from src.pt_ledger.infrastructure import db_models as _ledger_models  # noqa: E402,F401
from src.pt_ledger.infrastructure.persistence import LedgerRepository  # noqa: E402
from src.pt_transfer.domain.engine import TransferEngine  # noqa: E402

MakeUser = Callable[..., Awaitable[str]]


@pytest.fixture
async def engine() -> AsyncIterator[AsyncEngine]:
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncSession]:
    async with session_factory() as session:
        async with unit_of_work(session):
            await LedgerRepository().create_wallet(session, PLATFORM_REVENUE_USER_ID)
        yield session


@pytest.fixture
def make_user(db: AsyncSession) -> MakeUser:
    """Insert a user with wallet and IB profile, skipping password hashing."""

    async def _make(
        username: str, referral_code: str | None = None, role: UserRole = UserRole.USER
    ) -> str:
        now = utc_now()
        user_id = f"u-{username}"
        async with unit_of_work(db):
            db.add(
                UserModel(
                    id=user_id,
                    username=username,
                    email=f"{username}@example.com",
                    password_hash="not-a-hash",
                    role=role.value,
                    is_active=True,
                    created_at=now,
                    updated_at=now,
                )
            )
            await db.flush()
            await LedgerRepository().create_wallet(db, user_id)
            await CommissionApplicationService().create_profile(db, user_id, referral_code)
        return user_id

    return _make


Fund = Callable[[str, int], Awaitable[None]]


@pytest.fixture
def fund(db: AsyncSession) -> Fund:
    """Credit a wallet through an approved external deposit."""

    async def _fund(user_id: str, amount: int) -> None:
        engine = TransferEngine()
        tx = await engine.request_external_deposit(db, user_id, amount, "bank", f"UTR-{user_id}")
        await engine.approve_deposit(db, tx.id)

    return _fund
