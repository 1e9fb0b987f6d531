"""ChallengeRepository: concrete implementation of ChallengeRepositoryProtocol.

Challenge accounts are written with an optimistic compare-and-set:

    UPDATE challenge_accounts SET ..., version = version + 1
    WHERE id = :id AND version = :expected
    RETURNING *

Zero rows means another writer got there first (or the row is gone).
"""

from typing import Any

from sqlalchemy import insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.pt_challenge.domain.models import ChallengeAccount, ChallengeTemplate
from src.pt_challenge.infrastructure.db_models import ChallengeAccountORM, ChallengeORM
from src.pt_common.datetime_utils import ensure_utc, utc_now
from src.pt_common.errors import (
    ConcurrentModificationError,
    EntityNotFoundError,
    InternalError,
)

_challenges = ChallengeORM.__table__
_accounts = ChallengeAccountORM.__table__


def _row_to_template(row: Any) -> ChallengeTemplate:
    return ChallengeTemplate(
        id=row.id,
        name=row.name,
        fund_size=row.fund_size,
        fee=row.fee,
        steps_count=row.steps_count,
        max_daily_drawdown_bps=row.max_daily_drawdown_bps,
        max_overall_drawdown_bps=row.max_overall_drawdown_bps,
        profit_target_bps=list(row.profit_target_bps),
        min_trading_days=row.min_trading_days,
        expiry_days=row.expiry_days,
        is_active=row.is_active,
        created_at=ensure_utc(row.created_at) if row.created_at else None,
    )


def _row_to_account(row: Any) -> ChallengeAccount:
    return ChallengeAccount(
        id=row.id,
        user_id=row.user_id,
        challenge_id=row.challenge_id,
        starting_balance=row.starting_balance,
        current_balance=row.current_balance,
        current_equity=row.current_equity,
        high_water_mark=row.high_water_mark,
        daily_start_equity=row.daily_start_equity,
        daily_start_date=row.daily_start_date,
        current_step=row.current_step,
        trading_days=row.trading_days,
        last_trade_date=row.last_trade_date,
        status=row.status,
        fail_reason=row.fail_reason,
        started_at=ensure_utc(row.started_at),
        version=row.version,
        updated_at=ensure_utc(row.updated_at) if row.updated_at else None,
    )


def _mutable_fields(account: ChallengeAccount) -> dict[str, Any]:
    return {
        "starting_balance": account.starting_balance,
        "current_balance": account.current_balance,
        "current_equity": account.current_equity,
        "high_water_mark": account.high_water_mark,
        "daily_start_equity": account.daily_start_equity,
        "daily_start_date": account.daily_start_date,
        "current_step": account.current_step,
        "trading_days": account.trading_days,
        "last_trade_date": account.last_trade_date,
        "status": account.status,
        "fail_reason": account.fail_reason,
    }


class ChallengeRepository:
    # ------------------------------------------------------------------
    # Templates
    # ------------------------------------------------------------------

    async def create_template(
        self, db: AsyncSession, template: ChallengeTemplate
    ) -> ChallengeTemplate:
        result = await db.execute(
            insert(_challenges)
            .values(
                id=template.id,
                name=template.name,
                fund_size=template.fund_size,
                fee=template.fee,
                steps_count=template.steps_count,
                max_daily_drawdown_bps=template.max_daily_drawdown_bps,
                max_overall_drawdown_bps=template.max_overall_drawdown_bps,
                profit_target_bps=template.profit_target_bps,
                min_trading_days=template.min_trading_days,
                expiry_days=template.expiry_days,
                is_active=template.is_active,
                version=0,
                created_at=utc_now(),
            )
            .returning(*_challenges.c)
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("Challenge insert returned no rows")
        return _row_to_template(row)

    async def get_template(
        self, db: AsyncSession, challenge_id: str
    ) -> ChallengeTemplate | None:
        result = await db.execute(select(_challenges).where(_challenges.c.id == challenge_id))
        row = result.fetchone()
        return _row_to_template(row) if row else None

    async def list_templates(
        self, db: AsyncSession, active_only: bool = True
    ) -> list[ChallengeTemplate]:
        stmt = select(_challenges)
        if active_only:
            stmt = stmt.where(_challenges.c.is_active.is_(True))
        result = await db.execute(stmt.order_by(_challenges.c.fund_size, _challenges.c.id))
        return [_row_to_template(row) for row in result.fetchall()]

    # ------------------------------------------------------------------
    # Challenge accounts
    # ------------------------------------------------------------------

    async def create_account(
        self, db: AsyncSession, account: ChallengeAccount
    ) -> ChallengeAccount:
        result = await db.execute(
            insert(_accounts)
            .values(
                id=account.id,
                user_id=account.user_id,
                challenge_id=account.challenge_id,
                started_at=account.started_at,
                version=0,
                updated_at=utc_now(),
                **_mutable_fields(account),
            )
            .returning(*_accounts.c)
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("Challenge account insert returned no rows")
        return _row_to_account(row)

    async def get_account(
        self, db: AsyncSession, account_id: str
    ) -> ChallengeAccount | None:
        result = await db.execute(select(_accounts).where(_accounts.c.id == account_id))
        row = result.fetchone()
        return _row_to_account(row) if row else None

    async def list_accounts(
        self, db: AsyncSession, user_id: str
    ) -> list[ChallengeAccount]:
        result = await db.execute(
            select(_accounts)
            .where(_accounts.c.user_id == user_id)
            .order_by(_accounts.c.started_at.desc(), _accounts.c.id)
        )
        return [_row_to_account(row) for row in result.fetchall()]

    async def list_ids_by_status(
        self, db: AsyncSession, statuses: list[str]
    ) -> list[str]:
        result = await db.execute(
            select(_accounts.c.id)
            .where(_accounts.c.status.in_(statuses))
            .order_by(_accounts.c.id)
        )
        return [row.id for row in result.fetchall()]

    async def save_account(
        self, db: AsyncSession, account: ChallengeAccount, expected_version: int
    ) -> ChallengeAccount:
        result = await db.execute(
            update(_accounts)
            .where(_accounts.c.id == account.id)
            .where(_accounts.c.version == expected_version)
            .values(
                version=_accounts.c.version + 1,
                updated_at=utc_now(),
                **_mutable_fields(account),
            )
            .returning(*_accounts.c)
        )
        row = result.fetchone()
        if row is None:
            if await self.get_account(db, account.id) is None:
                raise EntityNotFoundError("Challenge account", account.id)
            raise ConcurrentModificationError("Challenge account", account.id)
        return _row_to_account(row)
