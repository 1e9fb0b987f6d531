"""CommissionRepository: concrete implementation of CommissionRepositoryProtocol.

Commission balance changes are single conditional UPDATE ... RETURNING
statements guarded on status and balance, like the wallet repository.
"""

from typing import Any

from sqlalchemy import DateTime, bindparam, func, insert, select, text, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.pt_commission.domain.models import Commission, IBProfile, LevelStat, Referral
from src.pt_commission.infrastructure.db_models import CommissionORM, IBProfileORM
from src.pt_common.datetime_utils import ensure_utc, utc_now
from src.pt_common.enums import CommissionStatus, IBStatus
from src.pt_common.errors import (
    EntityNotFoundError,
    InsufficientFundsError,
    InternalError,
    NotAnIBError,
)

_profiles = IBProfileORM.__table__
_commissions = CommissionORM.__table__

_REFERRALS_SQL = text("""
    SELECT p.user_id, u.username, u.email, p.referrer_user_id, p.status, p.created_at
    FROM ib_profiles p
    JOIN users u ON u.id = p.user_id
    WHERE p.referrer_user_id IN :referrer_ids
    ORDER BY p.created_at, p.user_id
""").bindparams(bindparam("referrer_ids", expanding=True)).columns(
    created_at=DateTime(timezone=True)
)


def _opt_utc(value: Any) -> Any:
    return ensure_utc(value) if value else None


def _row_to_profile(row: Any) -> IBProfile:
    return IBProfile(
        user_id=row.user_id,
        referral_code=row.referral_code,
        referrer_user_id=row.referrer_user_id,
        status=row.status,
        tier=row.tier,
        direct_referral_count=row.direct_referral_count,
        commission_balance=row.commission_balance,
        total_earned=row.total_earned,
        total_withdrawn=row.total_withdrawn,
        version=row.version,
        applied_at=_opt_utc(row.applied_at),
        approved_at=_opt_utc(row.approved_at),
        created_at=_opt_utc(row.created_at),
    )


def _row_to_commission(row: Any) -> Commission:
    return Commission(
        id=row.id,
        ib_user_id=row.ib_user_id,
        trader_user_id=row.trader_user_id,
        source_account_id=row.source_account_id,
        trade_id=row.trade_id,
        symbol=row.symbol,
        level=row.level,
        lots_x100=row.lots_x100,
        rate_cents_per_lot=row.rate_cents_per_lot,
        amount=row.amount,
        status=row.status,
        created_at=_opt_utc(row.created_at),
    )


class CommissionRepository:
    # ------------------------------------------------------------------
    # IB profiles
    # ------------------------------------------------------------------

    async def create_profile(self, db: AsyncSession, profile: IBProfile) -> IBProfile:
        now = utc_now()
        result = await db.execute(
            insert(_profiles)
            .values(
                user_id=profile.user_id,
                referral_code=profile.referral_code,
                referrer_user_id=profile.referrer_user_id,
                status=profile.status,
                tier=profile.tier,
                direct_referral_count=0,
                commission_balance=0,
                total_earned=0,
                total_withdrawn=0,
                version=0,
                created_at=now,
                updated_at=now,
            )
            .returning(*_profiles.c)
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("IB profile insert returned no rows")
        return _row_to_profile(row)

    async def get_profile(self, db: AsyncSession, user_id: str) -> IBProfile | None:
        result = await db.execute(select(_profiles).where(_profiles.c.user_id == user_id))
        row = result.fetchone()
        return _row_to_profile(row) if row else None

    async def get_profile_by_code(
        self, db: AsyncSession, referral_code: str
    ) -> IBProfile | None:
        result = await db.execute(
            select(_profiles).where(_profiles.c.referral_code == referral_code)
        )
        row = result.fetchone()
        return _row_to_profile(row) if row else None

    async def transition_status(
        self, db: AsyncSession, user_id: str, allowed_from: list[str], status: str
    ) -> IBProfile | None:
        now = utc_now()
        values: dict[str, Any] = {
            "status": status,
            "version": _profiles.c.version + 1,
            "updated_at": now,
        }
        if status == IBStatus.PENDING:
            values["applied_at"] = now
        elif status == IBStatus.ACTIVE:
            values["approved_at"] = now
        result = await db.execute(
            update(_profiles)
            .where(_profiles.c.user_id == user_id)
            .where(_profiles.c.status.in_(allowed_from))
            .values(**values)
            .returning(*_profiles.c)
        )
        row = result.fetchone()
        return _row_to_profile(row) if row else None

    async def add_direct_referral(self, db: AsyncSession, user_id: str) -> IBProfile:
        result = await db.execute(
            update(_profiles)
            .where(_profiles.c.user_id == user_id)
            .values(
                direct_referral_count=_profiles.c.direct_referral_count + 1,
                version=_profiles.c.version + 1,
                updated_at=utc_now(),
            )
            .returning(*_profiles.c)
        )
        row = result.fetchone()
        if row is None:
            raise EntityNotFoundError("IB profile", user_id)
        return _row_to_profile(row)

    async def set_tier(self, db: AsyncSession, user_id: str, tier: str) -> IBProfile:
        result = await db.execute(
            update(_profiles)
            .where(_profiles.c.user_id == user_id)
            .values(tier=tier, version=_profiles.c.version + 1, updated_at=utc_now())
            .returning(*_profiles.c)
        )
        row = result.fetchone()
        if row is None:
            raise EntityNotFoundError("IB profile", user_id)
        return _row_to_profile(row)

    async def credit_commission(
        self, db: AsyncSession, user_id: str, amount: int
    ) -> IBProfile | None:
        result = await db.execute(
            update(_profiles)
            .where(_profiles.c.user_id == user_id)
            .where(_profiles.c.status == IBStatus.ACTIVE.value)
            .values(
                commission_balance=_profiles.c.commission_balance + amount,
                total_earned=_profiles.c.total_earned + amount,
                version=_profiles.c.version + 1,
                updated_at=utc_now(),
            )
            .returning(*_profiles.c)
        )
        row = result.fetchone()
        return _row_to_profile(row) if row else None

    async def debit_commission(
        self, db: AsyncSession, user_id: str, amount: int
    ) -> IBProfile:
        result = await db.execute(
            update(_profiles)
            .where(_profiles.c.user_id == user_id)
            .where(_profiles.c.status == IBStatus.ACTIVE.value)
            .where(_profiles.c.commission_balance >= amount)
            .values(
                commission_balance=_profiles.c.commission_balance - amount,
                total_withdrawn=_profiles.c.total_withdrawn + amount,
                version=_profiles.c.version + 1,
                updated_at=utc_now(),
            )
            .returning(*_profiles.c)
        )
        row = result.fetchone()
        if row is None:
            current = await self.get_profile(db, user_id)
            if current is None or not current.is_active_ib:
                raise NotAnIBError(user_id)
            raise InsufficientFundsError(amount, current.commission_balance)
        return _row_to_profile(row)

    # ------------------------------------------------------------------
    # Commissions
    # ------------------------------------------------------------------

    async def insert_commission(self, db: AsyncSession, commission: Commission) -> Commission:
        result = await db.execute(
            insert(_commissions)
            .values(
                id=commission.id,
                ib_user_id=commission.ib_user_id,
                trader_user_id=commission.trader_user_id,
                source_account_id=commission.source_account_id,
                trade_id=commission.trade_id,
                symbol=commission.symbol,
                level=commission.level,
                lots_x100=commission.lots_x100,
                rate_cents_per_lot=commission.rate_cents_per_lot,
                amount=commission.amount,
                status=commission.status,
                created_at=commission.created_at or utc_now(),
            )
            .returning(*_commissions.c)
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("Commission insert returned no rows")
        return _row_to_commission(row)

    async def list_for_trade(self, db: AsyncSession, trade_id: str) -> list[Commission]:
        result = await db.execute(
            select(_commissions)
            .where(_commissions.c.trade_id == trade_id)
            .order_by(_commissions.c.level)
        )
        return [_row_to_commission(row) for row in result.fetchall()]

    async def list_commissions(
        self, db: AsyncSession, ib_user_id: str, cursor_id: int | None, limit: int
    ) -> list[Commission]:
        stmt = select(_commissions).where(_commissions.c.ib_user_id == ib_user_id)
        if cursor_id is not None:
            stmt = stmt.where(_commissions.c.id < cursor_id)
        result = await db.execute(stmt.order_by(_commissions.c.id.desc()).limit(limit))
        return [_row_to_commission(row) for row in result.fetchall()]

    async def level_stats(self, db: AsyncSession, ib_user_id: str) -> list[LevelStat]:
        result = await db.execute(
            select(
                _commissions.c.level,
                func.count().label("trades"),
                func.coalesce(func.sum(_commissions.c.amount), 0).label("amount"),
            )
            .where(_commissions.c.ib_user_id == ib_user_id)
            .where(_commissions.c.status == CommissionStatus.CREDITED.value)
            .group_by(_commissions.c.level)
            .order_by(_commissions.c.level)
        )
        return [
            LevelStat(level=row.level, trades=int(row.trades), amount=int(row.amount))
            for row in result.fetchall()
        ]

    # ------------------------------------------------------------------
    # Referral graph
    # ------------------------------------------------------------------

    async def list_referrals(
        self, db: AsyncSession, referrer_user_ids: list[str]
    ) -> list[Referral]:
        if not referrer_user_ids:
            return []
        result = await db.execute(_REFERRALS_SQL, {"referrer_ids": referrer_user_ids})
        return [
            Referral(
                user_id=row.user_id,
                username=row.username,
                email=row.email,
                referrer_user_id=row.referrer_user_id,
                status=row.status,
                joined_at=_opt_utc(row.created_at),
            )
            for row in result.fetchall()
        ]
