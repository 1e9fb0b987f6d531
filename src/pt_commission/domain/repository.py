"""Repository Protocol for IB profiles and commission records."""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.pt_commission.domain.models import Commission, IBProfile, LevelStat, Referral


class CommissionRepositoryProtocol(Protocol):
    # --- IB profiles ---

    async def create_profile(self, db: AsyncSession, profile: IBProfile) -> IBProfile: ...

    async def get_profile(self, db: AsyncSession, user_id: str) -> IBProfile | None: ...

    async def get_profile_by_code(
        self, db: AsyncSession, referral_code: str
    ) -> IBProfile | None: ...

    async def transition_status(
        self, db: AsyncSession, user_id: str, allowed_from: list[str], status: str
    ) -> IBProfile | None:
        """Conditional status change; None when the current status is not in allowed_from."""
        ...

    async def add_direct_referral(self, db: AsyncSession, user_id: str) -> IBProfile: ...

    async def set_tier(self, db: AsyncSession, user_id: str, tier: str) -> IBProfile: ...

    async def credit_commission(
        self, db: AsyncSession, user_id: str, amount: int
    ) -> IBProfile | None:
        """Credit an ACTIVE IB; None when the IB is not ACTIVE."""
        ...

    async def debit_commission(
        self, db: AsyncSession, user_id: str, amount: int
    ) -> IBProfile: ...

    # --- commissions ---

    async def insert_commission(self, db: AsyncSession, commission: Commission) -> Commission: ...

    async def list_for_trade(self, db: AsyncSession, trade_id: str) -> list[Commission]: ...

    async def list_commissions(
        self, db: AsyncSession, ib_user_id: str, cursor_id: int | None, limit: int
    ) -> list[Commission]: ...

    async def level_stats(self, db: AsyncSession, ib_user_id: str) -> list[LevelStat]: ...

    # --- referral graph ---

    async def list_referrals(
        self, db: AsyncSession, referrer_user_ids: list[str]
    ) -> list[Referral]: ...
