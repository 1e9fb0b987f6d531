"""CommissionApplicationService: IB programme lifecycle, reporting and payouts."""

import logging
import secrets
import string

from sqlalchemy.ext.asyncio import AsyncSession

from src.pt_commission.application.schemas import (
    CommissionItem,
    CommissionListResponse,
    DownlineNodeResponse,
    DownlineResponse,
    IBProfileResponse,
    IBStatusResponse,
    IBWithdrawResponse,
    ReferralItem,
)
from src.pt_commission.domain.engine import ib_ref
from src.pt_commission.domain.models import DownlineNode, IBProfile
from src.pt_commission.domain.repository import CommissionRepositoryProtocol
from src.pt_commission.domain.tiers import MAX_LEVELS, TIERS, upgraded_tier
from src.pt_commission.infrastructure.persistence import CommissionRepository
from src.pt_common.database import unit_of_work
from src.pt_common.enums import IBStatus, TransactionType
from src.pt_common.errors import (
    EntityNotFoundError,
    InvalidReferralCodeError,
    InvalidStateError,
)
from src.pt_common.locks import EntityLockManager, entity_locks
from src.pt_ledger.application.schemas import cursor_decode, cursor_encode
from src.pt_ledger.domain.models import EntityRef, NewTransaction
from src.pt_ledger.domain.repository import LedgerRepositoryProtocol
from src.pt_ledger.infrastructure.persistence import LedgerRepository

logger = logging.getLogger(__name__)

_CODE_ALPHABET = string.ascii_uppercase + string.digits
_CODE_LENGTH = 8


def new_referral_code() -> str:
    return "".join(secrets.choice(_CODE_ALPHABET) for _ in range(_CODE_LENGTH))


class CommissionApplicationService:
    def __init__(
        self,
        repo: CommissionRepositoryProtocol | None = None,
        ledger: LedgerRepositoryProtocol | None = None,
        locks: EntityLockManager | None = None,
    ) -> None:
        self._repo: CommissionRepositoryProtocol = repo or CommissionRepository()
        self._ledger: LedgerRepositoryProtocol = ledger or LedgerRepository()
        self._locks = locks or entity_locks

    async def _profile(self, db: AsyncSession, user_id: str) -> IBProfile:
        profile = await self._repo.get_profile(db, user_id)
        if profile is None:
            raise EntityNotFoundError("IB profile", user_id)
        return profile

    # ------------------------------------------------------------------
    # Registration hook
    # ------------------------------------------------------------------

    async def create_profile(
        self, db: AsyncSession, user_id: str, referral_code: str | None
    ) -> IBProfile:
        """Create the user's profile and attach it under its referrer.

        Runs inside the caller's unit of work (user registration).
        """
        referrer: IBProfile | None = None
        if referral_code:
            referrer = await self._repo.get_profile_by_code(db, referral_code.upper())
            if referrer is None:
                raise InvalidReferralCodeError(referral_code)

        profile = await self._repo.create_profile(
            db,
            IBProfile(
                user_id=user_id,
                referral_code=new_referral_code(),
                referrer_user_id=referrer.user_id if referrer else None,
                status=IBStatus.NONE.value,
                tier=TIERS[0].name,
                direct_referral_count=0,
                commission_balance=0,
                total_earned=0,
                total_withdrawn=0,
            ),
        )
        if referrer is not None:
            updated = await self._repo.add_direct_referral(db, referrer.user_id)
            tier = upgraded_tier(updated.tier, updated.direct_referral_count)
            if tier.name != updated.tier:
                await self._repo.set_tier(db, referrer.user_id, tier.name)
                logger.info(
                    "IB %s upgraded %s -> %s (%d direct referrals)",
                    referrer.user_id, updated.tier, tier.name, updated.direct_referral_count,
                )
        return profile

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def _transition(
        self, db: AsyncSession, user_id: str, allowed_from: list[IBStatus], target: IBStatus
    ) -> IBStatusResponse:
        async with unit_of_work(db):
            updated = await self._repo.transition_status(
                db, user_id, [s.value for s in allowed_from], target.value
            )
            if updated is None:
                current = await self._profile(db, user_id)
                raise InvalidStateError(f"IB profile {user_id} is {current.status}")
        logger.info("IB profile %s -> %s", user_id, target.value)
        return IBStatusResponse(user_id=user_id, status=updated.status)

    async def apply(self, db: AsyncSession, user_id: str) -> IBStatusResponse:
        return await self._transition(db, user_id, [IBStatus.NONE], IBStatus.PENDING)

    async def approve(self, db: AsyncSession, user_id: str) -> IBStatusResponse:
        return await self._transition(
            db, user_id, [IBStatus.PENDING, IBStatus.SUSPENDED], IBStatus.ACTIVE
        )

    async def suspend(self, db: AsyncSession, user_id: str) -> IBStatusResponse:
        return await self._transition(
            db, user_id, [IBStatus.PENDING, IBStatus.ACTIVE], IBStatus.SUSPENDED
        )

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    async def get_profile(self, db: AsyncSession, user_id: str) -> IBProfileResponse:
        profile = await self._profile(db, user_id)
        stats = await self._repo.level_stats(db, user_id)
        return IBProfileResponse.build(profile, stats)

    async def list_referrals(self, db: AsyncSession, user_id: str) -> list[ReferralItem]:
        await self._profile(db, user_id)
        referrals = await self._repo.list_referrals(db, [user_id])
        return [ReferralItem.from_referral(r) for r in referrals]

    async def get_downline(self, db: AsyncSession, user_id: str) -> DownlineResponse:
        """Referral tree below `user_id`, MAX_LEVELS deep, built level by level."""
        await self._profile(db, user_id)
        roots: list[DownlineNode] = []
        parents: dict[str, list[DownlineNode]] = {user_id: roots}
        total = 0
        for level in range(1, MAX_LEVELS + 1):
            referrals = await self._repo.list_referrals(db, list(parents))
            if not referrals:
                break
            next_parents: dict[str, list[DownlineNode]] = {}
            for referral in referrals:
                node = DownlineNode(
                    user_id=referral.user_id,
                    username=referral.username,
                    is_ib=referral.status == IBStatus.ACTIVE,
                    level=level,
                    joined_at=referral.joined_at,
                    children=[],
                )
                parents[referral.referrer_user_id].append(node)
                next_parents[referral.user_id] = node.children
                total += 1
            parents = next_parents
        return DownlineResponse(
            total_members=total,
            tree=[DownlineNodeResponse.from_node(node) for node in roots],
        )

    async def list_commissions(
        self, db: AsyncSession, user_id: str, cursor: str | None, limit: int
    ) -> CommissionListResponse:
        rows = await self._repo.list_commissions(db, user_id, cursor_decode(cursor), limit + 1)
        has_more = len(rows) > limit
        page = rows[:limit]
        return CommissionListResponse(
            items=[CommissionItem.from_commission(c) for c in page],
            next_cursor=cursor_encode(page[-1].id) if has_more and page else None,
            has_more=has_more,
        )

    # ------------------------------------------------------------------
    # Payout
    # ------------------------------------------------------------------

    async def withdraw(self, db: AsyncSession, user_id: str, amount: int) -> IBWithdrawResponse:
        """Move commission balance into the user's main wallet."""
        source = ib_ref(user_id)
        wallet_ref = EntityRef.wallet(user_id)
        async with self._locks.acquire(str(source), str(wallet_ref)):
            async with unit_of_work(db):
                await self._ledger.lock_wallets(db, [user_id])
                tx = await self._ledger.append_transaction(
                    db,
                    NewTransaction(
                        user_id=user_id,
                        from_entity=source,
                        to_entity=wallet_ref,
                        amount=amount,
                        tx_type=TransactionType.COMMISSION_PAYOUT,
                        description="IB commission withdrawal",
                    ),
                )
                profile = await self._repo.debit_commission(db, user_id, amount)
                wallet = await self._ledger.apply_wallet_delta(db, user_id, amount)
        logger.info("IB payout %d: %s withdrew %d cents to wallet", tx.id, user_id, amount)
        return IBWithdrawResponse(
            transaction_id=tx.id,
            commission_balance_cents=profile.commission_balance,
            wallet_balance_cents=wallet.balance,
        )
