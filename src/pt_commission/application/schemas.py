"""Pydantic schemas for pt_commission API."""

from pydantic import BaseModel, Field

from src.pt_commission.domain.models import (
    Commission,
    DownlineNode,
    IBProfile,
    LevelStat,
    Referral,
)
from src.pt_commission.domain.tiers import MAX_LEVELS, CommissionTier, get_tier, level_progress
from src.pt_common.cents import bps_to_display, cents_to_display
from src.pt_common.enums import IBStatus


class IBWithdrawRequest(BaseModel):
    amount_cents: int = Field(..., gt=0)


class TierInfo(BaseModel):
    name: str
    rate_cents_per_lot: int
    min_direct_referrals: int
    color: str

    @classmethod
    def from_tier(cls, tier: CommissionTier) -> "TierInfo":
        return cls(
            name=tier.name,
            rate_cents_per_lot=tier.rate_cents_per_lot,
            min_direct_referrals=tier.min_direct_referrals,
            color=tier.color,
        )


class LevelProgressResponse(BaseModel):
    current_level: TierInfo
    next_level: TierInfo | None
    referrals_needed: int
    progress_bps: int
    progress_display: str


class LevelStatItem(BaseModel):
    level: int
    trades: int
    commission_cents: int


class IBProfileResponse(BaseModel):
    user_id: str
    referral_code: str
    status: str
    tier: str
    direct_referral_count: int
    commission_balance_cents: int
    commission_balance_display: str
    total_earned_cents: int
    total_withdrawn_cents: int
    level_progress: LevelProgressResponse
    level_stats: list[LevelStatItem]

    @classmethod
    def build(cls, profile: IBProfile, stats: list[LevelStat]) -> "IBProfileResponse":
        progress = level_progress(profile.tier, profile.direct_referral_count)
        by_level = {s.level: s for s in stats}
        return cls(
            user_id=profile.user_id,
            referral_code=profile.referral_code,
            status=profile.status,
            tier=profile.tier,
            direct_referral_count=profile.direct_referral_count,
            commission_balance_cents=profile.commission_balance,
            commission_balance_display=cents_to_display(profile.commission_balance),
            total_earned_cents=profile.total_earned,
            total_withdrawn_cents=profile.total_withdrawn,
            level_progress=LevelProgressResponse(
                current_level=TierInfo.from_tier(get_tier(profile.tier)),
                next_level=TierInfo.from_tier(progress.next) if progress.next else None,
                referrals_needed=progress.referrals_needed,
                progress_bps=progress.progress_bps,
                progress_display=bps_to_display(progress.progress_bps),
            ),
            level_stats=[
                LevelStatItem(
                    level=level,
                    trades=by_level[level].trades if level in by_level else 0,
                    commission_cents=by_level[level].amount if level in by_level else 0,
                )
                for level in range(1, MAX_LEVELS + 1)
            ],
        )


class IBStatusResponse(BaseModel):
    user_id: str
    status: str


class ReferralItem(BaseModel):
    user_id: str
    username: str
    email: str
    is_ib: bool
    joined_at: str | None

    @classmethod
    def from_referral(cls, referral: Referral) -> "ReferralItem":
        return cls(
            user_id=referral.user_id,
            username=referral.username,
            email=referral.email,
            is_ib=referral.status == IBStatus.ACTIVE,
            joined_at=referral.joined_at.isoformat() if referral.joined_at else None,
        )


class DownlineNodeResponse(BaseModel):
    user_id: str
    username: str
    is_ib: bool
    level: int
    joined_at: str | None
    children: list["DownlineNodeResponse"]

    @classmethod
    def from_node(cls, node: DownlineNode) -> "DownlineNodeResponse":
        return cls(
            user_id=node.user_id,
            username=node.username,
            is_ib=node.is_ib,
            level=node.level,
            joined_at=node.joined_at.isoformat() if node.joined_at else None,
            children=[cls.from_node(child) for child in node.children],
        )


class DownlineResponse(BaseModel):
    total_members: int
    tree: list[DownlineNodeResponse]


class CommissionItem(BaseModel):
    id: int
    trade_id: str
    trader_user_id: str
    symbol: str
    level: int
    lots_x100: int
    rate_cents_per_lot: int
    amount_cents: int
    amount_display: str
    status: str
    created_at: str

    @classmethod
    def from_commission(cls, c: Commission) -> "CommissionItem":
        return cls(
            id=c.id,
            trade_id=c.trade_id,
            trader_user_id=c.trader_user_id,
            symbol=c.symbol,
            level=c.level,
            lots_x100=c.lots_x100,
            rate_cents_per_lot=c.rate_cents_per_lot,
            amount_cents=c.amount,
            amount_display=cents_to_display(c.amount),
            status=c.status,
            created_at=c.created_at.isoformat() if c.created_at else "",
        )


class CommissionListResponse(BaseModel):
    items: list[CommissionItem]
    next_cursor: str | None
    has_more: bool


class IBWithdrawResponse(BaseModel):
    transaction_id: int
    commission_balance_cents: int
    wallet_balance_cents: int
