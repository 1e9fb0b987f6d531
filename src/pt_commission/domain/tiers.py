"""IB tier schedule and per-level commission rates.

A tier fixes the base rate in cents per standard lot; each referral level
receives a share of that base rate. Amounts are floored at every step, so
the sum paid across levels never exceeds the nominal schedule.

    level_rate = tier.rate_cents_per_lot * LEVEL_SHARE_BPS[level] // 10000
    commission = lots_x100 * level_rate // 100
"""

from dataclasses import dataclass

from src.pt_common.cents import BPS_PER_UNIT, apply_bps

MAX_LEVELS = 5

# Share of the tier's base rate paid at each referral depth
LEVEL_SHARE_BPS: dict[int, int] = {
    1: 10_000,
    2: 5_000,
    3: 2_500,
    4: 1_500,
    5: 1_000,
}


@dataclass(frozen=True)
class CommissionTier:
    name: str
    min_direct_referrals: int
    rate_cents_per_lot: int
    color: str


TIERS: tuple[CommissionTier, ...] = (
    CommissionTier("STANDARD", 0, 200, "#22c55e"),
    CommissionTier("SILVER", 10, 300, "#94a3b8"),
    CommissionTier("GOLD", 25, 400, "#eab308"),
    CommissionTier("PLATINUM", 50, 500, "#a855f7"),
)

_BY_NAME = {tier.name: tier for tier in TIERS}


def get_tier(name: str) -> CommissionTier:
    return _BY_NAME[name]


def tier_for(direct_referrals: int) -> CommissionTier:
    """Highest tier whose referral threshold is met."""
    eligible = [t for t in TIERS if direct_referrals >= t.min_direct_referrals]
    return eligible[-1]


def next_tier(tier: CommissionTier) -> CommissionTier | None:
    index = TIERS.index(tier)
    return TIERS[index + 1] if index + 1 < len(TIERS) else None


def upgraded_tier(current_name: str, direct_referrals: int) -> CommissionTier:
    """Tier after a referral count change; never lower than the current tier."""
    current = get_tier(current_name)
    earned = tier_for(direct_referrals)
    return earned if TIERS.index(earned) > TIERS.index(current) else current


def level_rate(tier: CommissionTier, level: int) -> int:
    """Cents per standard lot paid to an IB at referral depth `level`."""
    if level not in LEVEL_SHARE_BPS:
        raise ValueError(f"level must be 1..{MAX_LEVELS}, got {level}")
    return apply_bps(tier.rate_cents_per_lot, LEVEL_SHARE_BPS[level])


def commission_amount(lots_x100: int, tier: CommissionTier, level: int) -> int:
    return lots_x100 * level_rate(tier, level) // 100


@dataclass
class LevelProgress:
    current: CommissionTier
    next: CommissionTier | None
    referrals_needed: int
    progress_bps: int


def level_progress(tier_name: str, direct_referrals: int) -> LevelProgress:
    current = get_tier(tier_name)
    upcoming = next_tier(current)
    if upcoming is None:
        return LevelProgress(current, None, 0, BPS_PER_UNIT)
    span = upcoming.min_direct_referrals - current.min_direct_referrals
    done = max(0, direct_referrals - current.min_direct_referrals)
    return LevelProgress(
        current=current,
        next=upcoming,
        referrals_needed=max(0, upcoming.min_direct_referrals - direct_referrals),
        progress_bps=min(BPS_PER_UNIT, done * BPS_PER_UNIT // span),
    )
