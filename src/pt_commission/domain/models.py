"""Domain models for pt_commission: pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime

from src.pt_common.enums import IBStatus


@dataclass
class IBProfile:
    user_id: str
    referral_code: str
    referrer_user_id: str | None
    status: str                    # IBStatus value
    tier: str                      # CommissionTier name
    direct_referral_count: int
    commission_balance: int        # cents, withdrawable into the main wallet
    total_earned: int
    total_withdrawn: int
    version: int = 0
    applied_at: datetime | None = None
    approved_at: datetime | None = None
    created_at: datetime | None = None

    @property
    def is_active_ib(self) -> bool:
        return self.status == IBStatus.ACTIVE


@dataclass
class Commission:
    id: int
    ib_user_id: str
    trader_user_id: str
    source_account_id: str
    trade_id: str
    symbol: str
    level: int
    lots_x100: int
    rate_cents_per_lot: int
    amount: int
    status: str                    # CommissionStatus value
    created_at: datetime | None = None


@dataclass(frozen=True)
class ClosedTrade:
    """A closing trade reported by the trade server."""

    trade_id: str
    trader_user_id: str
    source_account_id: str
    symbol: str
    lots_x100: int


@dataclass
class LevelStat:
    level: int
    trades: int
    amount: int


@dataclass
class DownlineNode:
    user_id: str
    username: str
    is_ib: bool
    level: int
    joined_at: datetime | None
    children: list["DownlineNode"]


@dataclass
class Referral:
    user_id: str
    username: str
    email: str
    referrer_user_id: str
    status: str
    joined_at: datetime | None
