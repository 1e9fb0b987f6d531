"""Domain models for pt_challenge: pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass, field, replace
from datetime import date, datetime

from src.pt_common.enums import ChallengeStatus


@dataclass
class ChallengeTemplate:
    """A purchasable evaluation programme.

    profit_target_bps[i] is the target for step i+1, measured against the
    starting balance of that step.
    """

    id: str
    name: str
    fund_size: int                 # cents
    fee: int                       # cents
    steps_count: int
    max_daily_drawdown_bps: int
    max_overall_drawdown_bps: int
    profit_target_bps: list[int]
    min_trading_days: int
    expiry_days: int
    is_active: bool = True
    created_at: datetime | None = None

    def __post_init__(self) -> None:
        if self.steps_count < 1:
            raise ValueError("steps_count must be at least 1")
        if len(self.profit_target_bps) != self.steps_count:
            raise ValueError(
                f"expected {self.steps_count} profit targets, got {len(self.profit_target_bps)}"
            )
        if self.fund_size <= 0 or self.fee < 0:
            raise ValueError("fund_size must be positive and fee non-negative")
        for bps in (self.max_daily_drawdown_bps, self.max_overall_drawdown_bps, *self.profit_target_bps):
            if bps <= 0:
                raise ValueError("drawdown limits and profit targets must be positive")

    def target_for_step(self, step: int) -> int:
        return self.profit_target_bps[step - 1]


@dataclass
class ChallengeAccount:
    id: str
    user_id: str
    challenge_id: str
    starting_balance: int          # cents, reset at the start of every step
    current_balance: int
    current_equity: int
    high_water_mark: int
    daily_start_equity: int
    daily_start_date: date
    current_step: int
    trading_days: int
    status: str                    # ChallengeStatus value
    started_at: datetime
    last_trade_date: date | None = None
    fail_reason: str | None = None
    version: int = 0
    updated_at: datetime | None = None

    @classmethod
    def open(
        cls, account_id: str, user_id: str, template: ChallengeTemplate, now: datetime
    ) -> "ChallengeAccount":
        """A fresh ACTIVE(1) account with every equity field at the fund size."""
        return cls(
            id=account_id,
            user_id=user_id,
            challenge_id=template.id,
            starting_balance=template.fund_size,
            current_balance=template.fund_size,
            current_equity=template.fund_size,
            high_water_mark=template.fund_size,
            daily_start_equity=template.fund_size,
            daily_start_date=now.date(),
            current_step=1,
            trading_days=0,
            status=ChallengeStatus.ACTIVE.value,
            started_at=now,
        )

    def copy(self) -> "ChallengeAccount":
        return replace(self)

    @property
    def state_label(self) -> str:
        if self.status == ChallengeStatus.ACTIVE:
            return f"ACTIVE({self.current_step})"
        return self.status


@dataclass
class DrawdownSnapshot:
    """Current drawdown and progress figures, all in basis points (floored)."""

    daily_drawdown_bps: int
    overall_drawdown_bps: int
    profit_bps: int


@dataclass
class Evaluation:
    """Result of feeding one event to the evaluator."""

    account: ChallengeAccount
    initial_status: str = ""
    transitions: list[tuple[str, str]] = field(default_factory=list)
    expired: bool = False
    replayed: bool = False
    applied_pnl: int = 0     # balance change actually booked by a trade close

    def __post_init__(self) -> None:
        if not self.initial_status:
            self.initial_status = self.account.status

    @property
    def changed_state(self) -> bool:
        return bool(self.transitions)
