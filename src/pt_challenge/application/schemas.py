"""Pydantic schemas for pt_challenge API."""

from pydantic import BaseModel, Field, model_validator

from src.pt_challenge.domain.evaluator import drawdown_snapshot
from src.pt_challenge.domain.models import ChallengeAccount, ChallengeTemplate
from src.pt_common.cents import bps_to_display, cents_to_display

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class BuyChallengeRequest(BaseModel):
    challenge_id: str = Field(..., min_length=1)


class CreateChallengeRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=128)
    fund_size_cents: int = Field(..., gt=0)
    fee_cents: int = Field(..., ge=0)
    steps_count: int = Field(..., ge=1, le=5)
    max_daily_drawdown_bps: int = Field(..., gt=0, le=10_000)
    max_overall_drawdown_bps: int = Field(..., gt=0, le=10_000)
    profit_target_bps: list[int] = Field(..., min_length=1)
    min_trading_days: int = Field(0, ge=0)
    expiry_days: int = Field(30, gt=0)

    @model_validator(mode="after")
    def targets_match_steps(self) -> "CreateChallengeRequest":
        if len(self.profit_target_bps) != self.steps_count:
            raise ValueError("profit_target_bps must have one entry per step")
        if any(bps <= 0 for bps in self.profit_target_bps):
            raise ValueError("profit targets must be positive")
        return self


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class ChallengeTemplateResponse(BaseModel):
    challenge_id: str
    name: str
    fund_size_cents: int
    fund_size_display: str
    fee_cents: int
    fee_display: str
    steps_count: int
    max_daily_drawdown_bps: int
    max_overall_drawdown_bps: int
    profit_target_bps: list[int]
    min_trading_days: int
    expiry_days: int
    is_active: bool

    @classmethod
    def from_template(cls, template: ChallengeTemplate) -> "ChallengeTemplateResponse":
        return cls(
            challenge_id=template.id,
            name=template.name,
            fund_size_cents=template.fund_size,
            fund_size_display=cents_to_display(template.fund_size),
            fee_cents=template.fee,
            fee_display=cents_to_display(template.fee),
            steps_count=template.steps_count,
            max_daily_drawdown_bps=template.max_daily_drawdown_bps,
            max_overall_drawdown_bps=template.max_overall_drawdown_bps,
            profit_target_bps=template.profit_target_bps,
            min_trading_days=template.min_trading_days,
            expiry_days=template.expiry_days,
            is_active=template.is_active,
        )


class ChallengeAccountResponse(BaseModel):
    challenge_account_id: str
    challenge_id: str
    status: str
    state: str
    fail_reason: str | None
    current_step: int
    steps_count: int
    starting_balance_cents: int
    current_balance_cents: int
    current_equity_cents: int
    current_equity_display: str
    high_water_mark_cents: int
    daily_start_equity_cents: int
    daily_drawdown_bps: int
    daily_drawdown_display: str
    overall_drawdown_bps: int
    overall_drawdown_display: str
    profit_bps: int
    profit_target_bps: int
    trading_days: int
    min_trading_days: int
    started_at: str
    version: int

    @classmethod
    def from_account(
        cls, account: ChallengeAccount, template: ChallengeTemplate
    ) -> "ChallengeAccountResponse":
        snapshot = drawdown_snapshot(account)
        return cls(
            challenge_account_id=account.id,
            challenge_id=account.challenge_id,
            status=account.status,
            state=account.state_label,
            fail_reason=account.fail_reason,
            current_step=account.current_step,
            steps_count=template.steps_count,
            starting_balance_cents=account.starting_balance,
            current_balance_cents=account.current_balance,
            current_equity_cents=account.current_equity,
            current_equity_display=cents_to_display(account.current_equity),
            high_water_mark_cents=account.high_water_mark,
            daily_start_equity_cents=account.daily_start_equity,
            daily_drawdown_bps=snapshot.daily_drawdown_bps,
            daily_drawdown_display=bps_to_display(snapshot.daily_drawdown_bps),
            overall_drawdown_bps=snapshot.overall_drawdown_bps,
            overall_drawdown_display=bps_to_display(snapshot.overall_drawdown_bps),
            profit_bps=snapshot.profit_bps,
            profit_target_bps=template.target_for_step(min(account.current_step, template.steps_count)),
            trading_days=account.trading_days,
            min_trading_days=template.min_trading_days,
            started_at=account.started_at.isoformat(),
            version=account.version,
        )


class PurchaseResponse(BaseModel):
    challenge_account: ChallengeAccountResponse
    transaction_id: int | None
    wallet_balance_cents: int


class RolloverSummary(BaseModel):
    processed: int
    failed: int
    expired: int
    errors: int
