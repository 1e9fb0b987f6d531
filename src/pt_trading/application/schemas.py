"""Pydantic schemas for trade-server event intake."""

from datetime import datetime

from pydantic import BaseModel, Field

from src.pt_commission.application.schemas import CommissionItem


class TradeCloseEvent(BaseModel):
    account_id: str = Field(..., min_length=1, description="Trading or challenge account id")
    trade_id: str = Field(..., min_length=1, max_length=64)
    symbol: str = Field(..., min_length=1, max_length=20)
    lots_x100: int = Field(..., ge=0, description="Closed volume in hundredths of a lot")
    pnl_cents: int
    closed_at: datetime | None = None


class EquitySnapshotEvent(BaseModel):
    account_id: str = Field(..., min_length=1, description="Challenge account id")
    equity_cents: int = Field(..., ge=0)
    at: datetime | None = None


class DailyRolloverEvent(BaseModel):
    at: datetime | None = None
    account_id: str | None = Field(None, description="Roll one challenge account; all when omitted")


class TradeCloseResponse(BaseModel):
    account_id: str
    account_kind: str            # LIVE | DEMO | CHALLENGE
    applied_pnl_cents: int
    balance_cents: int
    status: str
    replayed: bool
    commissions: list[CommissionItem]


class EquitySnapshotResponse(BaseModel):
    account_id: str
    status: str
    state: str
    fail_reason: str | None
    current_equity_cents: int
    high_water_mark_cents: int
