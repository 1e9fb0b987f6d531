"""SQLAlchemy ORM models for pt_challenge.

These map to tables created by Alembic migrations.
DO NOT add/remove columns here without a corresponding migration.
"""

from datetime import date, datetime

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Integer,
    String,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from src.pt_common.database import Base


class ChallengeORM(Base):
    __tablename__ = "challenges"
    __table_args__ = (
        CheckConstraint("fund_size > 0", name="ck_challenges_fund_size_gt_0"),
        CheckConstraint("fee >= 0", name="ck_challenges_fee_gte_0"),
        CheckConstraint("steps_count >= 1", name="ck_challenges_steps_gte_1"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    fund_size: Mapped[int] = mapped_column(BigInteger, nullable=False)
    fee: Mapped[int] = mapped_column(BigInteger, nullable=False)
    steps_count: Mapped[int] = mapped_column(Integer, nullable=False)
    max_daily_drawdown_bps: Mapped[int] = mapped_column(Integer, nullable=False)
    max_overall_drawdown_bps: Mapped[int] = mapped_column(Integer, nullable=False)
    profit_target_bps: Mapped[list[int]] = mapped_column(JSON, nullable=False)
    min_trading_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    expiry_days: Mapped[int] = mapped_column(Integer, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    version: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


class ChallengeAccountORM(Base):
    __tablename__ = "challenge_accounts"
    __table_args__ = (
        CheckConstraint("current_balance >= 0", name="ck_challenge_accounts_balance_gte_0"),
        CheckConstraint("current_equity >= 0", name="ck_challenge_accounts_equity_gte_0"),
        CheckConstraint("current_step >= 1", name="ck_challenge_accounts_step_gte_1"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    challenge_id: Mapped[str] = mapped_column(String(64), nullable=False)
    starting_balance: Mapped[int] = mapped_column(BigInteger, nullable=False)
    current_balance: Mapped[int] = mapped_column(BigInteger, nullable=False)
    current_equity: Mapped[int] = mapped_column(BigInteger, nullable=False)
    high_water_mark: Mapped[int] = mapped_column(BigInteger, nullable=False)
    daily_start_equity: Mapped[int] = mapped_column(BigInteger, nullable=False)
    daily_start_date: Mapped[date] = mapped_column(Date, nullable=False)
    current_step: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    trading_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_trade_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    status: Mapped[str] = mapped_column(String(10), nullable=False, index=True)
    fail_reason: Mapped[str | None] = mapped_column(String(20), nullable=True)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    version: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
