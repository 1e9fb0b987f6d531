"""SQLAlchemy ORM models for pt_commission.

These map to tables created by Alembic migrations.
DO NOT add/remove columns here without a corresponding migration.
"""

from datetime import datetime

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    Integer,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from src.pt_common.database import Base


class IBProfileORM(Base):
    __tablename__ = "ib_profiles"
    __table_args__ = (
        CheckConstraint("commission_balance >= 0", name="ck_ib_profiles_balance_gte_0"),
        CheckConstraint("direct_referral_count >= 0", name="ck_ib_profiles_referrals_gte_0"),
    )

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    referral_code: Mapped[str] = mapped_column(String(16), nullable=False, unique=True)
    referrer_user_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    status: Mapped[str] = mapped_column(String(10), nullable=False)
    tier: Mapped[str] = mapped_column(String(16), nullable=False)
    direct_referral_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    commission_balance: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    total_earned: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    total_withdrawn: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    version: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    applied_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


class CommissionORM(Base):
    __tablename__ = "commissions"
    __table_args__ = (
        UniqueConstraint("trade_id", "level", name="uq_commissions_trade_level"),
        CheckConstraint("level BETWEEN 1 AND 5", name="ck_commissions_level_range"),
        CheckConstraint("amount >= 0", name="ck_commissions_amount_gte_0"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    ib_user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    trader_user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    source_account_id: Mapped[str] = mapped_column(String(64), nullable=False)
    trade_id: Mapped[str] = mapped_column(String(64), nullable=False)
    symbol: Mapped[str] = mapped_column(String(20), nullable=False)
    level: Mapped[int] = mapped_column(Integer, nullable=False)
    lots_x100: Mapped[int] = mapped_column(BigInteger, nullable=False)
    rate_cents_per_lot: Mapped[int] = mapped_column(Integer, nullable=False)
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    status: Mapped[str] = mapped_column(String(10), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
