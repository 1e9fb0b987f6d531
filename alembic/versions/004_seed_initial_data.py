"""004: seed initial data

Revision ID: 004
Revises: 003
Create Date: 2026-10-01
"""

from typing import Sequence, Union

from alembic import op

revision: str = "004"
down_revision: Union[str, None] = "003"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Challenge fees land here
    op.execute("""
        INSERT INTO wallets (user_id, balance, pending_withdrawal, version)
        VALUES ('PLATFORM_REVENUE', 0, 0, 0);
    """)

    # Default two-step catalogue: 4% daily / 8% overall, targets 8% then 5%
    op.execute("""
        INSERT INTO challenges (
            id, name, fund_size, fee, steps_count,
            max_daily_drawdown_bps, max_overall_drawdown_bps, profit_target_bps,
            min_trading_days, expiry_days
        ) VALUES
            ('CH-10K-2STEP',  '$10,000 Two-Step',  1000000,  9900, 2, 400, 800, '[800, 500]', 5, 30),
            ('CH-50K-2STEP',  '$50,000 Two-Step',  5000000, 29900, 2, 400, 800, '[800, 500]', 5, 30),
            ('CH-100K-2STEP', '$100,000 Two-Step', 10000000, 49900, 2, 400, 800, '[800, 500]', 5, 30);
    """)


def downgrade() -> None:
    op.execute("DELETE FROM challenges WHERE id IN ('CH-10K-2STEP', 'CH-50K-2STEP', 'CH-100K-2STEP');")
    op.execute("DELETE FROM wallets WHERE user_id = 'PLATFORM_REVENUE';")
