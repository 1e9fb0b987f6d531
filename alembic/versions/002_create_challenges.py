"""002: create challenge catalogue and challenge accounts

Revision ID: 002
Revises: 001
Create Date: 2026-10-01
"""
from typing import Sequence, Union
from alembic import op

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE challenges (
            id                          VARCHAR(64)  PRIMARY KEY,
            name                        VARCHAR(128) NOT NULL,
            fund_size                   BIGINT       NOT NULL,
            fee                         BIGINT       NOT NULL,
            steps_count                 INTEGER      NOT NULL,
            max_daily_drawdown_bps      INTEGER      NOT NULL,
            max_overall_drawdown_bps    INTEGER      NOT NULL,
            profit_target_bps           JSONB        NOT NULL,
            min_trading_days            INTEGER      NOT NULL DEFAULT 0,
            expiry_days                 INTEGER      NOT NULL,
            is_active                   BOOLEAN      NOT NULL DEFAULT TRUE,
            version                     BIGINT       NOT NULL DEFAULT 0,
            created_at                  TIMESTAMPTZ  NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_challenges_fund_size_gt_0 CHECK (fund_size > 0),
            CONSTRAINT ck_challenges_fee_gte_0      CHECK (fee >= 0),
            CONSTRAINT ck_challenges_steps_gte_1    CHECK (steps_count >= 1)
        );
    """)

    op.execute("""
        CREATE TABLE challenge_accounts (
            id                  VARCHAR(64) PRIMARY KEY,
            user_id             VARCHAR(64) NOT NULL,
            challenge_id        VARCHAR(64) NOT NULL REFERENCES challenges (id),
            starting_balance    BIGINT      NOT NULL,
            current_balance     BIGINT      NOT NULL,
            current_equity      BIGINT      NOT NULL,
            high_water_mark     BIGINT      NOT NULL,
            daily_start_equity  BIGINT      NOT NULL,
            daily_start_date    DATE        NOT NULL,
            current_step        INTEGER     NOT NULL DEFAULT 1,
            trading_days        INTEGER     NOT NULL DEFAULT 0,
            last_trade_date     DATE,
            status              VARCHAR(10) NOT NULL,
            fail_reason         VARCHAR(20),
            started_at          TIMESTAMPTZ NOT NULL,
            version             BIGINT      NOT NULL DEFAULT 0,
            updated_at          TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_challenge_accounts_balance_gte_0 CHECK (current_balance >= 0),
            CONSTRAINT ck_challenge_accounts_equity_gte_0  CHECK (current_equity >= 0),
            CONSTRAINT ck_challenge_accounts_step_gte_1    CHECK (current_step >= 1),
            CONSTRAINT ck_challenge_accounts_status CHECK (
                status IN ('ACTIVE', 'PASSED', 'FAILED', 'FUNDED', 'ARCHIVED')
            )
        );
    """)
    op.execute("CREATE INDEX idx_challenge_accounts_user ON challenge_accounts (user_id);")
    op.execute("CREATE INDEX idx_challenge_accounts_status ON challenge_accounts (status);")
    op.execute("""
        CREATE TRIGGER trg_challenge_accounts_updated_at
            BEFORE UPDATE ON challenge_accounts
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS challenge_accounts CASCADE;")
    op.execute("DROP TABLE IF EXISTS challenges CASCADE;")
