"""003: create IB profiles and commission records

Revision ID: 003
Revises: 002
Create Date: 2026-10-01
"""
from typing import Sequence, Union
from alembic import op

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE ib_profiles (
            user_id                 VARCHAR(64) PRIMARY KEY,
            referral_code           VARCHAR(16) NOT NULL,
            referrer_user_id        VARCHAR(64),
            status                  VARCHAR(10) NOT NULL,
            tier                    VARCHAR(16) NOT NULL,
            direct_referral_count   INTEGER     NOT NULL DEFAULT 0,
            commission_balance      BIGINT      NOT NULL DEFAULT 0,
            total_earned            BIGINT      NOT NULL DEFAULT 0,
            total_withdrawn         BIGINT      NOT NULL DEFAULT 0,
            version                 BIGINT      NOT NULL DEFAULT 0,
            applied_at              TIMESTAMPTZ,
            approved_at             TIMESTAMPTZ,
            created_at              TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at              TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_ib_profiles_referral_code  UNIQUE (referral_code),
            CONSTRAINT ck_ib_profiles_balance_gte_0  CHECK (commission_balance >= 0),
            CONSTRAINT ck_ib_profiles_referrals_gte_0 CHECK (direct_referral_count >= 0),
            CONSTRAINT ck_ib_profiles_status CHECK (
                status IN ('NONE', 'PENDING', 'ACTIVE', 'SUSPENDED')
            )
        );
    """)
    op.execute("CREATE INDEX idx_ib_profiles_referrer ON ib_profiles (referrer_user_id);")
    op.execute("""
        CREATE TRIGGER trg_ib_profiles_updated_at
            BEFORE UPDATE ON ib_profiles
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)

    # Append-only: one record per (trade, level)
    op.execute("""
        CREATE TABLE commissions (
            id                  BIGINT      PRIMARY KEY,
            ib_user_id          VARCHAR(64) NOT NULL,
            trader_user_id      VARCHAR(64) NOT NULL,
            source_account_id   VARCHAR(64) NOT NULL,
            trade_id            VARCHAR(64) NOT NULL,
            symbol              VARCHAR(20) NOT NULL,
            level               INTEGER     NOT NULL,
            lots_x100           BIGINT      NOT NULL,
            rate_cents_per_lot  INTEGER     NOT NULL,
            amount              BIGINT      NOT NULL,
            status              VARCHAR(10) NOT NULL,
            created_at          TIMESTAMPTZ NOT NULL,
            CONSTRAINT uq_commissions_trade_level UNIQUE (trade_id, level),
            CONSTRAINT ck_commissions_level_range CHECK (level BETWEEN 1 AND 5),
            CONSTRAINT ck_commissions_amount_gte_0 CHECK (amount >= 0),
            CONSTRAINT ck_commissions_status CHECK (status IN ('CREDITED', 'VOID'))
        );
    """)
    op.execute("CREATE INDEX idx_commissions_ib_user ON commissions (ib_user_id, id DESC);")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS commissions CASCADE;")
    op.execute("DROP TABLE IF EXISTS ib_profiles CASCADE;")
