"""001: create users and ledger tables

Revision ID: 001
Revises:
Create Date: 2026-10-01
"""
from typing import Sequence, Union
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE OR REPLACE FUNCTION fn_update_timestamp()
        RETURNS TRIGGER AS $$
        BEGIN
            NEW.updated_at = NOW();
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql;
    """)

    op.execute("""
        CREATE TABLE users (
            id              VARCHAR(64)     PRIMARY KEY,
            username        VARCHAR(64)     NOT NULL,
            email           VARCHAR(255)    NOT NULL,
            password_hash   VARCHAR(255)    NOT NULL,
            role            VARCHAR(10)     NOT NULL DEFAULT 'USER',
            is_active       BOOLEAN         NOT NULL DEFAULT TRUE,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_users_username    UNIQUE (username),
            CONSTRAINT uq_users_email       UNIQUE (email),
            CONSTRAINT ck_users_role        CHECK (role IN ('USER', 'ADMIN'))
        );
    """)

    op.execute("""
        CREATE TABLE wallets (
            user_id             VARCHAR(64) PRIMARY KEY,
            balance             BIGINT      NOT NULL DEFAULT 0,
            pending_withdrawal  BIGINT      NOT NULL DEFAULT 0,
            version             BIGINT      NOT NULL DEFAULT 0,
            created_at          TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_wallets_balance_gte_0 CHECK (balance >= 0),
            CONSTRAINT ck_wallets_pending_gte_0 CHECK (pending_withdrawal >= 0)
        );
    """)

    op.execute("""
        CREATE TABLE trading_accounts (
            id              VARCHAR(64) PRIMARY KEY,
            user_id         VARCHAR(64) NOT NULL,
            account_type    VARCHAR(10) NOT NULL,
            balance         BIGINT      NOT NULL DEFAULT 0,
            credit          BIGINT      NOT NULL DEFAULT 0,
            leverage        INTEGER     NOT NULL,
            status          VARCHAR(10) NOT NULL,
            version         BIGINT      NOT NULL DEFAULT 0,
            created_at      TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_trading_accounts_balance_gte_0 CHECK (balance >= 0),
            CONSTRAINT ck_trading_accounts_credit_gte_0  CHECK (credit >= 0),
            CONSTRAINT ck_trading_accounts_type   CHECK (account_type IN ('LIVE', 'DEMO')),
            CONSTRAINT ck_trading_accounts_status CHECK (status IN ('ACTIVE', 'ARCHIVED'))
        );
    """)
    op.execute("CREATE INDEX idx_trading_accounts_user ON trading_accounts (user_id);")

    # Append-only apart from the PENDING -> APPROVED/REJECTED decision
    op.execute("""
        CREATE TABLE transactions (
            id              BIGINT       PRIMARY KEY,
            user_id         VARCHAR(64)  NOT NULL,
            from_entity     VARCHAR(80)  NOT NULL,
            to_entity       VARCHAR(80)  NOT NULL,
            amount          BIGINT       NOT NULL,
            tx_type         VARCHAR(30)  NOT NULL,
            status          VARCHAR(10)  NOT NULL,
            reference       VARCHAR(128),
            description     VARCHAR(500),
            payout_details  JSONB,
            created_at      TIMESTAMPTZ  NOT NULL,
            decided_at      TIMESTAMPTZ,
            CONSTRAINT ck_transactions_amount_gt_0 CHECK (amount > 0),
            CONSTRAINT ck_transactions_status CHECK (status IN ('PENDING', 'APPROVED', 'REJECTED'))
        );
    """)
    op.execute("CREATE INDEX idx_transactions_user_id ON transactions (user_id, id DESC);")
    op.execute("CREATE INDEX idx_transactions_reference ON transactions (tx_type, reference);")
    op.execute("""
        CREATE INDEX idx_transactions_pending ON transactions (user_id)
            WHERE status = 'PENDING';
    """)

    for table in ("users", "wallets", "trading_accounts"):
        op.execute(f"""
            CREATE TRIGGER trg_{table}_updated_at
                BEFORE UPDATE ON {table}
                FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
        """)
    op.execute("COMMENT ON TABLE wallets IS 'Main wallet per user; all amounts in cents';")
    op.execute("COMMENT ON TABLE transactions IS 'Money movement log; amounts in cents';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS transactions CASCADE;")
    op.execute("DROP TABLE IF EXISTS trading_accounts CASCADE;")
    op.execute("DROP TABLE IF EXISTS wallets CASCADE;")
    op.execute("DROP TABLE IF EXISTS users CASCADE;")
    op.execute("DROP FUNCTION IF EXISTS fn_update_timestamp();")
