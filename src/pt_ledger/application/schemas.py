"""Pydantic schemas and cursor utilities for pt_ledger API."""

import base64
import json
from typing import Any

from pydantic import BaseModel, Field

from src.pt_common.cents import cents_to_display
from src.pt_common.enums import AccountType
from src.pt_ledger.domain.models import TradingAccount, Transaction, Wallet

# ---------------------------------------------------------------------------
# Cursor-based pagination utilities
# ---------------------------------------------------------------------------


def cursor_encode(last_id: int) -> str:
    """Encode a BIGINT primary key into an opaque Base64 cursor string."""
    payload = json.dumps({"id": last_id})
    return base64.b64encode(payload.encode()).decode()


def cursor_decode(cursor: str | None) -> int | None:
    """Decode a cursor string back to the last seen id. Returns None on error."""
    if cursor is None:
        return None
    try:
        payload = json.loads(base64.b64decode(cursor.encode()).decode())
        return int(payload["id"])
    except (ValueError, KeyError, TypeError):
        return None


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class OpenAccountRequest(BaseModel):
    account_type: AccountType = AccountType.LIVE
    leverage: int = Field(100, gt=0, description="Leverage as 1:N")


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class WalletResponse(BaseModel):
    user_id: str
    balance_cents: int
    balance_display: str
    pending_withdrawal_cents: int
    pending_withdrawal_display: str

    @classmethod
    def from_wallet(cls, wallet: Wallet) -> "WalletResponse":
        return cls(
            user_id=wallet.user_id,
            balance_cents=wallet.balance,
            balance_display=cents_to_display(wallet.balance),
            pending_withdrawal_cents=wallet.pending_withdrawal,
            pending_withdrawal_display=cents_to_display(wallet.pending_withdrawal),
        )


class TradingAccountResponse(BaseModel):
    account_id: str
    account_type: str
    balance_cents: int
    balance_display: str
    credit_cents: int
    equity_cents: int
    equity_display: str
    leverage: str
    status: str
    created_at: str

    @classmethod
    def from_account(cls, account: TradingAccount) -> "TradingAccountResponse":
        return cls(
            account_id=account.id,
            account_type=account.account_type,
            balance_cents=account.balance,
            balance_display=cents_to_display(account.balance),
            credit_cents=account.credit,
            equity_cents=account.equity,
            equity_display=cents_to_display(account.equity),
            leverage=f"1:{account.leverage}",
            status=account.status,
            created_at=account.created_at.isoformat() if account.created_at else "",
        )


class AccountListResponse(BaseModel):
    live: list[TradingAccountResponse]
    demo: list[TradingAccountResponse]
    archived: list[TradingAccountResponse]


class ArchiveAccountResponse(BaseModel):
    account_id: str
    archived: bool
    deleted: bool


class TransactionItem(BaseModel):
    id: int
    tx_type: str
    status: str
    from_entity: str
    to_entity: str
    amount_cents: int
    amount_display: str
    reference: str | None
    description: str | None
    payout_details: dict[str, Any] | None
    created_at: str  # ISO8601 string
    decided_at: str | None

    @classmethod
    def from_transaction(cls, tx: Transaction) -> "TransactionItem":
        return cls(
            id=tx.id,
            tx_type=tx.tx_type,
            status=tx.status,
            from_entity=tx.from_entity,
            to_entity=tx.to_entity,
            amount_cents=tx.amount,
            amount_display=cents_to_display(tx.amount),
            reference=tx.reference,
            description=tx.description,
            payout_details=tx.payout_details,
            created_at=tx.created_at.isoformat() if tx.created_at else "",
            decided_at=tx.decided_at.isoformat() if tx.decided_at else None,
        )


class TransactionListResponse(BaseModel):
    items: list[TransactionItem]
    next_cursor: str | None
    has_more: bool
