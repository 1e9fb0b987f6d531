"""Pydantic schemas for pt_transfer API."""

from typing import Annotated, Literal

from pydantic import BaseModel, Field

from src.pt_common.cents import cents_to_display
from src.pt_common.enums import TransferDirection
from src.pt_ledger.domain.models import Transaction

# ---------------------------------------------------------------------------
# Payout methods (tagged union on "method")
# ---------------------------------------------------------------------------


class BankPayout(BaseModel):
    method: Literal["bank"] = "bank"
    bank_name: str = Field(..., min_length=1, max_length=128)
    account_number: str = Field(..., pattern=r"^[0-9]{6,20}$")
    ifsc_code: str = Field(..., pattern=r"^[A-Z]{4}0[A-Z0-9]{6}$")
    account_holder_name: str = Field(..., min_length=1, max_length=128)


class UpiPayout(BaseModel):
    method: Literal["upi"] = "upi"
    upi_id: str = Field(..., pattern=r"^[A-Za-z0-9._-]{2,256}@[a-zA-Z]{2,64}$")


class QrPayout(BaseModel):
    method: Literal["qr"] = "qr"
    qr_reference: str = Field(..., min_length=1, max_length=256)


PayoutMethod = Annotated[
    BankPayout | UpiPayout | QrPayout,
    Field(discriminator="method"),
]


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class TransferRequest(BaseModel):
    account_id: str = Field(..., min_length=1)
    amount_cents: int = Field(..., gt=0, description="Amount in cents, must be positive")
    direction: TransferDirection


class AccountToAccountRequest(BaseModel):
    from_account_id: str = Field(..., min_length=1)
    to_account_id: str = Field(..., min_length=1)
    amount_cents: int = Field(..., gt=0)


class WithdrawRequest(BaseModel):
    amount_cents: int = Field(..., gt=0)
    payout: PayoutMethod


class DepositRequest(BaseModel):
    amount_cents: int = Field(..., gt=0)
    method: Literal["bank", "upi", "qr"]
    reference: str = Field(..., min_length=1, max_length=128)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class TransferResponse(BaseModel):
    transaction_id: int
    new_wallet_balance_cents: int
    new_account_balance_cents: int


class AccountToAccountResponse(BaseModel):
    transaction_id: int
    from_account_balance_cents: int
    to_account_balance_cents: int


class PendingTransactionResponse(BaseModel):
    transaction_id: int
    tx_type: str
    status: str
    amount_cents: int
    amount_display: str
    created_at: str

    @classmethod
    def from_transaction(cls, tx: Transaction) -> "PendingTransactionResponse":
        return cls(
            transaction_id=tx.id,
            tx_type=tx.tx_type,
            status=tx.status,
            amount_cents=tx.amount,
            amount_display=cents_to_display(tx.amount),
            created_at=tx.created_at.isoformat() if tx.created_at else "",
        )


class DecisionResponse(BaseModel):
    transaction_id: int
    status: str
    replayed: bool
    user_id: str
    wallet_balance_cents: int
    pending_withdrawal_cents: int
