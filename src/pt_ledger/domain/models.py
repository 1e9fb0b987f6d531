"""Domain models for pt_ledger: pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from src.pt_common.enums import AccountStatus, AccountType, TransactionStatus, TransactionType


@dataclass
class Wallet:
    user_id: str
    balance: int              # cents, spendable
    pending_withdrawal: int   # cents, escrowed for pending external withdrawals
    version: int
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class TradingAccount:
    id: str
    user_id: str
    account_type: str        # AccountType value
    balance: int             # cents
    credit: int              # cents, non-withdrawable bonus
    leverage: int
    status: str              # AccountStatus value
    version: int
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def equity(self) -> int:
        return self.balance + self.credit

    @property
    def is_live(self) -> bool:
        return self.account_type == AccountType.LIVE

    @property
    def is_active(self) -> bool:
        return self.status == AccountStatus.ACTIVE


@dataclass
class Transaction:
    id: int
    user_id: str
    from_entity: str
    to_entity: str
    amount: int              # cents, always positive; direction is from -> to
    tx_type: str             # TransactionType value
    status: str              # TransactionStatus value
    reference: str | None = None
    description: str | None = None
    payout_details: dict[str, Any] | None = None
    created_at: datetime | None = None
    decided_at: datetime | None = None


@dataclass(frozen=True)
class EntityRef:
    """Identifier of a ledger endpoint, serialized as '<kind>:<id>'.

    Kinds without an id (external, market, commission_pool) sit outside the
    conserved total; every flow to or from them is an external flow.
    """

    kind: str
    entity_id: str | None = None

    WALLET = "wallet"
    ACCOUNT = "account"
    ESCROW = "escrow"
    CHALLENGE = "challenge"
    IB = "ib"
    EXTERNAL = "external"
    MARKET = "market"
    COMMISSION_POOL = "commission_pool"

    def __str__(self) -> str:
        if self.entity_id is None:
            return self.kind
        return f"{self.kind}:{self.entity_id}"

    @classmethod
    def wallet(cls, user_id: str) -> "EntityRef":
        return cls(cls.WALLET, user_id)

    @classmethod
    def account(cls, account_id: str) -> "EntityRef":
        return cls(cls.ACCOUNT, account_id)

    @classmethod
    def escrow(cls, user_id: str) -> "EntityRef":
        return cls(cls.ESCROW, user_id)

    @classmethod
    def external(cls) -> "EntityRef":
        return cls(cls.EXTERNAL)


@dataclass
class NewTransaction:
    """A transaction about to be appended; the store assigns id and timestamps."""

    user_id: str
    from_entity: EntityRef
    to_entity: EntityRef
    amount: int
    tx_type: str
    status: str = TransactionStatus.APPROVED
    reference: str | None = None
    description: str | None = None
    payout_details: dict[str, Any] | None = None

    def __post_init__(self) -> None:
        # Store plain enum values, whether callers pass members or strings
        self.tx_type = TransactionType(self.tx_type).value
        self.status = TransactionStatus(self.status).value
        if self.amount <= 0:
            raise ValueError(f"Transaction amount must be positive, got {self.amount}")
