"""Global enums: must match DB CHECK constraints exactly."""

from enum import Enum


class UserRole(str, Enum):
    USER = "USER"
    ADMIN = "ADMIN"


class AccountType(str, Enum):
    LIVE = "LIVE"
    DEMO = "DEMO"


class AccountStatus(str, Enum):
    ACTIVE = "ACTIVE"
    ARCHIVED = "ARCHIVED"


class ChallengeStatus(str, Enum):
    ACTIVE = "ACTIVE"
    PASSED = "PASSED"
    FAILED = "FAILED"
    FUNDED = "FUNDED"
    ARCHIVED = "ARCHIVED"


class FailReason(str, Enum):
    DAILY_DRAWDOWN = "DAILY_DRAWDOWN"
    OVERALL_DRAWDOWN = "OVERALL_DRAWDOWN"
    EXPIRED = "EXPIRED"


class TransactionType(str, Enum):
    # External flows (change the system-wide total)
    DEPOSIT = "DEPOSIT"
    WITHDRAWAL = "WITHDRAWAL"
    TRADE_PNL = "TRADE_PNL"
    COMMISSION = "COMMISSION"
    COMMISSION_PAYOUT = "COMMISSION_PAYOUT"
    # Internal flows (zero-sum)
    TRANSFER = "TRANSFER"
    CHALLENGE_PURCHASE = "CHALLENGE_PURCHASE"


class TransactionStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class TransferDirection(str, Enum):
    """Wallet-relative direction for wallet <-> trading account transfers."""
    DEPOSIT = "deposit"
    WITHDRAW = "withdraw"


class IBStatus(str, Enum):
    NONE = "NONE"
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"


class CommissionStatus(str, Enum):
    CREDITED = "CREDITED"
    VOID = "VOID"
