"""Transfer Engine result types."""

from dataclasses import dataclass

from src.pt_ledger.domain.models import Transaction, Wallet


@dataclass
class TransferResult:
    transaction_id: int
    wallet_balance: int | None
    from_account_balance: int | None = None
    to_account_balance: int | None = None


@dataclass
class DecisionResult:
    """Outcome of an admin decision on a PENDING external transaction."""

    transaction: Transaction
    wallet: Wallet
    replayed: bool   # True when the same decision had already been applied
