"""Repository Protocol: dependency inversion for testability.

Unit tests inject a mock that conforms to this Protocol.
Infrastructure layer provides the real implementation.
"""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.pt_ledger.domain.models import (
    EntityRef,
    NewTransaction,
    TradingAccount,
    Transaction,
    Wallet,
)


class LedgerRepositoryProtocol(Protocol):
    # --- wallets ---

    async def create_wallet(self, db: AsyncSession, user_id: str) -> Wallet: ...

    async def get_wallet(self, db: AsyncSession, user_id: str) -> Wallet | None: ...

    async def lock_wallets(
        self, db: AsyncSession, user_ids: list[str]
    ) -> dict[str, Wallet]: ...

    async def apply_wallet_delta(
        self, db: AsyncSession, user_id: str, delta: int
    ) -> Wallet: ...

    async def move_to_escrow(
        self, db: AsyncSession, user_id: str, amount: int
    ) -> Wallet: ...

    async def release_escrow(
        self, db: AsyncSession, user_id: str, amount: int, refund: bool
    ) -> Wallet: ...

    # --- trading accounts ---

    async def create_account(
        self, db: AsyncSession, account: TradingAccount
    ) -> TradingAccount: ...

    async def get_account(
        self, db: AsyncSession, account_id: str
    ) -> TradingAccount | None: ...

    async def list_accounts(
        self, db: AsyncSession, user_id: str
    ) -> list[TradingAccount]: ...

    async def lock_accounts(
        self, db: AsyncSession, account_ids: list[str]
    ) -> dict[str, TradingAccount]: ...

    async def apply_account_delta(
        self, db: AsyncSession, account_id: str, delta: int
    ) -> TradingAccount: ...

    async def archive_account(
        self, db: AsyncSession, account_id: str
    ) -> TradingAccount: ...

    async def delete_account(self, db: AsyncSession, account_id: str) -> None: ...

    async def has_history(self, db: AsyncSession, entity: EntityRef) -> bool: ...

    # --- generic ---

    async def apply_balance_delta(
        self, db: AsyncSession, entity: EntityRef, delta: int
    ) -> int: ...

    # --- transactions ---

    async def append_transaction(
        self, db: AsyncSession, tx: NewTransaction
    ) -> Transaction: ...

    async def get_transaction(
        self, db: AsyncSession, tx_id: int, for_update: bool = False
    ) -> Transaction | None: ...

    async def decide_transaction(
        self, db: AsyncSession, tx_id: int, status: str
    ) -> Transaction | None: ...

    async def find_by_reference(
        self, db: AsyncSession, tx_type: str, reference: str
    ) -> Transaction | None: ...

    async def list_transactions(
        self,
        db: AsyncSession,
        user_id: str,
        cursor_id: int | None,
        limit: int,
        tx_type: str | None,
    ) -> list[Transaction]: ...
