"""LedgerApplicationService: wallet view, transaction history, trading accounts.

Read operations run without an explicit unit of work; every balance read is
a single-row SELECT, so a wallet's balance and escrow are always read from
the same committed row version.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.pt_common.database import unit_of_work
from src.pt_common.enums import AccountStatus, AccountType
from src.pt_common.errors import (
    EntityNotFoundError,
    InvalidLeverageError,
    InvalidStateError,
)
from src.pt_common.id_generator import generate_id
from src.pt_common.locks import EntityLockManager, entity_locks
from src.pt_ledger.application.schemas import (
    AccountListResponse,
    ArchiveAccountResponse,
    TradingAccountResponse,
    TransactionItem,
    TransactionListResponse,
    WalletResponse,
    cursor_decode,
    cursor_encode,
)
from src.pt_ledger.domain.models import EntityRef, TradingAccount, Wallet
from src.pt_ledger.domain.repository import LedgerRepositoryProtocol
from src.pt_ledger.infrastructure.persistence import LedgerRepository

logger = logging.getLogger(__name__)


class LedgerApplicationService:
    def __init__(
        self,
        repo: LedgerRepositoryProtocol | None = None,
        locks: EntityLockManager | None = None,
    ) -> None:
        self._repo: LedgerRepositoryProtocol = repo or LedgerRepository()
        self._locks = locks or entity_locks

    # --- store contract -------------------------------------------------

    async def load_wallet(self, db: AsyncSession, user_id: str) -> Wallet:
        wallet = await self._repo.get_wallet(db, user_id)
        if wallet is None:
            raise EntityNotFoundError("Wallet", user_id)
        return wallet

    async def load_owned_account(
        self, db: AsyncSession, user_id: str, account_id: str
    ) -> TradingAccount:
        """Fetch an account, hiding other users' accounts behind EntityNotFound."""
        account = await self._repo.get_account(db, account_id)
        if account is None or account.user_id != user_id:
            raise EntityNotFoundError("Trading account", account_id)
        return account

    # --- wallet ---------------------------------------------------------

    async def get_wallet(self, db: AsyncSession, user_id: str) -> WalletResponse:
        return WalletResponse.from_wallet(await self.load_wallet(db, user_id))

    async def list_transactions(
        self,
        db: AsyncSession,
        user_id: str,
        cursor: str | None,
        limit: int,
        tx_type: str | None,
    ) -> TransactionListResponse:
        cursor_id = cursor_decode(cursor)
        # Fetch limit+1 to detect has_more without a COUNT(*) query
        rows = await self._repo.list_transactions(db, user_id, cursor_id, limit + 1, tx_type)
        has_more = len(rows) > limit
        page = rows[:limit]
        next_cursor = cursor_encode(page[-1].id) if has_more and page else None
        return TransactionListResponse(
            items=[TransactionItem.from_transaction(tx) for tx in page],
            next_cursor=next_cursor,
            has_more=has_more,
        )

    # --- trading accounts -----------------------------------------------

    async def open_account(
        self,
        db: AsyncSession,
        user_id: str,
        account_type: AccountType,
        leverage: int,
    ) -> TradingAccountResponse:
        if leverage not in settings.ALLOWED_LEVERAGES:
            raise InvalidLeverageError(leverage, settings.ALLOWED_LEVERAGES)
        # Demo accounts carry virtual funds outside the conserved total
        opening_balance = (
            settings.DEMO_STARTING_BALANCE_CENTS if account_type == AccountType.DEMO else 0
        )
        async with unit_of_work(db):
            await self.load_wallet(db, user_id)
            account = await self._repo.create_account(
                db,
                TradingAccount(
                    id=generate_id(),
                    user_id=user_id,
                    account_type=AccountType(account_type).value,
                    balance=opening_balance,
                    credit=0,
                    leverage=leverage,
                    status=AccountStatus.ACTIVE.value,
                    version=0,
                ),
            )
        logger.info(
            "Opened %s account %s for user %s (1:%d)",
            account.account_type, account.id, user_id, leverage,
        )
        return TradingAccountResponse.from_account(account)

    async def list_accounts(self, db: AsyncSession, user_id: str) -> AccountListResponse:
        accounts = await self._repo.list_accounts(db, user_id)
        live, demo, archived = [], [], []
        for account in accounts:
            item = TradingAccountResponse.from_account(account)
            if not account.is_active:
                archived.append(item)
            elif account.is_live:
                live.append(item)
            else:
                demo.append(item)
        return AccountListResponse(live=live, demo=demo, archived=archived)

    async def get_account(
        self, db: AsyncSession, user_id: str, account_id: str
    ) -> TradingAccountResponse:
        account = await self.load_owned_account(db, user_id, account_id)
        return TradingAccountResponse.from_account(account)

    async def archive_account(
        self, db: AsyncSession, user_id: str, account_id: str
    ) -> ArchiveAccountResponse:
        """Archive an emptied account; one with no history at all is removed outright."""
        async with self._locks.acquire(str(EntityRef.account(account_id))):
            async with unit_of_work(db):
                account = (await self._repo.lock_accounts(db, [account_id]))[account_id]
                if account.user_id != user_id:
                    raise EntityNotFoundError("Trading account", account_id)
                if not account.is_active:
                    raise InvalidStateError(f"trading account {account_id} is {account.status}")
                if account.is_live and account.balance > 0:
                    raise InvalidStateError(
                        f"trading account {account_id} still holds {account.balance} cents"
                    )
                if await self._repo.has_history(db, EntityRef.account(account_id)):
                    await self._repo.archive_account(db, account_id)
                    deleted = False
                else:
                    await self._repo.delete_account(db, account_id)
                    deleted = True
        logger.info("Account %s %s", account_id, "deleted" if deleted else "archived")
        return ArchiveAccountResponse(account_id=account_id, archived=not deleted, deleted=deleted)
