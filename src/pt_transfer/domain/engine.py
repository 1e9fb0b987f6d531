"""Transfer Engine: atomic fund movement between ledger entities.

Every operation is one unit of work:

  1. acquire in-process locks for every involved entity (sorted keys)
  2. SELECT ... FOR UPDATE the involved rows (wallets first, then accounts,
     each in primary-key order)
  3. validate against the locked snapshot
  4. append the Transaction row (write-ahead)
  5. apply the balance deltas with conditional UPDATE ... RETURNING

Any error in steps 2-5 rolls the whole unit back, so a debit without its
matching credit is never observable.

Zero-sum operations: wallet <-> account, account <-> account, wallet ->
escrow. External withdrawals leave the system only on approval; external
deposits enter it only on approval.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.pt_common.database import unit_of_work
from src.pt_common.enums import TransactionStatus, TransactionType
from src.pt_common.errors import (
    EntityNotFoundError,
    InsufficientFundsError,
    InvalidAmountError,
    InvalidStateError,
    InvalidTargetError,
)
from src.pt_common.locks import EntityLockManager, entity_locks
from src.pt_ledger.domain.models import (
    EntityRef,
    NewTransaction,
    TradingAccount,
    Transaction,
)
from src.pt_ledger.domain.repository import LedgerRepositoryProtocol
from src.pt_ledger.infrastructure.persistence import LedgerRepository
from src.pt_transfer.domain.models import DecisionResult, TransferResult

logger = logging.getLogger(__name__)


def _require_positive(amount: int) -> None:
    if amount <= 0:
        raise InvalidAmountError(f"amount must be positive, got {amount}")


def _check_endpoint(account: TradingAccount, user_id: str) -> None:
    if account.user_id != user_id:
        raise InvalidTargetError(f"account {account.id} does not belong to user {user_id}")
    if not account.is_live:
        raise InvalidTargetError(f"account {account.id} is a demo account")
    if not account.is_active:
        raise InvalidStateError(f"trading account {account.id} is {account.status}")


class TransferEngine:
    def __init__(
        self,
        repo: LedgerRepositoryProtocol | None = None,
        locks: EntityLockManager | None = None,
    ) -> None:
        self._repo: LedgerRepositoryProtocol = repo or LedgerRepository()
        self._locks = locks or entity_locks

    # ------------------------------------------------------------------
    # Wallet <-> trading account
    # ------------------------------------------------------------------

    async def deposit_to_account(
        self, db: AsyncSession, user_id: str, account_id: str, amount: int
    ) -> TransferResult:
        """Wallet -> trading account."""
        _require_positive(amount)
        wallet_ref = EntityRef.wallet(user_id)
        account_ref = EntityRef.account(account_id)
        async with self._locks.acquire(str(wallet_ref), str(account_ref)):
            async with unit_of_work(db):
                wallet = (await self._repo.lock_wallets(db, [user_id]))[user_id]
                account = (await self._repo.lock_accounts(db, [account_id]))[account_id]
                _check_endpoint(account, user_id)
                if wallet.balance < amount:
                    raise InsufficientFundsError(amount, wallet.balance)
                tx = await self._repo.append_transaction(
                    db,
                    NewTransaction(
                        user_id=user_id,
                        from_entity=wallet_ref,
                        to_entity=account_ref,
                        amount=amount,
                        tx_type=TransactionType.TRANSFER,
                        description="Wallet to trading account",
                    ),
                )
                wallet_balance = await self._repo.apply_balance_delta(db, wallet_ref, -amount)
                account_balance = await self._repo.apply_balance_delta(db, account_ref, amount)
        logger.info("Transfer %d: wallet:%s -> %s (%d)", tx.id, user_id, account_ref, amount)
        return TransferResult(
            transaction_id=tx.id,
            wallet_balance=wallet_balance,
            to_account_balance=account_balance,
        )

    async def withdraw_from_account(
        self, db: AsyncSession, user_id: str, account_id: str, amount: int
    ) -> TransferResult:
        """Trading account -> wallet."""
        _require_positive(amount)
        wallet_ref = EntityRef.wallet(user_id)
        account_ref = EntityRef.account(account_id)
        async with self._locks.acquire(str(wallet_ref), str(account_ref)):
            async with unit_of_work(db):
                await self._repo.lock_wallets(db, [user_id])
                account = (await self._repo.lock_accounts(db, [account_id]))[account_id]
                _check_endpoint(account, user_id)
                if account.balance < amount:
                    raise InsufficientFundsError(amount, account.balance)
                tx = await self._repo.append_transaction(
                    db,
                    NewTransaction(
                        user_id=user_id,
                        from_entity=account_ref,
                        to_entity=wallet_ref,
                        amount=amount,
                        tx_type=TransactionType.TRANSFER,
                        description="Trading account to wallet",
                    ),
                )
                account_balance = await self._repo.apply_balance_delta(db, account_ref, -amount)
                wallet_balance = await self._repo.apply_balance_delta(db, wallet_ref, amount)
        logger.info("Transfer %d: %s -> wallet:%s (%d)", tx.id, account_ref, user_id, amount)
        return TransferResult(
            transaction_id=tx.id,
            wallet_balance=wallet_balance,
            from_account_balance=account_balance,
        )

    # ------------------------------------------------------------------
    # Trading account <-> trading account
    # ------------------------------------------------------------------

    async def account_to_account_transfer(
        self,
        db: AsyncSession,
        user_id: str,
        from_account_id: str,
        to_account_id: str,
        amount: int,
    ) -> TransferResult:
        _require_positive(amount)
        if from_account_id == to_account_id:
            raise InvalidTargetError("source and destination accounts are the same")
        from_ref = EntityRef.account(from_account_id)
        to_ref = EntityRef.account(to_account_id)
        async with self._locks.acquire(str(from_ref), str(to_ref)):
            async with unit_of_work(db):
                accounts = await self._repo.lock_accounts(db, [from_account_id, to_account_id])
                source = accounts[from_account_id]
                target = accounts[to_account_id]
                _check_endpoint(source, user_id)
                _check_endpoint(target, user_id)
                if source.balance < amount:
                    raise InsufficientFundsError(amount, source.balance)
                tx = await self._repo.append_transaction(
                    db,
                    NewTransaction(
                        user_id=user_id,
                        from_entity=from_ref,
                        to_entity=to_ref,
                        amount=amount,
                        tx_type=TransactionType.TRANSFER,
                        description="Account to account",
                    ),
                )
                source_balance = await self._repo.apply_balance_delta(db, from_ref, -amount)
                target_balance = await self._repo.apply_balance_delta(db, to_ref, amount)
        logger.info("Transfer %d: %s -> %s (%d)", tx.id, from_ref, to_ref, amount)
        return TransferResult(
            transaction_id=tx.id,
            wallet_balance=None,
            from_account_balance=source_balance,
            to_account_balance=target_balance,
        )

    # ------------------------------------------------------------------
    # Wallet <-> external
    # ------------------------------------------------------------------

    async def request_external_withdrawal(
        self,
        db: AsyncSession,
        user_id: str,
        amount: int,
        payout_details: dict,
    ) -> Transaction:
        """Escrow `amount` and open a PENDING withdrawal awaiting admin approval."""
        _require_positive(amount)
        if amount < settings.MIN_WITHDRAWAL_CENTS:
            raise InvalidAmountError(
                f"minimum withdrawal is {settings.MIN_WITHDRAWAL_CENTS} cents"
            )
        wallet_ref = EntityRef.wallet(user_id)
        async with self._locks.acquire(str(wallet_ref)):
            async with unit_of_work(db):
                wallet = (await self._repo.lock_wallets(db, [user_id]))[user_id]
                if wallet.balance < amount:
                    raise InsufficientFundsError(amount, wallet.balance)
                tx = await self._repo.append_transaction(
                    db,
                    NewTransaction(
                        user_id=user_id,
                        from_entity=wallet_ref,
                        to_entity=EntityRef.external(),
                        amount=amount,
                        tx_type=TransactionType.WITHDRAWAL,
                        status=TransactionStatus.PENDING,
                        description=f"Withdrawal via {payout_details.get('method', 'unknown')}",
                        payout_details=payout_details,
                    ),
                )
                await self._repo.move_to_escrow(db, user_id, amount)
        logger.info("Withdrawal %d requested: user=%s amount=%d", tx.id, user_id, amount)
        return tx

    async def request_external_deposit(
        self,
        db: AsyncSession,
        user_id: str,
        amount: int,
        method: str,
        reference: str,
    ) -> Transaction:
        """Record a PENDING deposit; funds arrive in the wallet only on approval."""
        _require_positive(amount)
        async with unit_of_work(db):
            if await self._repo.get_wallet(db, user_id) is None:
                raise EntityNotFoundError("Wallet", user_id)
            tx = await self._repo.append_transaction(
                db,
                NewTransaction(
                    user_id=user_id,
                    from_entity=EntityRef.external(),
                    to_entity=EntityRef.wallet(user_id),
                    amount=amount,
                    tx_type=TransactionType.DEPOSIT,
                    status=TransactionStatus.PENDING,
                    reference=reference,
                    description=f"Deposit via {method}",
                ),
            )
        logger.info("Deposit %d requested: user=%s amount=%d", tx.id, user_id, amount)
        return tx

    async def approve_withdrawal(self, db: AsyncSession, tx_id: int) -> DecisionResult:
        return await self._decide(db, tx_id, TransactionType.WITHDRAWAL, approve=True)

    async def reject_withdrawal(self, db: AsyncSession, tx_id: int) -> DecisionResult:
        return await self._decide(db, tx_id, TransactionType.WITHDRAWAL, approve=False)

    async def approve_deposit(self, db: AsyncSession, tx_id: int) -> DecisionResult:
        return await self._decide(db, tx_id, TransactionType.DEPOSIT, approve=True)

    async def reject_deposit(self, db: AsyncSession, tx_id: int) -> DecisionResult:
        return await self._decide(db, tx_id, TransactionType.DEPOSIT, approve=False)

    async def _decide(
        self,
        db: AsyncSession,
        tx_id: int,
        tx_type: TransactionType,
        approve: bool,
    ) -> DecisionResult:
        """Apply an admin decision exactly once; replaying the same decision is a no-op."""
        target = TransactionStatus.APPROVED if approve else TransactionStatus.REJECTED
        pending = await self._repo.get_transaction(db, tx_id)
        if pending is None or pending.tx_type != tx_type:
            raise EntityNotFoundError(f"{tx_type.value.title()} transaction", str(tx_id))
        user_id = pending.user_id

        async with self._locks.acquire(str(EntityRef.wallet(user_id))):
            async with unit_of_work(db):
                decided = await self._repo.decide_transaction(db, tx_id, target.value)
                if decided is None:
                    current = await self._repo.get_transaction(db, tx_id)
                    if current is None:
                        raise EntityNotFoundError("Transaction", str(tx_id))
                    if current.status != target:
                        raise InvalidStateError(
                            f"transaction {tx_id} is already {current.status}"
                        )
                    logger.info("Decision replay ignored: tx=%d status=%s", tx_id, target.value)
                    wallet = (await self._repo.lock_wallets(db, [user_id]))[user_id]
                    return DecisionResult(transaction=current, wallet=wallet, replayed=True)

                if tx_type == TransactionType.WITHDRAWAL:
                    wallet = await self._repo.release_escrow(
                        db, user_id, decided.amount, refund=not approve
                    )
                elif approve:
                    wallet = await self._repo.apply_wallet_delta(db, user_id, decided.amount)
                else:
                    wallet = (await self._repo.lock_wallets(db, [user_id]))[user_id]
        logger.info(
            "%s %d %s: user=%s amount=%d",
            tx_type.value.title(), tx_id, target.value, user_id, decided.amount,
        )
        return DecisionResult(transaction=decided, wallet=wallet, replayed=False)
