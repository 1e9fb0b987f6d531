"""LedgerRepository: concrete implementation of LedgerRepositoryProtocol.

All balance-mutating operations are single conditional UPDATE ... RETURNING
statements. A result of 0 rows means a business constraint was violated
(insufficient funds, archived account) or the row does not exist; the
repository re-reads the row to raise the precise error.

Transaction ownership: The CALLER (application service) is responsible for
the unit of work via `unit_of_work(db)`. Multi-row locks are taken with
SELECT ... FOR UPDATE ordered by primary key.
"""

from typing import Any

from sqlalchemy import delete, insert, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.pt_common.datetime_utils import ensure_utc, utc_now
from src.pt_common.enums import AccountStatus, TransactionStatus
from src.pt_common.errors import (
    EntityNotFoundError,
    InsufficientFundsError,
    InternalError,
    InvalidStateError,
)
from src.pt_common.id_generator import generate_int_id
from src.pt_ledger.domain.models import (
    EntityRef,
    NewTransaction,
    TradingAccount,
    Transaction,
    Wallet,
)
from src.pt_ledger.infrastructure.db_models import (
    TradingAccountORM,
    TransactionORM,
    WalletORM,
)

_wallets = WalletORM.__table__
_accounts = TradingAccountORM.__table__
_transactions = TransactionORM.__table__


def _row_to_wallet(row: Any) -> Wallet:
    return Wallet(
        user_id=row.user_id,
        balance=row.balance,
        pending_withdrawal=row.pending_withdrawal,
        version=row.version,
        created_at=ensure_utc(row.created_at) if row.created_at else None,
        updated_at=ensure_utc(row.updated_at) if row.updated_at else None,
    )


def _row_to_account(row: Any) -> TradingAccount:
    return TradingAccount(
        id=row.id,
        user_id=row.user_id,
        account_type=row.account_type,
        balance=row.balance,
        credit=row.credit,
        leverage=row.leverage,
        status=row.status,
        version=row.version,
        created_at=ensure_utc(row.created_at) if row.created_at else None,
        updated_at=ensure_utc(row.updated_at) if row.updated_at else None,
    )


def _row_to_transaction(row: Any) -> Transaction:
    return Transaction(
        id=row.id,
        user_id=row.user_id,
        from_entity=row.from_entity,
        to_entity=row.to_entity,
        amount=row.amount,
        tx_type=row.tx_type,
        status=row.status,
        reference=row.reference,
        description=row.description,
        payout_details=row.payout_details,
        created_at=ensure_utc(row.created_at) if row.created_at else None,
        decided_at=ensure_utc(row.decided_at) if row.decided_at else None,
    )


class LedgerRepository:
    """Concrete repository: all operations atomic at the SQL level."""

    # ------------------------------------------------------------------
    # Wallets
    # ------------------------------------------------------------------

    async def create_wallet(self, db: AsyncSession, user_id: str) -> Wallet:
        now = utc_now()
        result = await db.execute(
            insert(_wallets)
            .values(
                user_id=user_id,
                balance=0,
                pending_withdrawal=0,
                version=0,
                created_at=now,
                updated_at=now,
            )
            .returning(*_wallets.c)
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("Wallet insert returned no rows: this should never happen")
        return _row_to_wallet(row)

    async def get_wallet(self, db: AsyncSession, user_id: str) -> Wallet | None:
        result = await db.execute(select(_wallets).where(_wallets.c.user_id == user_id))
        row = result.fetchone()
        return _row_to_wallet(row) if row else None

    async def lock_wallets(
        self, db: AsyncSession, user_ids: list[str]
    ) -> dict[str, Wallet]:
        result = await db.execute(
            select(_wallets)
            .where(_wallets.c.user_id.in_(sorted(set(user_ids))))
            .order_by(_wallets.c.user_id)
            .with_for_update()
        )
        wallets = {row.user_id: _row_to_wallet(row) for row in result.fetchall()}
        for user_id in user_ids:
            if user_id not in wallets:
                raise EntityNotFoundError("Wallet", user_id)
        return wallets

    async def apply_wallet_delta(
        self, db: AsyncSession, user_id: str, delta: int
    ) -> Wallet:
        result = await db.execute(
            update(_wallets)
            .where(_wallets.c.user_id == user_id)
            .where(_wallets.c.balance + delta >= 0)
            .values(
                balance=_wallets.c.balance + delta,
                version=_wallets.c.version + 1,
                updated_at=utc_now(),
            )
            .returning(*_wallets.c)
        )
        row = result.fetchone()
        if row is None:
            current = await self.get_wallet(db, user_id)
            if current is None:
                raise EntityNotFoundError("Wallet", user_id)
            raise InsufficientFundsError(-delta, current.balance)
        return _row_to_wallet(row)

    async def move_to_escrow(
        self, db: AsyncSession, user_id: str, amount: int
    ) -> Wallet:
        result = await db.execute(
            update(_wallets)
            .where(_wallets.c.user_id == user_id)
            .where(_wallets.c.balance >= amount)
            .values(
                balance=_wallets.c.balance - amount,
                pending_withdrawal=_wallets.c.pending_withdrawal + amount,
                version=_wallets.c.version + 1,
                updated_at=utc_now(),
            )
            .returning(*_wallets.c)
        )
        row = result.fetchone()
        if row is None:
            current = await self.get_wallet(db, user_id)
            if current is None:
                raise EntityNotFoundError("Wallet", user_id)
            raise InsufficientFundsError(amount, current.balance)
        return _row_to_wallet(row)

    async def release_escrow(
        self, db: AsyncSession, user_id: str, amount: int, refund: bool
    ) -> Wallet:
        """Take `amount` out of escrow: back into the balance (refund) or out of the system."""
        values: dict[str, Any] = {
            "pending_withdrawal": _wallets.c.pending_withdrawal - amount,
            "version": _wallets.c.version + 1,
            "updated_at": utc_now(),
        }
        if refund:
            values["balance"] = _wallets.c.balance + amount
        result = await db.execute(
            update(_wallets)
            .where(_wallets.c.user_id == user_id)
            .where(_wallets.c.pending_withdrawal >= amount)
            .values(**values)
            .returning(*_wallets.c)
        )
        row = result.fetchone()
        if row is None:
            current = await self.get_wallet(db, user_id)
            if current is None:
                raise EntityNotFoundError("Wallet", user_id)
            raise InternalError(
                f"Escrow underflow for {user_id}: releasing {amount}, "
                f"escrowed {current.pending_withdrawal}"
            )
        return _row_to_wallet(row)

    # ------------------------------------------------------------------
    # Trading accounts
    # ------------------------------------------------------------------

    async def create_account(
        self, db: AsyncSession, account: TradingAccount
    ) -> TradingAccount:
        now = utc_now()
        result = await db.execute(
            insert(_accounts)
            .values(
                id=account.id,
                user_id=account.user_id,
                account_type=account.account_type,
                balance=account.balance,
                credit=account.credit,
                leverage=account.leverage,
                status=account.status,
                version=0,
                created_at=now,
                updated_at=now,
            )
            .returning(*_accounts.c)
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("Account insert returned no rows: this should never happen")
        return _row_to_account(row)

    async def get_account(
        self, db: AsyncSession, account_id: str
    ) -> TradingAccount | None:
        result = await db.execute(select(_accounts).where(_accounts.c.id == account_id))
        row = result.fetchone()
        return _row_to_account(row) if row else None

    async def list_accounts(
        self, db: AsyncSession, user_id: str
    ) -> list[TradingAccount]:
        result = await db.execute(
            select(_accounts)
            .where(_accounts.c.user_id == user_id)
            .order_by(_accounts.c.created_at, _accounts.c.id)
        )
        return [_row_to_account(row) for row in result.fetchall()]

    async def lock_accounts(
        self, db: AsyncSession, account_ids: list[str]
    ) -> dict[str, TradingAccount]:
        result = await db.execute(
            select(_accounts)
            .where(_accounts.c.id.in_(sorted(set(account_ids))))
            .order_by(_accounts.c.id)
            .with_for_update()
        )
        accounts = {row.id: _row_to_account(row) for row in result.fetchall()}
        for account_id in account_ids:
            if account_id not in accounts:
                raise EntityNotFoundError("Trading account", account_id)
        return accounts

    async def apply_account_delta(
        self, db: AsyncSession, account_id: str, delta: int
    ) -> TradingAccount:
        result = await db.execute(
            update(_accounts)
            .where(_accounts.c.id == account_id)
            .where(_accounts.c.status == AccountStatus.ACTIVE.value)
            .where(_accounts.c.balance + delta >= 0)
            .values(
                balance=_accounts.c.balance + delta,
                version=_accounts.c.version + 1,
                updated_at=utc_now(),
            )
            .returning(*_accounts.c)
        )
        row = result.fetchone()
        if row is None:
            current = await self.get_account(db, account_id)
            if current is None:
                raise EntityNotFoundError("Trading account", account_id)
            if not current.is_active:
                raise InvalidStateError(f"trading account {account_id} is {current.status}")
            raise InsufficientFundsError(-delta, current.balance)
        return _row_to_account(row)

    async def archive_account(
        self, db: AsyncSession, account_id: str
    ) -> TradingAccount:
        result = await db.execute(
            update(_accounts)
            .where(_accounts.c.id == account_id)
            .where(_accounts.c.status == AccountStatus.ACTIVE.value)
            .values(
                status=AccountStatus.ARCHIVED.value,
                version=_accounts.c.version + 1,
                updated_at=utc_now(),
            )
            .returning(*_accounts.c)
        )
        row = result.fetchone()
        if row is None:
            current = await self.get_account(db, account_id)
            if current is None:
                raise EntityNotFoundError("Trading account", account_id)
            raise InvalidStateError(f"trading account {account_id} is {current.status}")
        return _row_to_account(row)

    async def delete_account(self, db: AsyncSession, account_id: str) -> None:
        await db.execute(delete(_accounts).where(_accounts.c.id == account_id))

    async def has_history(self, db: AsyncSession, entity: EntityRef) -> bool:
        ref = str(entity)
        result = await db.execute(
            select(_transactions.c.id)
            .where(or_(_transactions.c.from_entity == ref, _transactions.c.to_entity == ref))
            .limit(1)
        )
        return result.fetchone() is not None

    # ------------------------------------------------------------------
    # Generic balance contract
    # ------------------------------------------------------------------

    async def apply_balance_delta(
        self, db: AsyncSession, entity: EntityRef, delta: int
    ) -> int:
        """Apply a signed delta to any balance-carrying entity; return the new balance.

        ESCROW deltas move only the wallet's escrowed amount; pairing them with
        a wallet delta is the caller's job.
        """
        if entity.entity_id is None:
            raise InternalError(f"{entity} carries no balance")
        if entity.kind == EntityRef.WALLET:
            return (await self.apply_wallet_delta(db, entity.entity_id, delta)).balance
        if entity.kind == EntityRef.ACCOUNT:
            return (await self.apply_account_delta(db, entity.entity_id, delta)).balance
        if entity.kind == EntityRef.ESCROW:
            return (await self._apply_escrow_delta(db, entity.entity_id, delta)).pending_withdrawal
        raise InternalError(f"{entity} carries no ledger balance")

    async def _apply_escrow_delta(
        self, db: AsyncSession, user_id: str, delta: int
    ) -> Wallet:
        result = await db.execute(
            update(_wallets)
            .where(_wallets.c.user_id == user_id)
            .where(_wallets.c.pending_withdrawal + delta >= 0)
            .values(
                pending_withdrawal=_wallets.c.pending_withdrawal + delta,
                version=_wallets.c.version + 1,
                updated_at=utc_now(),
            )
            .returning(*_wallets.c)
        )
        row = result.fetchone()
        if row is None:
            current = await self.get_wallet(db, user_id)
            if current is None:
                raise EntityNotFoundError("Wallet", user_id)
            raise InsufficientFundsError(-delta, current.pending_withdrawal)
        return _row_to_wallet(row)

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    async def append_transaction(
        self, db: AsyncSession, tx: NewTransaction
    ) -> Transaction:
        now = utc_now()
        result = await db.execute(
            insert(_transactions)
            .values(
                id=generate_int_id(),
                user_id=tx.user_id,
                from_entity=str(tx.from_entity),
                to_entity=str(tx.to_entity),
                amount=tx.amount,
                tx_type=tx.tx_type,
                status=tx.status,
                reference=tx.reference,
                description=tx.description,
                payout_details=tx.payout_details,
                created_at=now,
                decided_at=None if tx.status == TransactionStatus.PENDING else now,
            )
            .returning(*_transactions.c)
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("Transaction insert returned no rows: this should never happen")
        return _row_to_transaction(row)

    async def get_transaction(
        self, db: AsyncSession, tx_id: int, for_update: bool = False
    ) -> Transaction | None:
        stmt = select(_transactions).where(_transactions.c.id == tx_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await db.execute(stmt)
        row = result.fetchone()
        return _row_to_transaction(row) if row else None

    async def decide_transaction(
        self, db: AsyncSession, tx_id: int, status: str
    ) -> Transaction | None:
        """PENDING -> status. Returns None when the transaction is no longer PENDING."""
        result = await db.execute(
            update(_transactions)
            .where(_transactions.c.id == tx_id)
            .where(_transactions.c.status == TransactionStatus.PENDING.value)
            .values(status=status, decided_at=utc_now())
            .returning(*_transactions.c)
        )
        row = result.fetchone()
        return _row_to_transaction(row) if row else None

    async def find_by_reference(
        self, db: AsyncSession, tx_type: str, reference: str
    ) -> Transaction | None:
        """First transaction of `tx_type` carrying `reference` (e.g. a trade id)."""
        result = await db.execute(
            select(_transactions)
            .where(_transactions.c.tx_type == tx_type)
            .where(_transactions.c.reference == reference)
            .order_by(_transactions.c.id)
            .limit(1)
        )
        row = result.fetchone()
        return _row_to_transaction(row) if row else None

    async def list_transactions(
        self,
        db: AsyncSession,
        user_id: str,
        cursor_id: int | None,
        limit: int,
        tx_type: str | None,
    ) -> list[Transaction]:
        stmt = select(_transactions).where(_transactions.c.user_id == user_id)
        if cursor_id is not None:
            stmt = stmt.where(_transactions.c.id < cursor_id)
        if tx_type is not None:
            stmt = stmt.where(_transactions.c.tx_type == tx_type)
        result = await db.execute(stmt.order_by(_transactions.c.id.desc()).limit(limit))
        return [_row_to_transaction(row) for row in result.fetchall()]
