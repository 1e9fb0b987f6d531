"""Property test: no sequence of transfer operations breaks conservation.

Each example builds its own in-memory database, so the test is synchronous
and drives the event loop itself.
"""

import asyncio

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from src.pt_common.database import Base, unit_of_work
from src.pt_common.enums import AccountStatus, AccountType
from src.pt_common.errors import AppError
from src.pt_common.locks import EntityLockManager
from src.pt_ledger.domain.invariants import verify_escrow, verify_global_invariants
from src.pt_ledger.domain.models import TradingAccount
from src.pt_ledger.infrastructure.persistence import LedgerRepository
from src.pt_transfer.domain.engine import TransferEngine

USERS = ["u-1", "u-2"]
ACCOUNTS = {"acc-1": "u-1", "acc-2": "u-1", "acc-3": "u-2"}

amounts = st.integers(min_value=1, max_value=50_000)
operations = st.one_of(
    st.tuples(st.just("deposit"), st.sampled_from(USERS), amounts),
    st.tuples(st.just("to_account"), st.sampled_from(sorted(ACCOUNTS)), amounts),
    st.tuples(st.just("from_account"), st.sampled_from(sorted(ACCOUNTS)), amounts),
    st.tuples(st.just("between"), st.sampled_from(["acc-1", "acc-2"]), amounts),
    st.tuples(st.just("withdraw"), st.sampled_from(USERS), amounts),
    st.tuples(st.just("decide"), st.booleans(), st.integers(min_value=0, max_value=10)),
)


async def _setup(db: AsyncSession) -> None:
    repo = LedgerRepository()
    async with unit_of_work(db):
        for user_id in USERS:
            await repo.create_wallet(db, user_id)
        for account_id, user_id in ACCOUNTS.items():
            await repo.create_account(
                db,
                TradingAccount(
                    id=account_id, user_id=user_id, account_type=AccountType.LIVE.value,
                    balance=0, credit=0, leverage=100, status=AccountStatus.ACTIVE.value,
                    version=0,
                ),
            )


async def _run(ops: list[tuple]) -> tuple[list[str], list[str]]:
    engine = create_async_engine(
        "sqlite+aiosqlite://", poolclass=StaticPool, connect_args={"check_same_thread": False}
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    transfers = TransferEngine(locks=EntityLockManager())
    pending: list[int] = []
    try:
        async with factory() as db:
            await _setup(db)
            for kind, target, amount in ops:
                try:
                    if kind == "deposit":
                        tx = await transfers.request_external_deposit(db, target, amount, "bank", "R")
                        await transfers.approve_deposit(db, tx.id)
                    elif kind == "to_account":
                        await transfers.deposit_to_account(db, ACCOUNTS[target], target, amount)
                    elif kind == "from_account":
                        await transfers.withdraw_from_account(db, ACCOUNTS[target], target, amount)
                    elif kind == "between":
                        other = "acc-2" if target == "acc-1" else "acc-1"
                        await transfers.account_to_account_transfer(db, "u-1", target, other, amount)
                    elif kind == "withdraw":
                        tx = await transfers.request_external_withdrawal(
                            db, target, amount + 999, {"method": "qr", "qr_reference": "Q"}
                        )
                        pending.append(tx.id)
                    elif pending:
                        tx_id = pending.pop(amount % len(pending))
                        if target:
                            await transfers.approve_withdrawal(db, tx_id)
                        else:
                            await transfers.reject_withdrawal(db, tx_id)
                except AppError:
                    # Rejected operations must leave the ledger untouched
                    pass
            return await verify_global_invariants(db), await verify_escrow(db)
    finally:
        await engine.dispose()


@settings(max_examples=30, deadline=None, suppress_health_check=[HealthCheck.too_slow])
@given(st.lists(operations, max_size=25))
def test_random_operation_sequences_conserve_funds(ops: list[tuple]) -> None:
    conservation, escrow = asyncio.run(_run(ops))
    assert conservation == []
    assert escrow == []
