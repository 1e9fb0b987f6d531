"""Transfer Engine against a real (SQLite) ledger store."""

from collections.abc import Awaitable, Callable

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.pt_common.enums import AccountType, TransactionStatus, TransactionType
from src.pt_common.errors import (
    InsufficientFundsError,
    InvalidStateError,
    InvalidTargetError,
)
from src.pt_ledger.application.service import LedgerApplicationService
from src.pt_ledger.domain.invariants import (
    conservation_report,
    verify_escrow,
    verify_global_invariants,
)
from src.pt_ledger.infrastructure.db_models import TransactionORM
from src.pt_ledger.infrastructure.persistence import LedgerRepository
from src.pt_transfer.domain.engine import TransferEngine

MakeUser = Callable[..., Awaitable[str]]
Fund = Callable[[str, int], Awaitable[None]]

PAYOUT = {"method": "upi", "upi_id": "trader@okaxis"}


async def _open_live(db: AsyncSession, user_id: str) -> str:
    account = await LedgerApplicationService().open_account(db, user_id, AccountType.LIVE, 100)
    return account.account_id


async def _wallet(db: AsyncSession, user_id: str) -> tuple[int, int]:
    wallet = await LedgerRepository().get_wallet(db, user_id)
    assert wallet is not None
    return wallet.balance, wallet.pending_withdrawal


async def _tx_count(db: AsyncSession, tx_type: TransactionType) -> int:
    result = await db.execute(
        select(func.count()).select_from(TransactionORM).where(TransactionORM.tx_type == tx_type.value)
    )
    return result.scalar_one()


async def test_deposit_then_withdraw_keeps_totals(db: AsyncSession, make_user: MakeUser, fund: Fund) -> None:
    user = await make_user("alice")
    await fund(user, 100_000)
    account_id = await _open_live(db, user)
    engine = TransferEngine()

    await engine.deposit_to_account(db, user, account_id, 40_000)
    assert await _wallet(db, user) == (60_000, 0)

    with pytest.raises(InsufficientFundsError):
        await engine.request_external_withdrawal(db, user, 70_000, PAYOUT)

    pending = await engine.request_external_withdrawal(db, user, 50_000, PAYOUT)
    assert pending.status == TransactionStatus.PENDING
    assert pending.payout_details == PAYOUT
    assert await _wallet(db, user) == (10_000, 50_000)
    assert await verify_escrow(db) == []

    report = await conservation_report(db)
    assert report.total_assets == 100_000
    assert report.balanced

    result = await engine.approve_withdrawal(db, pending.id)
    assert result.transaction.status == TransactionStatus.APPROVED
    assert await _wallet(db, user) == (10_000, 0)

    report = await conservation_report(db)
    assert report.total_assets == 50_000
    assert report.net_external_flows == 50_000
    assert await verify_global_invariants(db) == []


async def test_rejected_withdrawal_refunds_wallet(db: AsyncSession, make_user: MakeUser, fund: Fund) -> None:
    user = await make_user("bob")
    await fund(user, 20_000)
    engine = TransferEngine()

    pending = await engine.request_external_withdrawal(db, user, 15_000, PAYOUT)
    await engine.reject_withdrawal(db, pending.id)

    assert await _wallet(db, user) == (20_000, 0)
    assert await verify_global_invariants(db) == []
    assert await verify_escrow(db) == []


async def test_decisions_apply_once(db: AsyncSession, make_user: MakeUser, fund: Fund) -> None:
    user = await make_user("carol")
    await fund(user, 20_000)
    engine = TransferEngine()
    pending = await engine.request_external_withdrawal(db, user, 15_000, PAYOUT)

    first = await engine.approve_withdrawal(db, pending.id)
    again = await engine.approve_withdrawal(db, pending.id)

    assert not first.replayed
    assert again.replayed
    assert await _wallet(db, user) == (5_000, 0)
    with pytest.raises(InvalidStateError):
        await engine.reject_withdrawal(db, pending.id)
    assert await verify_global_invariants(db) == []


async def test_failure_mid_transfer_leaves_no_trace(
    db: AsyncSession, make_user: MakeUser, fund: Fund
) -> None:
    class FailingCredit(LedgerRepository):
        async def apply_account_delta(self, db, account_id, delta):  # type: ignore[no-untyped-def]
            raise RuntimeError("disk full")

    user = await make_user("dave")
    await fund(user, 30_000)
    account_id = await _open_live(db, user)
    transfers_before = await _tx_count(db, TransactionType.TRANSFER)

    with pytest.raises(RuntimeError):
        await TransferEngine(repo=FailingCredit()).deposit_to_account(db, user, account_id, 10_000)

    assert await _wallet(db, user) == (30_000, 0)
    account = await LedgerRepository().get_account(db, account_id)
    assert account is not None and account.balance == 0
    assert await _tx_count(db, TransactionType.TRANSFER) == transfers_before
    assert await verify_global_invariants(db) == []


async def test_account_to_account(db: AsyncSession, make_user: MakeUser, fund: Fund) -> None:
    user = await make_user("erin")
    await fund(user, 50_000)
    first = await _open_live(db, user)
    second = await _open_live(db, user)
    engine = TransferEngine()
    await engine.deposit_to_account(db, user, first, 50_000)

    result = await engine.account_to_account_transfer(db, user, first, second, 20_000)

    assert (result.from_account_balance, result.to_account_balance) == (30_000, 20_000)
    with pytest.raises(InsufficientFundsError):
        await engine.account_to_account_transfer(db, user, second, first, 20_001)
    assert await verify_global_invariants(db) == []


async def test_demo_and_foreign_accounts_rejected(
    db: AsyncSession, make_user: MakeUser, fund: Fund
) -> None:
    owner = await make_user("frank")
    other = await make_user("grace")
    await fund(other, 10_000)
    demo = await LedgerApplicationService().open_account(db, other, AccountType.DEMO, 100)
    foreign = await _open_live(db, owner)
    engine = TransferEngine()

    with pytest.raises(InvalidTargetError):
        await engine.deposit_to_account(db, other, demo.account_id, 1_000)
    with pytest.raises(InvalidTargetError):
        await engine.deposit_to_account(db, other, foreign, 1_000)
    assert await _wallet(db, other) == (10_000, 0)


async def test_archive_rules(db: AsyncSession, make_user: MakeUser, fund: Fund) -> None:
    user = await make_user("heidi")
    await fund(user, 10_000)
    ledger = LedgerApplicationService()
    engine = TransferEngine()
    untouched = await _open_live(db, user)
    used = await _open_live(db, user)
    await engine.deposit_to_account(db, user, used, 5_000)

    with pytest.raises(InvalidStateError):
        await ledger.archive_account(db, user, used)

    await engine.withdraw_from_account(db, user, used, 5_000)
    archived = await ledger.archive_account(db, user, used)
    removed = await ledger.archive_account(db, user, untouched)

    assert archived.archived and not archived.deleted
    assert removed.deleted
    assert await LedgerRepository().get_account(db, untouched) is None
    with pytest.raises(InvalidStateError):
        await engine.deposit_to_account(db, user, used, 1_000)


async def test_history_pages_newest_first(db: AsyncSession, make_user: MakeUser, fund: Fund) -> None:
    user = await make_user("ivan")
    await fund(user, 10_000)
    account_id = await _open_live(db, user)
    engine = TransferEngine()
    for _ in range(3):
        await engine.deposit_to_account(db, user, account_id, 1_000)
    ledger = LedgerApplicationService()

    page = await ledger.list_transactions(db, user, None, 2, None)
    rest = await ledger.list_transactions(db, user, page.next_cursor, 2, None)
    deposits = await ledger.list_transactions(db, user, None, 10, TransactionType.DEPOSIT.value)

    assert page.has_more and len(page.items) == 2
    assert page.items[0].id > page.items[1].id
    assert [i.id for i in rest.items] == sorted((i.id for i in rest.items), reverse=True)
    assert len(page.items) + len(rest.items) == 4
    assert [i.tx_type for i in deposits.items] == ["DEPOSIT"]
