"""Unit tests for CommissionEngine.distribute using mock repositories."""

from unittest.mock import AsyncMock

import pytest

from src.pt_commission.domain.engine import CommissionEngine
from src.pt_commission.domain.models import ClosedTrade, Commission, IBProfile
from src.pt_common.enums import CommissionStatus, IBStatus, TransactionType
from src.pt_common.errors import ConcurrentModificationError

TRADE = ClosedTrade(
    trade_id="T-1",
    trader_user_id="trader",
    source_account_id="acc-1",
    symbol="EURUSD",
    lots_x100=100,
)


def _profile(
    user_id: str,
    referrer: str | None,
    status: IBStatus = IBStatus.ACTIVE,
    tier: str = "STANDARD",
) -> IBProfile:
    return IBProfile(
        user_id=user_id,
        referral_code=f"CODE{user_id.upper()}"[:8],
        referrer_user_id=referrer,
        status=status.value,
        tier=tier,
        direct_referral_count=0,
        commission_balance=0,
        total_earned=0,
        total_withdrawn=0,
    )


def _engine(*profiles: IBProfile) -> tuple[CommissionEngine, AsyncMock, AsyncMock]:
    by_id = {p.user_id: p for p in profiles}
    repo = AsyncMock()
    repo.list_for_trade.return_value = []
    repo.get_profile.side_effect = lambda db, user_id: by_id.get(user_id)
    repo.insert_commission.side_effect = lambda db, commission: commission
    repo.credit_commission.side_effect = lambda db, user_id, amount: by_id[user_id]
    ledger = AsyncMock()
    return CommissionEngine(repo=repo, ledger=ledger), repo, ledger


async def test_walks_chain_skipping_non_ibs() -> None:
    engine, repo, ledger = _engine(
        _profile("trader", "a", IBStatus.NONE),
        _profile("a", "b"),                                      # L1 STANDARD 200c
        _profile("b", "c", IBStatus.NONE),                       # L2 not an IB
        _profile("c", "d", IBStatus.SUSPENDED, tier="GOLD"),     # L3 GOLD 100c, void
        _profile("d", None, tier="SILVER"),                      # L4 SILVER 45c
    )

    records = await engine.distribute(AsyncMock(), TRADE)

    assert [(r.ib_user_id, r.level, r.amount, r.status) for r in records] == [
        ("a", 1, 200, CommissionStatus.CREDITED),
        ("c", 3, 100, CommissionStatus.VOID),
        ("d", 4, 45, CommissionStatus.CREDITED),
    ]
    credited = [call.args[1:] for call in repo.credit_commission.await_args_list]
    assert credited == [("a", 200), ("d", 45)]
    txs = [call.args[1] for call in ledger.append_transaction.await_args_list]
    assert [(str(t.from_entity), str(t.to_entity), t.amount) for t in txs] == [
        ("commission_pool", "ib:a", 200),
        ("commission_pool", "ib:d", 45),
    ]
    assert all(t.tx_type == TransactionType.COMMISSION and t.reference == "T-1" for t in txs)


async def test_chain_stops_after_five_levels() -> None:
    chain = [_profile("trader", "ib1", IBStatus.NONE)]
    for i in range(1, 8):
        chain.append(_profile(f"ib{i}", f"ib{i + 1}" if i < 7 else None))
    engine, repo, _ = _engine(*chain)

    records = await engine.distribute(AsyncMock(), TRADE)

    assert [r.level for r in records] == [1, 2, 3, 4, 5]
    assert [r.amount for r in records] == [200, 100, 50, 30, 20]


async def test_zero_amount_levels_skipped() -> None:
    engine, _, ledger = _engine(
        _profile("trader", "a", IBStatus.NONE),
        _profile("a", "b"),
        _profile("b", "c"),
        _profile("c", None),
    )
    tiny = ClosedTrade("T-2", "trader", "acc-1", "EURUSD", lots_x100=1)

    records = await engine.distribute(AsyncMock(), tiny)

    # 0.01 lot: 2c at L1, 1c at L2, 0c at L3
    assert [(r.level, r.amount) for r in records] == [(1, 2), (2, 1)]
    assert ledger.append_transaction.await_count == 2


async def test_replayed_trade_changes_nothing() -> None:
    engine, repo, ledger = _engine(_profile("trader", "a"), _profile("a", None))
    existing = Commission(
        id=1, ib_user_id="a", trader_user_id="trader", source_account_id="acc-1",
        trade_id="T-1", symbol="EURUSD", level=1, lots_x100=100,
        rate_cents_per_lot=200, amount=200, status=CommissionStatus.CREDITED.value,
    )
    repo.list_for_trade.return_value = [existing]

    records = await engine.distribute(AsyncMock(), TRADE)

    assert records == [existing]
    repo.insert_commission.assert_not_awaited()
    ledger.append_transaction.assert_not_awaited()


async def test_zero_lots_pays_nothing() -> None:
    engine, repo, _ = _engine(_profile("trader", "a"), _profile("a", None))
    records = await engine.distribute(AsyncMock(), ClosedTrade("T-3", "trader", "acc", "X", 0))
    assert records == []
    repo.get_profile.assert_not_awaited()


async def test_trader_without_referrer() -> None:
    engine, repo, _ = _engine(_profile("trader", None))
    assert await engine.distribute(AsyncMock(), TRADE) == []
    repo.insert_commission.assert_not_awaited()


async def test_suspension_race_raises() -> None:
    engine, repo, _ = _engine(_profile("trader", "a", IBStatus.NONE), _profile("a", None))
    repo.credit_commission.side_effect = None
    repo.credit_commission.return_value = None

    with pytest.raises(ConcurrentModificationError):
        await engine.distribute(AsyncMock(), TRADE)
