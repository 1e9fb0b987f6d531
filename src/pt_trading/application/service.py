"""TradeEventService: intake of trade-server events.

Trade close routing by account kind:

  LIVE trading account   P&L moves between `market` and the account (a loss
                         is clamped at the balance), then commissions, all
                         in one unit of work.
  DEMO trading account   P&L only; virtual funds, no commission.
  Challenge account      fed to the evaluator; commissions only when the
                         trade closed on a FUNDED account, inside the
                         evaluator's unit of work.

A trade id that already carries a TRADE_PNL record is a replay and changes
nothing.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.pt_challenge.application.schemas import RolloverSummary
from src.pt_challenge.application.service import ChallengeApplicationService
from src.pt_challenge.domain.models import Evaluation
from src.pt_commission.application.schemas import CommissionItem
from src.pt_commission.domain.engine import CommissionEngine
from src.pt_commission.domain.models import ClosedTrade, Commission
from src.pt_common.database import unit_of_work
from src.pt_common.enums import AccountType, ChallengeStatus, TransactionType
from src.pt_common.errors import EntityNotFoundError
from src.pt_common.locks import EntityLockManager, entity_locks
from src.pt_ledger.domain.models import EntityRef, NewTransaction, TradingAccount
from src.pt_ledger.domain.repository import LedgerRepositoryProtocol
from src.pt_ledger.infrastructure.persistence import LedgerRepository
from src.pt_trading.application.schemas import (
    DailyRolloverEvent,
    EquitySnapshotEvent,
    EquitySnapshotResponse,
    TradeCloseEvent,
    TradeCloseResponse,
)

logger = logging.getLogger(__name__)


def _items(records: list[Commission]) -> list[CommissionItem]:
    return [CommissionItem.from_commission(c) for c in records]


class TradeEventService:
    def __init__(
        self,
        ledger: LedgerRepositoryProtocol | None = None,
        challenges: ChallengeApplicationService | None = None,
        commissions: CommissionEngine | None = None,
        locks: EntityLockManager | None = None,
    ) -> None:
        self._ledger: LedgerRepositoryProtocol = ledger or LedgerRepository()
        self._challenges = challenges or ChallengeApplicationService()
        self._commissions = commissions or CommissionEngine()
        self._locks = locks or entity_locks

    async def trade_close(self, db: AsyncSession, event: TradeCloseEvent) -> TradeCloseResponse:
        account = await self._ledger.get_account(db, event.account_id)
        if account is not None:
            return await self._close_on_trading_account(db, account, event)
        if await self._challenges.get_account(db, event.account_id) is not None:
            return await self._close_on_challenge(db, event)
        raise EntityNotFoundError("Account", event.account_id)

    async def _close_on_trading_account(
        self, db: AsyncSession, account: TradingAccount, event: TradeCloseEvent
    ) -> TradeCloseResponse:
        ref = EntityRef.account(account.id)
        market = EntityRef(EntityRef.MARKET)
        applied = 0
        replayed = False
        records: list[Commission] = []
        async with self._locks.acquire(str(ref)):
            async with unit_of_work(db):
                account = (await self._ledger.lock_accounts(db, [account.id]))[account.id]
                if await self._ledger.find_by_reference(
                    db, TransactionType.TRADE_PNL.value, event.trade_id
                ):
                    replayed = True
                else:
                    # Negative balance protection: a loss never takes more than the balance
                    applied = max(event.pnl_cents, -account.balance)
                    if applied != 0:
                        await self._ledger.append_transaction(
                            db,
                            NewTransaction(
                                user_id=account.user_id,
                                from_entity=market if applied > 0 else ref,
                                to_entity=ref if applied > 0 else market,
                                amount=abs(applied),
                                tx_type=TransactionType.TRADE_PNL,
                                reference=event.trade_id,
                                description=f"{event.symbol} closed",
                            ),
                        )
                        account = await self._ledger.apply_account_delta(db, account.id, applied)
                if account.account_type == AccountType.LIVE:
                    records = await self._commissions.distribute(db, self._trade(event, account.user_id))

        if applied != event.pnl_cents and not replayed:
            logger.warning(
                "Trade %s on %s: loss %d clamped to %d",
                event.trade_id, account.id, event.pnl_cents, applied,
            )
        return TradeCloseResponse(
            account_id=account.id,
            account_kind=account.account_type,
            applied_pnl_cents=applied,
            balance_cents=account.balance,
            status=account.status,
            replayed=replayed,
            commissions=_items(records),
        )

    async def _close_on_challenge(
        self, db: AsyncSession, event: TradeCloseEvent
    ) -> TradeCloseResponse:
        records: list[Commission] = []

        async def pay_upline(session: AsyncSession, evaluation: Evaluation) -> None:
            # Commissions follow the status the trade closed under
            if evaluation.initial_status == ChallengeStatus.FUNDED:
                records[:] = await self._commissions.distribute(
                    session, self._trade(event, evaluation.account.user_id)
                )

        evaluation = await self._challenges.on_trade_close(
            db,
            event.account_id,
            event.pnl_cents,
            trade_id=event.trade_id,
            now=event.closed_at,
            after_trade=pay_upline,
        )
        if evaluation.replayed:
            records[:] = await self._commissions.records_for_trade(db, event.trade_id)
        challenge = evaluation.account
        return TradeCloseResponse(
            account_id=challenge.id,
            account_kind="CHALLENGE",
            applied_pnl_cents=evaluation.applied_pnl,
            balance_cents=challenge.current_balance,
            status=challenge.status,
            replayed=evaluation.replayed,
            commissions=_items(records),
        )

    @staticmethod
    def _trade(event: TradeCloseEvent, user_id: str) -> ClosedTrade:
        return ClosedTrade(
            trade_id=event.trade_id,
            trader_user_id=user_id,
            source_account_id=event.account_id,
            symbol=event.symbol,
            lots_x100=event.lots_x100,
        )

    async def equity_snapshot(
        self, db: AsyncSession, event: EquitySnapshotEvent
    ) -> EquitySnapshotResponse:
        evaluation = await self._challenges.on_equity_snapshot(
            db, event.account_id, event.equity_cents, now=event.at
        )
        account = evaluation.account
        return EquitySnapshotResponse(
            account_id=account.id,
            status=account.status,
            state=account.state_label,
            fail_reason=account.fail_reason,
            current_equity_cents=account.current_equity,
            high_water_mark_cents=account.high_water_mark,
        )

    async def daily_rollover(
        self, db: AsyncSession, event: DailyRolloverEvent
    ) -> RolloverSummary:
        if event.account_id is None:
            return await self._challenges.rollover_all(db, event.at)
        evaluation = await self._challenges.on_day_rollover(db, event.account_id, event.at)
        failed = evaluation.account.status == ChallengeStatus.FAILED and not evaluation.expired
        return RolloverSummary(
            processed=1,
            failed=int(failed and evaluation.changed_state),
            expired=int(evaluation.expired),
            errors=0,
        )
