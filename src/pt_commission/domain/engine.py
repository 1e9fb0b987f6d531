"""Commission Engine: pays up to five levels of referring IBs per closing trade.

The caller owns the unit of work, so the commissions of a trade commit or
roll back together with the trade's own P&L.

Chain walk (level 1 = the trader's direct referrer):
  * ACTIVE IB     -> CREDITED record, COMMISSION transaction, balance credit
  * SUSPENDED IB  -> VOID record, nothing credited
  * not an IB     -> skipped, the walk continues with its referrer

A trade that already has commission records is a replay and changes
nothing; the unique (trade_id, level) constraint backs this up across
workers.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.pt_commission.domain.models import ClosedTrade, Commission
from src.pt_commission.domain.repository import CommissionRepositoryProtocol
from src.pt_commission.domain.tiers import (
    MAX_LEVELS,
    commission_amount,
    get_tier,
    level_rate,
)
from src.pt_commission.infrastructure.persistence import CommissionRepository
from src.pt_common.datetime_utils import utc_now
from src.pt_common.enums import CommissionStatus, IBStatus, TransactionType
from src.pt_common.errors import ConcurrentModificationError
from src.pt_common.id_generator import generate_int_id
from src.pt_ledger.domain.models import EntityRef, NewTransaction
from src.pt_ledger.domain.repository import LedgerRepositoryProtocol
from src.pt_ledger.infrastructure.persistence import LedgerRepository

logger = logging.getLogger(__name__)

_PAID_STATUSES = (IBStatus.ACTIVE, IBStatus.SUSPENDED)


def ib_ref(user_id: str) -> EntityRef:
    return EntityRef(EntityRef.IB, user_id)


class CommissionEngine:
    def __init__(
        self,
        repo: CommissionRepositoryProtocol | None = None,
        ledger: LedgerRepositoryProtocol | None = None,
    ) -> None:
        self._repo: CommissionRepositoryProtocol = repo or CommissionRepository()
        self._ledger: LedgerRepositoryProtocol = ledger or LedgerRepository()

    async def records_for_trade(self, db: AsyncSession, trade_id: str) -> list[Commission]:
        return await self._repo.list_for_trade(db, trade_id)

    async def distribute(self, db: AsyncSession, trade: ClosedTrade) -> list[Commission]:
        existing = await self._repo.list_for_trade(db, trade.trade_id)
        if existing:
            logger.info(
                "Commission replay ignored: trade=%s already has %d records",
                trade.trade_id, len(existing),
            )
            return existing
        if trade.lots_x100 <= 0:
            return []

        trader = await self._repo.get_profile(db, trade.trader_user_id)
        upline = trader.referrer_user_id if trader else None
        records: list[Commission] = []
        level = 1
        while upline is not None and level <= MAX_LEVELS:
            ib = await self._repo.get_profile(db, upline)
            if ib is None:
                break
            if ib.status in _PAID_STATUSES:
                record = await self._pay_level(db, trade, ib.user_id, ib.tier, ib.is_active_ib, level)
                if record is not None:
                    records.append(record)
            upline = ib.referrer_user_id
            level += 1

        if records:
            logger.info(
                "Trade %s: %d commission records, %d cents credited",
                trade.trade_id,
                len(records),
                sum(r.amount for r in records if r.status == CommissionStatus.CREDITED),
            )
        return records

    async def _pay_level(
        self,
        db: AsyncSession,
        trade: ClosedTrade,
        ib_user_id: str,
        tier_name: str,
        active: bool,
        level: int,
    ) -> Commission | None:
        tier = get_tier(tier_name)
        amount = commission_amount(trade.lots_x100, tier, level)
        if amount <= 0:
            return None
        record = await self._repo.insert_commission(
            db,
            Commission(
                id=generate_int_id(),
                ib_user_id=ib_user_id,
                trader_user_id=trade.trader_user_id,
                source_account_id=trade.source_account_id,
                trade_id=trade.trade_id,
                symbol=trade.symbol,
                level=level,
                lots_x100=trade.lots_x100,
                rate_cents_per_lot=level_rate(tier, level),
                amount=amount,
                status=(CommissionStatus.CREDITED if active else CommissionStatus.VOID).value,
                created_at=utc_now(),
            ),
        )
        if not active:
            return record

        await self._ledger.append_transaction(
            db,
            NewTransaction(
                user_id=ib_user_id,
                from_entity=EntityRef(EntityRef.COMMISSION_POOL),
                to_entity=ib_ref(ib_user_id),
                amount=amount,
                tx_type=TransactionType.COMMISSION,
                reference=trade.trade_id,
                description=f"L{level} commission on {trade.symbol}",
            ),
        )
        if await self._repo.credit_commission(db, ib_user_id, amount) is None:
            # Suspended between the chain read and the credit
            raise ConcurrentModificationError("IB profile", ib_user_id)
        return record
