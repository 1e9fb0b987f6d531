"""Global conservation invariant check (INV-C).

Conserved total = all wallet balances (system wallets included)
                + all pending-withdrawal escrows
                + all LIVE trading-account balances.

The total may only move through APPROVED transactions that cross the boundary
of that set (external deposits/withdrawals, live trade P&L, commission
payouts). Summing those flows must therefore reproduce the total exactly.
Demo accounts, challenge accounts and IB commission sub-balances sit outside
the set.
"""

import logging
from dataclasses import dataclass

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

_WALLET_TOTAL_SQL = text("""
    SELECT COALESCE(SUM(balance), 0) AS balances,
           COALESCE(SUM(pending_withdrawal), 0) AS escrow
    FROM wallets
""")
_LIVE_ACCOUNT_TOTAL_SQL = text("""
    SELECT COALESCE(SUM(balance), 0)
    FROM trading_accounts
    WHERE account_type = 'LIVE'
""")
_NET_EXTERNAL_FLOW_SQL = text("""
    WITH live AS (
        SELECT 'account:' || id AS ref FROM trading_accounts WHERE account_type = 'LIVE'
    ),
    flows AS (
        SELECT t.amount,
               CASE WHEN t.to_entity LIKE 'wallet:%'
                      OR t.to_entity IN (SELECT ref FROM live) THEN 1 ELSE 0 END AS to_in,
               CASE WHEN t.from_entity LIKE 'wallet:%'
                      OR t.from_entity IN (SELECT ref FROM live) THEN 1 ELSE 0 END AS from_in
        FROM transactions t
        WHERE t.status = 'APPROVED'
    )
    SELECT COALESCE(SUM(
        CASE WHEN to_in = 1 AND from_in = 0 THEN amount
             WHEN from_in = 1 AND to_in = 0 THEN -amount
             ELSE 0 END
    ), 0)
    FROM flows
""")


@dataclass
class ConservationReport:
    wallet_balances: int
    escrow: int
    live_accounts: int
    net_external_flows: int

    @property
    def total_assets(self) -> int:
        return self.wallet_balances + self.escrow + self.live_accounts

    @property
    def balanced(self) -> bool:
        return self.total_assets == self.net_external_flows


async def conservation_report(db: AsyncSession) -> ConservationReport:
    wallet_row = (await db.execute(_WALLET_TOTAL_SQL)).fetchone()
    live = (await db.execute(_LIVE_ACCOUNT_TOTAL_SQL)).scalar_one()
    net = (await db.execute(_NET_EXTERNAL_FLOW_SQL)).scalar_one()
    return ConservationReport(
        wallet_balances=int(wallet_row.balances),  # type: ignore[union-attr]
        escrow=int(wallet_row.escrow),  # type: ignore[union-attr]
        live_accounts=int(live),
        net_external_flows=int(net),
    )


async def verify_global_invariants(db: AsyncSession) -> list[str]:
    """Check INV-C: conserved total == net external flows. Returns violation strings."""
    violations: list[str] = []
    report = await conservation_report(db)
    if not report.balanced:
        msg = (
            f"INV-C violated: wallets({report.wallet_balances}) + "
            f"escrow({report.escrow}) + live_accounts({report.live_accounts}) "
            f"= {report.total_assets} != net_external_flows={report.net_external_flows}"
        )
        violations.append(msg)
        logger.error(msg)
    return violations


_ESCROW_MISMATCH_SQL = text("""
    SELECT w.user_id, w.pending_withdrawal, COALESCE(p.pending, 0) AS pending
    FROM wallets w
    LEFT JOIN (
        SELECT user_id, SUM(amount) AS pending
        FROM transactions
        WHERE tx_type = 'WITHDRAWAL' AND status = 'PENDING'
        GROUP BY user_id
    ) p ON p.user_id = w.user_id
    WHERE w.pending_withdrawal != COALESCE(p.pending, 0)
""")


async def verify_escrow(db: AsyncSession) -> list[str]:
    """Check INV-E: each wallet's escrow equals the sum of its PENDING withdrawals."""
    violations: list[str] = []
    for row in (await db.execute(_ESCROW_MISMATCH_SQL)).fetchall():
        msg = (
            f"INV-E violated: wallet {row.user_id} escrow={row.pending_withdrawal} "
            f"!= pending withdrawals={row.pending}"
        )
        violations.append(msg)
        logger.error(msg)
    return violations
