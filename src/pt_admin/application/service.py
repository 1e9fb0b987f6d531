"""Admin application service: ledger health checks."""

from sqlalchemy.ext.asyncio import AsyncSession

from src.pt_ledger.domain.invariants import (
    conservation_report,
    verify_escrow,
    verify_global_invariants,
)


class AdminService:
    async def verify_all_invariants(self, db: AsyncSession) -> dict[str, object]:
        report = await conservation_report(db)
        violations = await verify_global_invariants(db) + await verify_escrow(db)
        return {
            "ok": not violations,
            "violations": violations,
            "conservation": {
                "wallet_balances_cents": report.wallet_balances,
                "escrow_cents": report.escrow,
                "live_accounts_cents": report.live_accounts,
                "total_assets_cents": report.total_assets,
                "net_external_flows_cents": report.net_external_flows,
            },
        }
