"""ChallengeApplicationService: catalogue, purchase and event-driven evaluation.

Evaluation writes use optimistic concurrency: the evaluator works on the row
as read, and `save_account` only succeeds if nobody bumped `version` in the
meantime. A conflict re-reads and re-evaluates, up to CHALLENGE_RETRY_LIMIT
retries. Within one worker the per-account lock already serializes events,
so conflicts only come from other workers.
"""

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.pt_challenge.application.schemas import (
    ChallengeAccountResponse,
    ChallengeTemplateResponse,
    CreateChallengeRequest,
    PurchaseResponse,
    RolloverSummary,
)
from src.pt_challenge.domain import evaluator
from src.pt_challenge.domain.models import ChallengeAccount, ChallengeTemplate, Evaluation
from src.pt_challenge.domain.repository import ChallengeRepositoryProtocol
from src.pt_challenge.infrastructure.persistence import ChallengeRepository
from src.pt_common.database import unit_of_work
from src.pt_common.datetime_utils import utc_now
from src.pt_common.enums import ChallengeStatus, TransactionType
from src.pt_common.errors import (
    AppError,
    ChallengeExpiredError,
    ChallengeNotAvailableError,
    ConcurrentModificationError,
    EntityNotFoundError,
    InsufficientFundsError,
)
from src.pt_common.id_generator import generate_id
from src.pt_common.locks import EntityLockManager, entity_locks
from src.pt_ledger.domain.constants import PLATFORM_REVENUE_USER_ID
from src.pt_ledger.domain.models import EntityRef, NewTransaction
from src.pt_ledger.domain.repository import LedgerRepositoryProtocol
from src.pt_ledger.infrastructure.persistence import LedgerRepository

logger = logging.getLogger(__name__)

Evaluate = Callable[[ChallengeAccount, ChallengeTemplate], Evaluation]
AfterTrade = Callable[[AsyncSession, Evaluation], Awaitable[None]]


def challenge_ref(account_id: str) -> EntityRef:
    return EntityRef(EntityRef.CHALLENGE, account_id)


class ChallengeApplicationService:
    def __init__(
        self,
        repo: ChallengeRepositoryProtocol | None = None,
        ledger: LedgerRepositoryProtocol | None = None,
        locks: EntityLockManager | None = None,
    ) -> None:
        self._repo: ChallengeRepositoryProtocol = repo or ChallengeRepository()
        self._ledger: LedgerRepositoryProtocol = ledger or LedgerRepository()
        self._locks = locks or entity_locks

    # ------------------------------------------------------------------
    # Catalogue
    # ------------------------------------------------------------------

    async def list_templates(self, db: AsyncSession) -> list[ChallengeTemplateResponse]:
        templates = await self._repo.list_templates(db, active_only=True)
        return [ChallengeTemplateResponse.from_template(t) for t in templates]

    async def create_template(
        self, db: AsyncSession, body: CreateChallengeRequest
    ) -> ChallengeTemplateResponse:
        template = ChallengeTemplate(
            id=generate_id(),
            name=body.name,
            fund_size=body.fund_size_cents,
            fee=body.fee_cents,
            steps_count=body.steps_count,
            max_daily_drawdown_bps=body.max_daily_drawdown_bps,
            max_overall_drawdown_bps=body.max_overall_drawdown_bps,
            profit_target_bps=body.profit_target_bps,
            min_trading_days=body.min_trading_days,
            expiry_days=body.expiry_days,
        )
        async with unit_of_work(db):
            created = await self._repo.create_template(db, template)
        logger.info("Challenge template %s created: %s", created.id, created.name)
        return ChallengeTemplateResponse.from_template(created)

    async def _template(self, db: AsyncSession, challenge_id: str) -> ChallengeTemplate:
        template = await self._repo.get_template(db, challenge_id)
        if template is None:
            raise EntityNotFoundError("Challenge", challenge_id)
        return template

    # ------------------------------------------------------------------
    # Purchase
    # ------------------------------------------------------------------

    async def buy_challenge(
        self, db: AsyncSession, user_id: str, challenge_id: str
    ) -> PurchaseResponse:
        """Charge the fee to the wallet and open an ACTIVE(1) challenge account."""
        template = await self._repo.get_template(db, challenge_id)
        if template is None or not template.is_active:
            raise ChallengeNotAvailableError(challenge_id)

        account = ChallengeAccount.open(generate_id(), user_id, template, utc_now())
        wallet_ref = EntityRef.wallet(user_id)
        revenue_ref = EntityRef.wallet(PLATFORM_REVENUE_USER_ID)
        tx_id: int | None = None
        async with self._locks.acquire(str(wallet_ref), str(revenue_ref)):
            async with unit_of_work(db):
                wallets = await self._ledger.lock_wallets(db, [user_id, PLATFORM_REVENUE_USER_ID])
                wallet = wallets[user_id]
                if wallet.balance < template.fee:
                    raise InsufficientFundsError(template.fee, wallet.balance)
                if template.fee > 0:
                    tx = await self._ledger.append_transaction(
                        db,
                        NewTransaction(
                            user_id=user_id,
                            from_entity=wallet_ref,
                            to_entity=revenue_ref,
                            amount=template.fee,
                            tx_type=TransactionType.CHALLENGE_PURCHASE,
                            reference=account.id,
                            description=f"Challenge purchase: {template.name}",
                        ),
                    )
                    tx_id = tx.id
                    wallet = await self._ledger.apply_wallet_delta(db, user_id, -template.fee)
                    await self._ledger.apply_wallet_delta(db, PLATFORM_REVENUE_USER_ID, template.fee)
                created = await self._repo.create_account(db, account)
        logger.info(
            "Challenge %s purchased by %s: account=%s fee=%d",
            challenge_id, user_id, created.id, template.fee,
        )
        return PurchaseResponse(
            challenge_account=ChallengeAccountResponse.from_account(created, template),
            transaction_id=tx_id,
            wallet_balance_cents=wallet.balance,
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list_accounts(
        self, db: AsyncSession, user_id: str
    ) -> list[ChallengeAccountResponse]:
        accounts = await self._repo.list_accounts(db, user_id)
        templates: dict[str, ChallengeTemplate] = {}
        items = []
        for account in accounts:
            if account.challenge_id not in templates:
                templates[account.challenge_id] = await self._template(db, account.challenge_id)
            items.append(ChallengeAccountResponse.from_account(account, templates[account.challenge_id]))
        return items

    async def get_status(
        self, db: AsyncSession, user_id: str, account_id: str
    ) -> ChallengeAccountResponse:
        account = await self._repo.get_account(db, account_id)
        if account is None or account.user_id != user_id:
            raise EntityNotFoundError("Challenge account", account_id)
        template = await self._template(db, account.challenge_id)
        return ChallengeAccountResponse.from_account(account, template)

    async def get_account(self, db: AsyncSession, account_id: str) -> ChallengeAccount | None:
        return await self._repo.get_account(db, account_id)

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    async def _apply(
        self,
        db: AsyncSession,
        account_id: str,
        evaluate: Evaluate,
        pnl: int = 0,
        trade_id: str | None = None,
        after_trade: AfterTrade | None = None,
    ) -> Evaluation:
        """Read, evaluate and compare-and-set one challenge account, retrying conflicts.

        The returned evaluation carries the account as persisted (new version).
        `after_trade` runs in the same unit of work, after the save, unless the
        event was a replay or expired the account.
        """
        attempt = 0
        while True:
            attempt += 1
            try:
                async with self._locks.acquire(str(challenge_ref(account_id))):
                    async with unit_of_work(db):
                        current = await self._repo.get_account(db, account_id)
                        if current is None:
                            raise EntityNotFoundError("Challenge account", account_id)
                        if trade_id and pnl and await self._ledger.find_by_reference(
                            db, TransactionType.TRADE_PNL.value, trade_id
                        ):
                            logger.info("Trade replay ignored: %s on %s", trade_id, account_id)
                            return Evaluation(account=current, replayed=True)
                        template = await self._template(db, current.challenge_id)
                        evaluation = evaluate(current, template)
                        if pnl:
                            evaluation.applied_pnl = (
                                evaluation.account.current_balance - current.current_balance
                            )
                        if evaluation.applied_pnl:
                            await self._record_pnl(db, current, evaluation.applied_pnl, trade_id)
                        evaluation.account = await self._repo.save_account(
                            db, evaluation.account, current.version
                        )
                        if after_trade is not None and not evaluation.expired:
                            await after_trade(db, evaluation)
                return evaluation
            except ConcurrentModificationError:
                if attempt > settings.CHALLENGE_RETRY_LIMIT:
                    logger.error(
                        "Challenge account %s: giving up after %d conflicting writes",
                        account_id, attempt,
                    )
                    raise
                logger.warning(
                    "Challenge account %s: version conflict, retry %d/%d",
                    account_id, attempt, settings.CHALLENGE_RETRY_LIMIT,
                )

    async def _record_pnl(
        self, db: AsyncSession, account: ChallengeAccount, pnl: int, trade_id: str | None
    ) -> None:
        market = EntityRef(EntityRef.MARKET)
        ref = challenge_ref(account.id)
        await self._ledger.append_transaction(
            db,
            NewTransaction(
                user_id=account.user_id,
                from_entity=market if pnl > 0 else ref,
                to_entity=ref if pnl > 0 else market,
                amount=abs(pnl),
                tx_type=TransactionType.TRADE_PNL,
                reference=trade_id,
                description="Challenge trade P&L",
            ),
        )

    async def on_trade_close(
        self,
        db: AsyncSession,
        account_id: str,
        pnl: int,
        trade_id: str | None = None,
        now: datetime | None = None,
        after_trade: AfterTrade | None = None,
    ) -> Evaluation:
        at = now or utc_now()
        evaluation = await self._apply(
            db,
            account_id,
            lambda acc, tpl: evaluator.on_trade_close(acc, tpl, pnl, at),
            pnl=pnl,
            trade_id=trade_id,
            after_trade=after_trade,
        )
        if evaluation.expired:
            raise ChallengeExpiredError(account_id)
        return evaluation

    async def on_equity_snapshot(
        self, db: AsyncSession, account_id: str, equity: int, now: datetime | None = None
    ) -> Evaluation:
        at = now or utc_now()
        evaluation = await self._apply(
            db, account_id, lambda acc, tpl: evaluator.on_equity_snapshot(acc, tpl, equity, at)
        )
        if evaluation.expired:
            raise ChallengeExpiredError(account_id)
        return evaluation

    async def on_day_rollover(
        self, db: AsyncSession, account_id: str, now: datetime | None = None
    ) -> Evaluation:
        at = now or utc_now()
        return await self._apply(
            db, account_id, lambda acc, tpl: evaluator.on_day_rollover(acc, tpl, at)
        )

    async def rollover_all(self, db: AsyncSession, now: datetime | None = None) -> RolloverSummary:
        """Roll every ACTIVE and FUNDED account into the day of `now`."""
        at = now or utc_now()
        ids = await self._repo.list_ids_by_status(
            db, [ChallengeStatus.ACTIVE.value, ChallengeStatus.FUNDED.value]
        )
        failed = expired = errors = 0
        for account_id in ids:
            try:
                evaluation = await self.on_day_rollover(db, account_id, at)
            except AppError as exc:
                # One account's conflict must not stop the sweep
                errors += 1
                logger.warning("Rollover skipped for %s: %s", account_id, exc.message)
                continue
            if evaluation.expired:
                expired += 1
            elif evaluation.account.status == ChallengeStatus.FAILED:
                failed += 1
        logger.info(
            "Daily rollover %s: processed=%d failed=%d expired=%d errors=%d",
            at.date(), len(ids), failed, expired, errors,
        )
        return RolloverSummary(processed=len(ids), failed=failed, expired=expired, errors=errors)

    # ------------------------------------------------------------------
    # Admin transitions
    # ------------------------------------------------------------------

    async def promote_to_funded(
        self, db: AsyncSession, account_id: str
    ) -> ChallengeAccountResponse:
        saved = (
            await self._apply(db, account_id, lambda acc, tpl: evaluator.promote_to_funded(acc))
        ).account
        logger.info("Challenge account %s funded", account_id)
        return ChallengeAccountResponse.from_account(saved, await self._template(db, saved.challenge_id))

    async def archive(self, db: AsyncSession, account_id: str) -> ChallengeAccountResponse:
        saved = (await self._apply(db, account_id, lambda acc, tpl: evaluator.archive(acc))).account
        logger.info("Challenge account %s archived", account_id)
        return ChallengeAccountResponse.from_account(saved, await self._template(db, saved.challenge_id))
