"""TransferApplicationService: maps API requests onto the Transfer Engine."""

from sqlalchemy.ext.asyncio import AsyncSession

from src.pt_common.enums import TransferDirection
from src.pt_transfer.application.schemas import (
    AccountToAccountResponse,
    DecisionResponse,
    PendingTransactionResponse,
    PayoutMethod,
    TransferResponse,
)
from src.pt_transfer.domain.engine import TransferEngine
from src.pt_transfer.domain.models import DecisionResult


def _decision_response(result: DecisionResult) -> DecisionResponse:
    return DecisionResponse(
        transaction_id=result.transaction.id,
        status=result.transaction.status,
        replayed=result.replayed,
        user_id=result.wallet.user_id,
        wallet_balance_cents=result.wallet.balance,
        pending_withdrawal_cents=result.wallet.pending_withdrawal,
    )


class TransferApplicationService:
    def __init__(self, engine: TransferEngine | None = None) -> None:
        self._engine = engine or TransferEngine()

    async def transfer(
        self,
        db: AsyncSession,
        user_id: str,
        account_id: str,
        amount_cents: int,
        direction: TransferDirection,
    ) -> TransferResponse:
        if direction == TransferDirection.DEPOSIT:
            result = await self._engine.deposit_to_account(db, user_id, account_id, amount_cents)
            account_balance = result.to_account_balance
        else:
            result = await self._engine.withdraw_from_account(db, user_id, account_id, amount_cents)
            account_balance = result.from_account_balance
        return TransferResponse(
            transaction_id=result.transaction_id,
            new_wallet_balance_cents=result.wallet_balance,
            new_account_balance_cents=account_balance,
        )

    async def account_to_account(
        self,
        db: AsyncSession,
        user_id: str,
        from_account_id: str,
        to_account_id: str,
        amount_cents: int,
    ) -> AccountToAccountResponse:
        result = await self._engine.account_to_account_transfer(
            db, user_id, from_account_id, to_account_id, amount_cents
        )
        return AccountToAccountResponse(
            transaction_id=result.transaction_id,
            from_account_balance_cents=result.from_account_balance,
            to_account_balance_cents=result.to_account_balance,
        )

    async def request_withdrawal(
        self, db: AsyncSession, user_id: str, amount_cents: int, payout: PayoutMethod
    ) -> PendingTransactionResponse:
        tx = await self._engine.request_external_withdrawal(
            db, user_id, amount_cents, payout.model_dump()
        )
        return PendingTransactionResponse.from_transaction(tx)

    async def request_deposit(
        self, db: AsyncSession, user_id: str, amount_cents: int, method: str, reference: str
    ) -> PendingTransactionResponse:
        tx = await self._engine.request_external_deposit(
            db, user_id, amount_cents, method, reference
        )
        return PendingTransactionResponse.from_transaction(tx)

    # --- admin decisions ------------------------------------------------

    async def approve_withdrawal(self, db: AsyncSession, tx_id: int) -> DecisionResponse:
        return _decision_response(await self._engine.approve_withdrawal(db, tx_id))

    async def reject_withdrawal(self, db: AsyncSession, tx_id: int) -> DecisionResponse:
        return _decision_response(await self._engine.reject_withdrawal(db, tx_id))

    async def approve_deposit(self, db: AsyncSession, tx_id: int) -> DecisionResponse:
        return _decision_response(await self._engine.approve_deposit(db, tx_id))

    async def reject_deposit(self, db: AsyncSession, tx_id: int) -> DecisionResponse:
        return _decision_response(await self._engine.reject_deposit(db, tx_id))
