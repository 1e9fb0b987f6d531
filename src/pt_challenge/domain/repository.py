"""Repository Protocol for challenge templates and challenge accounts."""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.pt_challenge.domain.models import ChallengeAccount, ChallengeTemplate


class ChallengeRepositoryProtocol(Protocol):
    # --- templates ---

    async def create_template(
        self, db: AsyncSession, template: ChallengeTemplate
    ) -> ChallengeTemplate: ...

    async def get_template(
        self, db: AsyncSession, challenge_id: str
    ) -> ChallengeTemplate | None: ...

    async def list_templates(
        self, db: AsyncSession, active_only: bool = True
    ) -> list[ChallengeTemplate]: ...

    # --- challenge accounts ---

    async def create_account(
        self, db: AsyncSession, account: ChallengeAccount
    ) -> ChallengeAccount: ...

    async def get_account(
        self, db: AsyncSession, account_id: str
    ) -> ChallengeAccount | None: ...

    async def list_accounts(
        self, db: AsyncSession, user_id: str
    ) -> list[ChallengeAccount]: ...

    async def list_ids_by_status(
        self, db: AsyncSession, statuses: list[str]
    ) -> list[str]: ...

    async def save_account(
        self, db: AsyncSession, account: ChallengeAccount, expected_version: int
    ) -> ChallengeAccount:
        """Compare-and-set on version; raises ConcurrentModificationError on mismatch."""
        ...
