# src/cm_mint/domain/repository.py
"""Repository and collaborator Protocols — dependency inversion for testability.

Unit tests inject in-memory fakes conforming to these Protocols.
Infrastructure layer provides the real implementations.
"""

from contextlib import AbstractAsyncContextManager
from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_mint.domain.models import (
    CreatedArtifact,
    CreationItem,
    MintedItemRecord,
    MintIntent,
    WeightedPool,
)


class MintIntentRepositoryProtocol(Protocol):
    async def insert(self, db: AsyncSession, intent: MintIntent) -> None: ...

    async def get_by_id(self, db: AsyncSession, intent_id: str) -> MintIntent | None: ...

    async def get_by_external_request_id(
        self, db: AsyncSession, external_request_id: str
    ) -> MintIntent | None: ...

    async def mark_paid(
        self,
        db: AsyncSession,
        intent_id: str,
        transaction_id: str,
        paid_at: datetime,
    ) -> MintIntent | None:
        """pending_payment → paid; None if the intent was not pending."""
        ...

    async def transition(
        self, db: AsyncSession, intent_id: str, expected: str, target: str
    ) -> MintIntent | None:
        """Compare-and-set status; None if the current status != expected."""
        ...

    async def record_failure(
        self, db: AsyncSession, intent_id: str, error: str
    ) -> MintIntent | None: ...

    async def list_due_paid(
        self,
        db: AsyncSession,
        now: datetime,
        stale_before: datetime,
        limit: int,
    ) -> list[MintIntent]: ...


class MintedItemRepositoryProtocol(Protocol):
    async def list_by_payment(
        self, db: AsyncSession, payment_id: str
    ) -> list[MintedItemRecord]: ...

    async def insert_many(
        self, db: AsyncSession, records: list[MintedItemRecord]
    ) -> int:
        """Insert, skipping (payment_id, unit_index) conflicts; returns rows written."""
        ...

    async def count_by_template(
        self, db: AsyncSession, template_refs: list[str]
    ) -> dict[str, int]: ...


class PoolCatalogProtocol(Protocol):
    def get_pool(self, name: str) -> WeightedPool | None: ...

    def pool_names(self) -> list[str]: ...


class IdentityProviderProtocol(Protocol):
    async def resolve_handle(self, handle: str) -> str | None: ...


class MintingServiceProtocol(Protocol):
    async def mint_items(
        self, collection_id: str, items: list[CreationItem]
    ) -> list[CreatedArtifact]:
        """Submit one creation order and wait for the created artifacts."""
        ...


class IntentLockProtocol(Protocol):
    def hold(self, intent_id: str, wait: bool = True) -> AbstractAsyncContextManager[None]: ...
