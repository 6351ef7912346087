"""Pool progress — minted counts per template vs supply limits.

Read-side only. Results are cached in Redis per pool with a short TTL;
fulfillment never touches this cache and staleness is bounded by the TTL.
If Redis is down the counts are read straight from the database.
"""
import json
import logging
from collections.abc import Awaitable, Callable

import redis.asyncio as aioredis
from redis.exceptions import RedisError
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.cm_common.datetime_utils import utc_now
from src.cm_common.errors import PoolNotFoundError
from src.cm_common.redis_client import get_redis
from src.cm_mint.application.schemas import PoolProgressResponse, TemplateProgressOut
from src.cm_mint.domain.models import TemplateProgress
from src.cm_mint.domain.repository import MintedItemRepositoryProtocol, PoolCatalogProtocol

logger = logging.getLogger(__name__)


def _cache_key(pool: str) -> str:
    return f"pool_progress:{pool}"


class PoolProgressService:
    def __init__(
        self,
        items: MintedItemRepositoryProtocol,
        catalog: PoolCatalogProtocol,
        redis_getter: Callable[[], Awaitable[aioredis.Redis]] = get_redis,
        ttl_seconds: int | None = None,
    ) -> None:
        self._items = items
        self._catalog = catalog
        self._redis_getter = redis_getter
        self._ttl = ttl_seconds or settings.POOL_PROGRESS_CACHE_TTL_SECONDS

    async def get_progress(self, db: AsyncSession, pool_name: str) -> PoolProgressResponse:
        pool = self._catalog.get_pool(pool_name)
        if pool is None:
            raise PoolNotFoundError(pool_name)

        cached = await self._cache_get(pool.name)
        if cached:
            return PoolProgressResponse.model_validate(json.loads(cached))

        counts = await self._items.count_by_template(db, [e.template_ref for e in pool.entries])
        templates = [
            TemplateProgressOut.from_domain(
                TemplateProgress(
                    template_ref=e.template_ref,
                    name=e.name,
                    rarity=e.rarity,
                    minted=counts.get(e.template_ref, 0),
                    supply_limit=e.supply_limit,
                )
            )
            for e in pool.entries
        ]
        progress = PoolProgressResponse(
            pool=pool.name,
            templates=templates,
            total_minted=sum(t.minted for t in templates),
            updated_at=utc_now().isoformat(),
        )
        await self._cache_set(pool.name, progress.model_dump_json())
        return progress

    async def _cache_get(self, pool: str) -> str | None:
        try:
            redis = await self._redis_getter()
            return await redis.get(_cache_key(pool))
        except (RedisError, OSError):
            logger.warning("Progress cache unavailable, reading %s from the database", pool)
            return None

    async def _cache_set(self, pool: str, value: str) -> None:
        try:
            redis = await self._redis_getter()
            await redis.set(_cache_key(pool), value, ex=self._ttl)
        except (RedisError, OSError):
            logger.warning("Progress cache unavailable, %s not cached", pool)
