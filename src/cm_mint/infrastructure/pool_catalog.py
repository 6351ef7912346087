"""Weighted pool catalog — static JSON configuration, loaded once.

File format (POOL_CATALOG_PATH):
    {"<pool>": {"collection_id": str|null, "unit_price": "0.88"|null,
                "entries": [{"template_ref", "name", "rarity", "weight",
                             "supply_limit", "image_url", "multimedia_url",
                             "description", "attributes"}]}}

Read-only at fulfillment time; safe to share across requests.
"""

import json
import logging
from decimal import Decimal
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from config.settings import settings
from src.cm_common.errors import ConfigurationError
from src.cm_mint.domain.models import WeightedPool, WeightedPoolEntry

logger = logging.getLogger(__name__)


class _EntryConfig(BaseModel):
    template_ref: str = Field(min_length=1)
    name: str = Field(min_length=1)
    rarity: str | None = None
    weight: int = Field(1, ge=0)
    supply_limit: int = Field(0, ge=0)
    image_url: str | None = None
    multimedia_url: str | None = None
    description: str = ""
    attributes: list[dict[str, Any]] = Field(default_factory=list)


class _PoolConfig(BaseModel):
    collection_id: str | None = None
    unit_price: Decimal | None = Field(None, gt=0)
    entries: list[_EntryConfig]


_catalog_adapter = TypeAdapter(dict[str, _PoolConfig])


class PoolCatalog:
    def __init__(self, pools: dict[str, WeightedPool]) -> None:
        self._pools = pools

    @classmethod
    def from_dict(cls, raw: Any) -> "PoolCatalog":
        try:
            parsed = _catalog_adapter.validate_python(raw)
        except ValidationError as exc:
            raise ConfigurationError(f"invalid pool catalog: {exc.errors()[0]['msg']}") from None
        pools = {
            name: WeightedPool(
                name=name,
                collection_id=cfg.collection_id,
                unit_price=cfg.unit_price,
                entries=[
                    WeightedPoolEntry(
                        template_ref=e.template_ref,
                        name=e.name,
                        rarity=e.rarity,
                        weight=e.weight,
                        supply_limit=e.supply_limit,
                        image_url=e.image_url,
                        multimedia_url=e.multimedia_url,
                        description=e.description,
                        attributes=e.attributes,
                    )
                    for e in cfg.entries
                ],
            )
            for name, cfg in parsed.items()
        }
        return cls(pools)

    @classmethod
    def from_file(cls, path: str | Path) -> "PoolCatalog":
        try:
            raw = json.loads(Path(path).read_text(encoding="utf-8"))
        except FileNotFoundError:
            raise ConfigurationError(f"pool catalog not found: {path}") from None
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"pool catalog is not valid JSON: {exc}") from None
        catalog = cls.from_dict(raw)
        logger.info("Loaded %d pools from %s", len(catalog.pool_names()), path)
        return catalog

    def get_pool(self, name: str) -> WeightedPool | None:
        pool = self._pools.get(name)
        if pool is None or not pool.entries:
            return None
        return pool

    def pool_names(self) -> list[str]:
        return sorted(self._pools)


_catalog: PoolCatalog | None = None


def get_pool_catalog() -> PoolCatalog:
    global _catalog  # noqa: PLW0603
    if _catalog is None:
        _catalog = PoolCatalog.from_file(settings.POOL_CATALOG_PATH)
    return _catalog
