"""Fixtures shared by the unit tests; fakes live in fakes.py."""

from unittest.mock import AsyncMock

import pytest

from fakes import POOLS
from src.cm_mint.infrastructure.locks import LocalIntentLocks
from src.cm_mint.infrastructure.pool_catalog import PoolCatalog


@pytest.fixture
def db() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def catalog() -> PoolCatalog:
    return PoolCatalog.from_dict(POOLS)


@pytest.fixture
def identity() -> AsyncMock:
    provider = AsyncMock()
    provider.resolve_handle.return_value = "acct-resolved-1"
    return provider


@pytest.fixture
def locks() -> LocalIntentLocks:
    return LocalIntentLocks()
