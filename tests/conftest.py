"""Shared pytest fixtures."""

from collections.abc import AsyncIterator

import pytest

from nodetree import AsyncMemoryAdapter, ContentClient, ResponseCache, Settings

BASE_URL = "https://api.test.dev/api"

MINUTE = 60_000


class ManualClock:
    """Millisecond clock advanced by hand."""

    def __init__(self, now: int = 1_700_000_000_000) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def async_adapter() -> AsyncMemoryAdapter:
    """Create a fresh AsyncMemoryAdapter for each test."""
    return AsyncMemoryAdapter()


@pytest.fixture
def cache(async_adapter: AsyncMemoryAdapter, clock: ManualClock) -> ResponseCache:
    """Response cache with the default 5m / 30m windows on a manual clock."""
    return ResponseCache(async_adapter, clock=clock)


@pytest.fixture
def settings() -> Settings:
    return Settings(api_base_url=BASE_URL, backoff=0, timeout="1s")


@pytest.fixture
def token_adapter() -> AsyncMemoryAdapter:
    return AsyncMemoryAdapter()


@pytest.fixture
async def client(
    settings: Settings,
    async_adapter: AsyncMemoryAdapter,
    token_adapter: AsyncMemoryAdapter,
    clock: ManualClock,
) -> AsyncIterator[ContentClient]:
    """ContentClient against BASE_URL sharing the cache and clock fixtures."""
    api = ContentClient(
        settings,
        cache_storage=async_adapter,
        token_storage=token_adapter,
        clock=clock,
    )
    yield api
    await api.aclose()
