"""Tests for settings and the client lifecycle."""

import asyncio

import httpx
import pytest
import respx

from nodetree import AsyncMemoryAdapter, ContentClient, Settings
from nodetree.config import DEFAULT_API_BASE_URL

from conftest import BASE_URL


class TestSettings:
    def test_defaults(self) -> None:
        settings = Settings()
        assert settings.api_base_url == DEFAULT_API_BASE_URL
        assert settings.fresh_window == "5m"
        assert settings.stale_window == "30m"
        assert settings.retries == 3

    def test_trailing_slash_is_stripped(self) -> None:
        settings = Settings(api_base_url="https://example.com/api/")
        assert settings.api_base_url == "https://example.com/api"

    def test_url(self) -> None:
        settings = Settings(api_base_url=BASE_URL)
        assert settings.url("work/header") == f"{BASE_URL}/work/header"
        assert settings.url("/cv") == f"{BASE_URL}/cv"

    def test_from_env(self) -> None:
        settings = Settings.from_env(
            {
                "NODETREE_API_URL": "https://cms.example.com/api",
                "NODETREE_CACHE_FRESH": "1m",
                "NODETREE_CACHE_STALE": "10m",
                "NODETREE_RETRIES": "5",
                "NODETREE_TIMEOUT": "2s",
                "NODETREE_BACKOFF": "250",
            }
        )
        assert settings.api_base_url == "https://cms.example.com/api"
        assert settings.fresh_window == "1m"
        assert settings.stale_window == "10m"
        assert settings.retries == 5
        assert settings.timeout == "2s"
        assert settings.backoff == "250"

    def test_from_env_empty_uses_defaults(self) -> None:
        assert Settings.from_env({}) == Settings()

    def test_from_env_reads_os_environ(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("NODETREE_API_URL", "https://env.example.com/api")
        assert Settings.from_env().api_base_url == "https://env.example.com/api"

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"fresh_window": "10m", "stale_window": "5m"},
            {"retries": 0},
            {"timeout": "soon"},
            {"backoff": -1},
        ],
    )
    def test_invalid(self, kwargs: dict) -> None:
        with pytest.raises(ValueError):
            Settings(**kwargs)


class TestContentClient:
    @respx.mock
    async def test_context_manager(self) -> None:
        respx.get(f"{BASE_URL}/cv").mock(
            return_value=httpx.Response(200, json={"success": True, "data": {}})
        )

        async with ContentClient(Settings(api_base_url=BASE_URL)) as api:
            assert await api.cv.get_cv() == {"success": True, "data": {}}

    async def test_instances_do_not_share_state(self) -> None:
        first = ContentClient(Settings(api_base_url=BASE_URL))
        second = ContentClient(Settings(api_base_url=BASE_URL))
        try:
            assert first.cache is not second.cache
            assert first.coalescer is not second.coalescer
        finally:
            await first.aclose()
            await second.aclose()

    async def test_borrowed_http_client_stays_open(self) -> None:
        async with httpx.AsyncClient() as http:
            api = ContentClient(Settings(api_base_url=BASE_URL), http_client=http)
            await api.aclose()
            assert not http.is_closed

    async def test_aclose_cancels_background_refreshes(self) -> None:
        api = ContentClient(
            Settings(api_base_url=BASE_URL), cache_storage=AsyncMemoryAdapter()
        )
        task = api.background.spawn(asyncio.sleep(10))

        await api.aclose()

        assert task.cancelled()
        assert len(api.background) == 0
