"""Async content API client."""

from __future__ import annotations

from collections.abc import Callable
from types import TracebackType

import httpx

from nodetree.adapters.base import AsyncStorageAdapter
from nodetree.adapters.memory import AsyncMemoryAdapter
from nodetree.auth import AuthAPI, TokenStore
from nodetree.cache import ResponseCache
from nodetree.config import Settings
from nodetree.duration import parse_duration
from nodetree.fetch import RequestCoalescer
from nodetree.resources import (
    CVAPI,
    AboutAPI,
    ApiSession,
    ContactAPI,
    FiledAPI,
    GuestbookAPI,
    HomeAPI,
    HumanAPI,
    LocationPostAPI,
    LocationVideoAPI,
    UtilAPI,
    WorkAPI,
)
from nodetree.tasks import BackgroundTasks


class ContentClient:
    """Async client for the nodetree content API.

    Owns one response cache, one request coalescer and one background task
    set; nothing is shared between instances. ``cache_storage`` plays the
    role of session storage and ``token_storage`` of persistent storage.

    Usage:
        async with ContentClient() as api:
            posts = await api.work.get_all_posts()
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        cache_storage: AsyncStorageAdapter | None = None,
        token_storage: AsyncStorageAdapter | None = None,
        http_client: httpx.AsyncClient | None = None,
        clock: Callable[[], int] | None = None,
    ) -> None:
        self.settings = settings or Settings.from_env()
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(
            # Per-attempt deadlines are enforced by fetch_with_retry
            timeout=parse_duration(self.settings.timeout) / 1000,
        )
        self._cache_storage = cache_storage or AsyncMemoryAdapter()
        self._token_storage = token_storage or AsyncMemoryAdapter()

        self.cache = ResponseCache(
            self._cache_storage,
            fresh=self.settings.fresh_window,
            stale=self.settings.stale_window,
            clock=clock,
        )
        self.coalescer = RequestCoalescer(
            self._http,
            retries=self.settings.retries,
            timeout=self.settings.timeout,
            backoff=self.settings.backoff,
        )
        self.tokens = TokenStore(self._token_storage)
        self.background = BackgroundTasks()

        session = ApiSession(
            settings=self.settings,
            http=self._http,
            cache=self.cache,
            coalescer=self.coalescer,
            tokens=self.tokens,
            background=self.background,
        )
        self.auth = AuthAPI(session)
        self.work = WorkAPI(session)
        self.filed = FiledAPI(session)
        self.about = AboutAPI(session)
        self.cv = CVAPI(session)
        self.location_video = LocationVideoAPI(session)
        self.location = LocationPostAPI(session)
        self.human = HumanAPI(session)
        self.home = HomeAPI(session)
        self.contact = ContactAPI(session)
        self.guestbook = GuestbookAPI(session)
        self.util = UtilAPI(session)

    async def aclose(self) -> None:
        """Cancel background refreshes and release owned resources."""
        await self.background.cancel()
        if self._owns_http:
            await self._http.aclose()
        await self._cache_storage.disconnect()
        if self._token_storage is not self._cache_storage:
            await self._token_storage.disconnect()

    async def __aenter__(self) -> ContentClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()


__all__ = ["ContentClient"]
