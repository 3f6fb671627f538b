"""Response cache with fresh / stale windows over a key-value store.

Entries are stored as ``{"data": payload, "timestamp": ms}`` JSON strings.
An entry is fresh while its age is within the fresh window, stale (still
servable, but due for a background refresh) up to the stale window, and
purged on read after that.

The cache never raises: storage and decode failures read as misses, and a
write that still fails after one clear-and-retry is dropped.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable
from typing import Any

from nodetree.adapters.base import AsyncStorageAdapter
from nodetree.duration import parse_duration
from nodetree.errors import StorageError
from nodetree.types import CacheEntry, Duration, StaleRead

logger = logging.getLogger(__name__)

DEFAULT_FRESH_WINDOW: Duration = "5m"
DEFAULT_STALE_WINDOW: Duration = "30m"


def _now_ms() -> int:
    return int(time.time() * 1000)


def _encode(entry: CacheEntry[Any]) -> str:
    return json.dumps({"data": entry.payload, "timestamp": entry.timestamp})


def _decode(raw: str) -> CacheEntry[Any]:
    obj = json.loads(raw)
    return CacheEntry(payload=obj["data"], timestamp=int(obj["timestamp"]))


class ResponseCache:
    """TTL cache for API envelopes, one instance per client."""

    def __init__(
        self,
        adapter: AsyncStorageAdapter,
        *,
        fresh: Duration = DEFAULT_FRESH_WINDOW,
        stale: Duration = DEFAULT_STALE_WINDOW,
        clock: Callable[[], int] | None = None,
    ) -> None:
        self._adapter = adapter
        self._fresh = parse_duration(fresh)
        self._stale = parse_duration(stale)
        if self._stale < self._fresh:
            raise ValueError("stale window must not be shorter than fresh window")
        self._clock = clock or _now_ms

    @property
    def adapter(self) -> AsyncStorageAdapter:
        return self._adapter

    @property
    def fresh_window(self) -> int:
        """Fresh window in milliseconds."""
        return self._fresh

    @property
    def stale_window(self) -> int:
        """Stale window in milliseconds."""
        return self._stale

    async def _read(self, key: str) -> CacheEntry[Any] | None:
        """Load and decode an entry; unreadable entries are purged."""
        try:
            raw = await self._adapter.get_item(key)
        except StorageError:
            logger.debug("cache read failed for %s", key, exc_info=True)
            return None
        if raw is None:
            return None
        try:
            return _decode(raw)
        except (ValueError, KeyError, TypeError):
            logger.debug("dropping undecodable cache entry %s", key)
            await self.remove(key)
            return None

    async def get(self, key: str) -> Any | None:
        """Return the payload while it is fresh, otherwise purge it."""
        entry = await self._read(key)
        if entry is None:
            return None
        if entry.age(self._clock()) > self._fresh:
            await self.remove(key)
            return None
        logger.debug("cache hit %s", key)
        return entry.payload

    async def get_with_stale(self, key: str) -> StaleRead:
        """Return the payload within the stale window, flagging staleness."""
        entry = await self._read(key)
        if entry is None:
            return StaleRead(None, False)
        age = entry.age(self._clock())
        if age > self._stale:
            await self.remove(key)
            return StaleRead(None, False)
        is_stale = age > self._fresh
        logger.debug("cache hit %s (stale=%s)", key, is_stale)
        return StaleRead(entry.payload, is_stale)

    async def set(self, key: str, payload: Any) -> None:
        """Store a payload stamped with the current time.

        On a storage failure the whole store is cleared and the write is
        retried once. A second failure is logged and dropped.
        """
        raw = _encode(CacheEntry(payload=payload, timestamp=self._clock()))
        try:
            await self._adapter.set_item(key, raw)
            return
        except StorageError:
            logger.info("cache write failed for %s, clearing cache and retrying", key)

        try:
            await self._adapter.clear()
            await self._adapter.set_item(key, raw)
        except StorageError as e:
            logger.warning("cache write dropped for %s: %s", key, e)

    async def remove(self, key: str) -> None:
        """Delete one entry. Idempotent, never raises."""
        try:
            await self._adapter.remove_item(key)
        except StorageError:
            logger.debug("cache remove failed for %s", key, exc_info=True)

    async def clear_by_prefix(self, prefix: str) -> None:
        """Delete every entry whose key starts with ``prefix``."""
        try:
            keys = await self._adapter.keys()
        except StorageError:
            logger.debug("cache key listing failed", exc_info=True)
            return
        for key in keys:
            if key.startswith(prefix):
                await self.remove(key)

    async def clear(self) -> None:
        """Delete every entry."""
        try:
            await self._adapter.clear()
        except StorageError:
            logger.debug("cache clear failed", exc_info=True)


__all__ = ["DEFAULT_FRESH_WINDOW", "DEFAULT_STALE_WINDOW", "ResponseCache"]
