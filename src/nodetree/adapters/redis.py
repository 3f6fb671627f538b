"""Redis storage adapter."""

from __future__ import annotations

from typing import Any

from redis.exceptions import RedisError

from nodetree.errors import StorageError


class AsyncRedisAdapter:
    """Async Redis storage adapter.

    All keys live under ``<prefix>:`` so ``keys()`` and ``clear()`` only
    ever touch this client's namespace.
    """

    def __init__(
        self,
        client: Any,  # redis.asyncio.Redis
        *,
        prefix: str = "nodetree",
    ) -> None:
        self._client = client
        self._prefix = prefix

    def _full_key(self, key: str) -> str:
        """Generate full Redis key for an item."""
        return f"{self._prefix}:{key}"

    def _strip(self, full_key: bytes | str) -> str:
        if isinstance(full_key, bytes):
            full_key = full_key.decode("utf-8")
        return full_key[len(self._prefix) + 1 :]

    async def _scan(self) -> list[bytes | str]:
        """Collect every Redis key in this adapter's namespace."""
        found: list[bytes | str] = []
        cursor: int = 0
        pattern = f"{self._prefix}:*"
        while True:
            result = await self._client.scan(cursor, match=pattern, count=100)
            cursor = result[0]
            found.extend(result[1])
            if cursor == 0:
                break
        return found

    async def get_item(self, key: str) -> str | None:
        """Get the stored string for a key."""
        try:
            data = await self._client.get(self._full_key(key))
        except RedisError as e:
            raise StorageError(f"Redis read failed for {key!r}") from e
        if data is None:
            return None
        if isinstance(data, bytes):
            return data.decode("utf-8")
        return str(data)

    async def set_item(self, key: str, value: str) -> None:
        """Store a string under a key."""
        try:
            await self._client.set(self._full_key(key), value)
        except RedisError as e:
            raise StorageError(f"Redis write failed for {key!r}") from e

    async def remove_item(self, key: str) -> None:
        """Delete a key."""
        try:
            await self._client.delete(self._full_key(key))
        except RedisError as e:
            raise StorageError(f"Redis delete failed for {key!r}") from e

    async def keys(self) -> list[str]:
        """List every key in the namespace."""
        try:
            return [self._strip(k) for k in await self._scan()]
        except RedisError as e:
            raise StorageError("Redis scan failed") from e

    async def clear(self) -> None:
        """Delete every key in the namespace."""
        try:
            keys = await self._scan()
            if keys:
                await self._client.delete(*keys)
        except RedisError as e:
            raise StorageError("Redis clear failed") from e

    async def disconnect(self) -> None:
        """Close the Redis connection."""
        await self._client.aclose()
