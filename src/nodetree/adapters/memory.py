"""In-memory storage adapter (async only)."""

import asyncio

from nodetree.errors import StorageQuotaExceededError


def _item_size(key: str, value: str) -> int:
    """Size of an item as counted against the quota (UTF-16 code units)."""
    return len(key) + len(value)


class AsyncMemoryAdapter:
    """Async in-memory storage adapter with an optional size quota.

    With ``max_bytes`` set, a write that would push the stored total over
    the quota raises ``StorageQuotaExceededError`` and leaves the store
    unchanged, the way ``sessionStorage.setItem`` fails when full.
    """

    def __init__(self, max_bytes: int | None = None) -> None:
        self._items: dict[str, str] = {}
        self._size = 0
        self._max_bytes = max_bytes
        self._lock = asyncio.Lock()

    async def get_item(self, key: str) -> str | None:
        """Get the stored string for a key."""
        async with self._lock:
            return self._items.get(key)

    async def set_item(self, key: str, value: str) -> None:
        """Store a string under a key."""
        async with self._lock:
            previous = self._items.get(key)
            released = _item_size(key, previous) if previous is not None else 0
            size = self._size - released + _item_size(key, value)
            if self._max_bytes is not None and size > self._max_bytes:
                raise StorageQuotaExceededError(
                    f"Writing {key!r} would exceed the {self._max_bytes} byte quota"
                )
            self._items[key] = value
            self._size = size

    async def remove_item(self, key: str) -> None:
        """Delete a key."""
        async with self._lock:
            value = self._items.pop(key, None)
            if value is not None:
                self._size -= _item_size(key, value)

    async def keys(self) -> list[str]:
        """List every stored key."""
        async with self._lock:
            return list(self._items)

    async def clear(self) -> None:
        """Delete every stored key."""
        async with self._lock:
            self._items.clear()
            self._size = 0

    async def disconnect(self) -> None:
        """Disconnect from the storage backend (no-op for memory)."""
        pass

    @property
    def size(self) -> int:
        """Total size currently counted against the quota."""
        return self._size
