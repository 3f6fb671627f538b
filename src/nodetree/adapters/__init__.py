"""Storage adapters for the nodetree response cache (async only)."""

from contextlib import suppress

from nodetree.adapters.base import AsyncStorageAdapter
from nodetree.adapters.memory import AsyncMemoryAdapter

# Optional adapters - only available when dependencies are installed
with suppress(ImportError):
    from nodetree.adapters.redis import AsyncRedisAdapter

__all__ = [
    "AsyncMemoryAdapter",
    "AsyncRedisAdapter",
    "AsyncStorageAdapter",
]
