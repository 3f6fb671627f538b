"""Base adapter protocol for key-value storage backends."""

from typing import Protocol, runtime_checkable


@runtime_checkable
class AsyncStorageAdapter(Protocol):
    """Async string key-value store, modelled on browser web storage.

    Implementations raise ``StorageError`` when the backend rejects an
    operation (quota exceeded, connection lost).
    """

    async def get_item(self, key: str) -> str | None:
        """Get the stored string for a key."""
        ...

    async def set_item(self, key: str, value: str) -> None:
        """Store a string under a key, replacing any previous value."""
        ...

    async def remove_item(self, key: str) -> None:
        """Delete a key. Missing keys are ignored."""
        ...

    async def keys(self) -> list[str]:
        """List every stored key."""
        ...

    async def clear(self) -> None:
        """Delete every stored key."""
        ...

    async def disconnect(self) -> None:
        """Disconnect from the storage backend."""
        ...
