"""Core types for the nodetree client."""

from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Generic, NamedTuple, TypeVar

T = TypeVar("T")

# JSON envelope returned by every API route: {"success", "data", "message"?}
Envelope = dict[str, Any]


@dataclass(frozen=True, slots=True)
class CacheEntry(Generic[T]):
    """A cached payload with its write time."""

    payload: T
    timestamp: int  # Unix timestamp ms

    def age(self, now: int) -> int:
        return now - self.timestamp


class StaleRead(NamedTuple):
    """Result of a stale-while-revalidate cache read."""

    payload: Any | None
    is_stale: bool


# Duration type alias
Duration = str | int | timedelta  # "30s", "5m", "2h", "1d", ms, or timedelta
