"""Client configuration."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

from nodetree.duration import parse_duration
from nodetree.types import Duration

DEFAULT_API_BASE_URL = "http://localhost:8000/api"


@dataclass(frozen=True, slots=True)
class Settings:
    """Connection, retry and cache settings for a ``ContentClient``."""

    api_base_url: str = DEFAULT_API_BASE_URL
    fresh_window: Duration = "5m"
    stale_window: Duration = "30m"
    retries: int = 3
    timeout: Duration = "10s"
    backoff: Duration = "1s"

    def __post_init__(self) -> None:
        # Fail early on malformed durations
        fresh = parse_duration(self.fresh_window)
        stale = parse_duration(self.stale_window)
        parse_duration(self.timeout)
        parse_duration(self.backoff)
        if stale < fresh:
            raise ValueError("stale_window must not be shorter than fresh_window")
        if self.retries < 1:
            raise ValueError("retries must be at least 1")
        object.__setattr__(self, "api_base_url", self.api_base_url.rstrip("/"))

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        """Build settings from ``NODETREE_*`` environment variables."""
        env = os.environ if environ is None else environ
        defaults = cls()
        retries = env.get("NODETREE_RETRIES")
        return cls(
            api_base_url=env.get("NODETREE_API_URL") or defaults.api_base_url,
            fresh_window=env.get("NODETREE_CACHE_FRESH", defaults.fresh_window),
            stale_window=env.get("NODETREE_CACHE_STALE", defaults.stale_window),
            retries=int(retries) if retries else defaults.retries,
            timeout=env.get("NODETREE_TIMEOUT", defaults.timeout),
            backoff=env.get("NODETREE_BACKOFF", defaults.backoff),
        )

    def url(self, path: str) -> str:
        """Absolute URL of an API path such as ``"work/header"``."""
        return f"{self.api_base_url}/{path.lstrip('/')}"


__all__ = ["DEFAULT_API_BASE_URL", "Settings"]
