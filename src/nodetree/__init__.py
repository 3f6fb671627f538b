"""nodetree - Async client for the nodetree content API."""

import logging
from contextlib import suppress

# Adapters (async only)
from nodetree.adapters import (
    AsyncMemoryAdapter,
    AsyncStorageAdapter,
)
from nodetree.auth import AuthAPI, TokenStore

# Cache and network layer
from nodetree.cache import ResponseCache
from nodetree.client import ContentClient
from nodetree.config import Settings

# Duration parsing
from nodetree.duration import parse_duration
from nodetree.errors import (
    HttpError,
    NetworkError,
    NodetreeError,
    RequestTimeoutError,
    StorageError,
    StorageQuotaExceededError,
)
from nodetree.fetch import RequestCoalescer, fetch_with_retry

# Editorial layout
from nodetree.layout import (
    Element,
    FullWidth,
    Hidden,
    ImageGrid,
    Text,
    apply_editorial_layout,
    collect_image_sources,
    strip_editorial_layout,
)
from nodetree.lightbox import Lightbox
from nodetree.markup import layout_html, parse_html, render_html

# Core types
from nodetree.types import (
    CacheEntry,
    Duration,
    Envelope,
    StaleRead,
)

# Optional adapter imports - only available when dependencies are installed
with suppress(ImportError):
    from nodetree.adapters import AsyncRedisAdapter

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"

__all__ = [
    "AsyncMemoryAdapter",
    "AsyncRedisAdapter",
    "AsyncStorageAdapter",
    "AuthAPI",
    "CacheEntry",
    "ContentClient",
    "Duration",
    "Element",
    "Envelope",
    "FullWidth",
    "Hidden",
    "HttpError",
    "ImageGrid",
    "Lightbox",
    "NetworkError",
    "NodetreeError",
    "RequestCoalescer",
    "RequestTimeoutError",
    "ResponseCache",
    "Settings",
    "StaleRead",
    "StorageError",
    "StorageQuotaExceededError",
    "Text",
    "TokenStore",
    "apply_editorial_layout",
    "collect_image_sources",
    "fetch_with_retry",
    "layout_html",
    "parse_html",
    "parse_duration",
    "render_html",
    "strip_editorial_layout",
]
