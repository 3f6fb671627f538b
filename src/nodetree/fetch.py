"""Resilient HTTP fetch and in-flight request coalescing."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from nodetree.duration import parse_duration
from nodetree.errors import NetworkError, RequestTimeoutError
from nodetree.types import Duration

logger = logging.getLogger(__name__)

DEFAULT_RETRIES = 3
DEFAULT_TIMEOUT: Duration = 10_000
DEFAULT_BACKOFF: Duration = 1_000

# Headers describing the wire encoding of the original body; a clone carries
# the already-decoded content so these no longer apply.
_WIRE_HEADERS = frozenset({"content-encoding", "content-length", "transfer-encoding"})


async def fetch_with_retry(
    client: httpx.AsyncClient,
    url: str,
    *,
    method: str = "GET",
    retries: int = DEFAULT_RETRIES,
    timeout: Duration = DEFAULT_TIMEOUT,
    backoff: Duration = DEFAULT_BACKOFF,
    **request_kwargs: Any,
) -> httpx.Response:
    """Send a request with a per-attempt deadline and linear backoff.

    Server errors (status >= 500) are retried while attempts remain; the
    last server error response is returned, not raised. Client errors are
    returned as-is. Timeouts and transport failures are retried the same
    way and raise ``RequestTimeoutError`` / ``NetworkError`` once the
    attempts run out.

    Args:
        client: HTTP client to send through
        url: Absolute URL, or a path relative to the client's base URL
        method: HTTP method
        retries: Total number of attempts
        timeout: Deadline of each attempt
        backoff: Wait unit; attempt ``n`` waits ``backoff * n`` before retrying
        **request_kwargs: Passed to ``httpx.AsyncClient.request``

    Returns:
        The first non-5xx response, or the final 5xx response
    """
    if retries < 1:
        raise ValueError("retries must be at least 1")
    timeout_s = parse_duration(timeout) / 1000
    backoff_s = parse_duration(backoff) / 1000

    for attempt in range(1, retries + 1):
        last_attempt = attempt == retries
        try:
            response = await asyncio.wait_for(
                client.request(method, url, **request_kwargs), timeout=timeout_s
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            if last_attempt:
                raise RequestTimeoutError(
                    f"{method} {url} timed out after {retries} attempt(s)"
                ) from e
            logger.info(
                "request timed out, retry %d/%d: %s %s", attempt, retries, method, url
            )
        except httpx.TransportError as e:
            if last_attempt:
                raise NetworkError(f"{method} {url} failed: {e}") from e
            logger.info(
                "network error (%s), retry %d/%d: %s %s",
                e,
                attempt,
                retries,
                method,
                url,
            )
        else:
            if response.status_code < 500 or last_attempt:
                return response
            logger.info(
                "server error (%d), retry %d/%d: %s %s",
                response.status_code,
                attempt,
                retries,
                method,
                url,
            )

        await asyncio.sleep(backoff_s * attempt)

    raise AssertionError("unreachable")  # pragma: no cover


def clone_response(response: httpx.Response) -> httpx.Response:
    """Copy a fully read response so each holder can consume its body."""
    headers = [
        (name, value)
        for name, value in response.headers.multi_items()
        if name.lower() not in _WIRE_HEADERS
    ]
    return httpx.Response(
        response.status_code,
        headers=headers,
        content=response.content,
        request=response.request,
        extensions=dict(response.extensions),
    )


def _retrieve_exception(task: asyncio.Task[httpx.Response]) -> None:
    # Abandoned requests must not warn about unretrieved exceptions
    if not task.cancelled():
        task.exception()


class RequestCoalescer:
    """Share one in-flight request between concurrent identical reads.

    Requests are keyed by ``"<METHOD>:<URL>"``. Headers and bodies are not
    part of the key, so only idempotent reads should go through here.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        retries: int = DEFAULT_RETRIES,
        timeout: Duration = DEFAULT_TIMEOUT,
        backoff: Duration = DEFAULT_BACKOFF,
    ) -> None:
        self._client = client
        self._retries = retries
        self._timeout = timeout
        self._backoff = backoff
        self._pending: dict[str, asyncio.Task[httpx.Response]] = {}

    @staticmethod
    def request_key(method: str, url: str) -> str:
        return f"{method.upper()}:{url}"

    def in_flight(self, method: str, url: str) -> bool:
        """Check whether a request for this key is currently pending."""
        return self.request_key(method, url) in self._pending

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def fetch(
        self, url: str, *, method: str = "GET", **request_kwargs: Any
    ) -> httpx.Response:
        """Fetch ``url``, joining an identical in-flight request if any.

        Every caller gets its own copy of the response. Cancelling one
        caller does not cancel the shared request.
        """
        key = self.request_key(method, url)
        task = self._pending.get(key)
        if task is None:
            # Registered before the first suspension point
            task = asyncio.ensure_future(self._run(key, url, method, request_kwargs))
            self._pending[key] = task
            task.add_done_callback(_retrieve_exception)
        else:
            logger.debug("joining in-flight request %s", key)

        response = await asyncio.shield(task)
        return clone_response(response)

    async def _run(
        self,
        key: str,
        url: str,
        method: str,
        request_kwargs: dict[str, Any],
    ) -> httpx.Response:
        try:
            return await fetch_with_retry(
                self._client,
                url,
                method=method,
                retries=self._retries,
                timeout=self._timeout,
                backoff=self._backoff,
                **request_kwargs,
            )
        finally:
            self._pending.pop(key, None)


__all__ = [
    "DEFAULT_BACKOFF",
    "DEFAULT_RETRIES",
    "DEFAULT_TIMEOUT",
    "RequestCoalescer",
    "clone_response",
    "fetch_with_retry",
]
