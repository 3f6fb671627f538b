"""Tests for resilient fetch and request coalescing."""

import asyncio
import json
from collections.abc import AsyncIterator

import httpx
import pytest
import respx

from nodetree import (
    NetworkError,
    RequestCoalescer,
    RequestTimeoutError,
    fetch_with_retry,
)

URL = "https://api.test.dev/api/work"


@pytest.fixture
async def http() -> AsyncIterator[httpx.AsyncClient]:
    async with httpx.AsyncClient() as client:
        yield client


def counting_transport(
    *, delay: float = 0.0, status: int = 200, body: object = None
) -> tuple[httpx.MockTransport, list[httpx.Request]]:
    """Async mock transport that records requests and may respond slowly."""
    seen: list[httpx.Request] = []

    async def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if delay:
            await asyncio.sleep(delay)
        return httpx.Response(status, json=body if body is not None else {"ok": True})

    return httpx.MockTransport(handler), seen


class TestFetchWithRetry:
    """Tests for retry, backoff and timeout behavior."""

    @respx.mock
    async def test_success_short_circuits(self, http: httpx.AsyncClient) -> None:
        route = respx.get(URL).mock(return_value=httpx.Response(200, json={"a": 1}))

        response = await fetch_with_retry(http, URL, backoff=0)

        assert response.status_code == 200
        assert response.json() == {"a": 1}
        assert route.call_count == 1

    @respx.mock
    async def test_retries_server_errors_then_succeeds(
        self, http: httpx.AsyncClient
    ) -> None:
        route = respx.get(URL).mock(
            side_effect=[
                httpx.Response(500),
                httpx.Response(503),
                httpx.Response(200, json={"ok": True}),
            ]
        )

        response = await fetch_with_retry(http, URL, retries=3, backoff=0)

        assert response.status_code == 200
        assert route.call_count == 3

    @respx.mock
    async def test_returns_last_server_error(self, http: httpx.AsyncClient) -> None:
        """Exhausted server errors come back as a response, not an exception."""
        route = respx.get(URL).mock(
            side_effect=[
                httpx.Response(500, json={"n": 1}),
                httpx.Response(500, json={"n": 2}),
                httpx.Response(500, json={"n": 3}),
            ]
        )

        response = await fetch_with_retry(http, URL, retries=3, backoff=0)

        assert response.status_code == 500
        assert response.json() == {"n": 3}
        assert route.call_count == 3

    @respx.mock
    async def test_client_errors_are_not_retried(
        self, http: httpx.AsyncClient
    ) -> None:
        route = respx.get(URL).mock(return_value=httpx.Response(404))

        response = await fetch_with_retry(http, URL, retries=3, backoff=0)

        assert response.status_code == 404
        assert route.call_count == 1

    @respx.mock
    async def test_connection_errors_are_retried(
        self, http: httpx.AsyncClient
    ) -> None:
        route = respx.get(URL).mock(
            side_effect=[httpx.ConnectError("refused"), httpx.Response(200)]
        )

        response = await fetch_with_retry(http, URL, retries=3, backoff=0)

        assert response.status_code == 200
        assert route.call_count == 2

    @respx.mock
    async def test_connection_error_after_last_attempt(
        self, http: httpx.AsyncClient
    ) -> None:
        route = respx.get(URL).mock(side_effect=httpx.ConnectError("refused"))

        with pytest.raises(NetworkError) as excinfo:
            await fetch_with_retry(http, URL, retries=2, backoff=0)

        assert not isinstance(excinfo.value, RequestTimeoutError)
        assert isinstance(excinfo.value.__cause__, httpx.ConnectError)
        assert route.call_count == 2

    @respx.mock
    async def test_httpx_timeout_is_classified_as_timeout(
        self, http: httpx.AsyncClient
    ) -> None:
        respx.get(URL).mock(side_effect=httpx.ReadTimeout("slow"))

        with pytest.raises(RequestTimeoutError):
            await fetch_with_retry(http, URL, retries=1, backoff=0)

    async def test_never_responding_endpoint_times_out(self) -> None:
        transport, seen = counting_transport(delay=10)
        async with httpx.AsyncClient(transport=transport) as http:
            with pytest.raises(RequestTimeoutError):
                await fetch_with_retry(http, URL, retries=2, timeout=100, backoff=0)

        assert len(seen) == 2

    @respx.mock
    async def test_linear_backoff(self, http: httpx.AsyncClient) -> None:
        """Attempt n waits backoff * n before the next attempt."""
        respx.get(URL).mock(return_value=httpx.Response(502))
        loop = asyncio.get_running_loop()

        started = loop.time()
        await fetch_with_retry(http, URL, retries=3, backoff=20)

        assert loop.time() - started >= 0.06

    async def test_retries_must_be_positive(self, http: httpx.AsyncClient) -> None:
        with pytest.raises(ValueError):
            await fetch_with_retry(http, URL, retries=0)

    @respx.mock
    async def test_passes_method_and_body(self, http: httpx.AsyncClient) -> None:
        route = respx.put(URL).mock(return_value=httpx.Response(200))

        await fetch_with_retry(http, URL, method="PUT", json={"title": "t"}, backoff=0)

        assert json.loads(route.calls[0].request.content) == {"title": "t"}


class TestRequestCoalescer:
    """Tests for in-flight request sharing."""

    async def test_concurrent_reads_share_one_request(self) -> None:
        transport, seen = counting_transport(delay=0.05, body={"data": [1, 2]})
        async with httpx.AsyncClient(transport=transport) as http:
            coalescer = RequestCoalescer(http, backoff=0)

            responses = await asyncio.gather(*(coalescer.fetch(URL) for _ in range(5)))

        assert len(seen) == 1
        assert all(r.json() == {"data": [1, 2]} for r in responses)
        # Each caller holds its own response object
        assert len({id(r) for r in responses}) == 5

    async def test_registry_is_emptied_after_settling(self) -> None:
        transport, seen = counting_transport(delay=0.01)
        async with httpx.AsyncClient(transport=transport) as http:
            coalescer = RequestCoalescer(http, backoff=0)

            pending = asyncio.ensure_future(coalescer.fetch(URL))
            await asyncio.sleep(0)
            assert coalescer.in_flight("GET", URL)

            await pending
            assert coalescer.pending_count == 0

            # A later call starts a fresh request
            await coalescer.fetch(URL)

        assert len(seen) == 2

    async def test_failures_are_shared_and_cleaned_up(self) -> None:
        async with httpx.AsyncClient() as http:
            coalescer = RequestCoalescer(http, retries=1, backoff=0)
            with respx.mock:
                route = respx.get(URL).mock(side_effect=httpx.ConnectError("down"))

                results = await asyncio.gather(
                    coalescer.fetch(URL), coalescer.fetch(URL), return_exceptions=True
                )

            assert all(isinstance(r, NetworkError) for r in results)
            assert route.call_count == 1
            assert coalescer.pending_count == 0

    async def test_different_urls_are_separate(self) -> None:
        transport, seen = counting_transport(delay=0.01)
        async with httpx.AsyncClient(transport=transport) as http:
            coalescer = RequestCoalescer(http, backoff=0)
            await asyncio.gather(
                coalescer.fetch(URL), coalescer.fetch(f"{URL}/header")
            )

        assert len(seen) == 2

    async def test_method_is_part_of_key(self) -> None:
        assert RequestCoalescer.request_key("get", URL) == f"GET:{URL}"
        assert RequestCoalescer.request_key("GET", URL) != RequestCoalescer.request_key(
            "POST", URL
        )

    async def test_cancelled_caller_does_not_cancel_others(self) -> None:
        transport, seen = counting_transport(delay=0.05)
        async with httpx.AsyncClient(transport=transport) as http:
            coalescer = RequestCoalescer(http, backoff=0)

            first = asyncio.ensure_future(coalescer.fetch(URL))
            second = asyncio.ensure_future(coalescer.fetch(URL))
            await asyncio.sleep(0.01)
            first.cancel()

            response = await second

        assert response.status_code == 200
        assert len(seen) == 1
