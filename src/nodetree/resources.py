"""Resource façades over the content API.

Reads go through the response cache and the request coalescer. SWR
resources serve stale entries immediately and refresh them in the
background; plain resources only serve fresh entries. Writes go straight
to the network and invalidate the affected cache keys on success.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote, urlencode

import httpx

from nodetree import keys
from nodetree.auth import TokenStore
from nodetree.cache import ResponseCache
from nodetree.config import Settings
from nodetree.errors import HttpError, NodetreeError
from nodetree.fetch import RequestCoalescer, fetch_with_retry
from nodetree.tasks import BackgroundTasks
from nodetree.types import Envelope

logger = logging.getLogger(__name__)

# Returned by city lookups that failed, so a page renders without city data
EMPTY_CITY_DATA: Envelope = {"success": True, "data": None}


def _is_cacheable(data: Envelope, list_data: bool) -> bool:
    """Only successful, non-empty payloads are cached."""
    if not isinstance(data, dict) or data.get("success") is not True:
        return False
    if list_data:
        items = data.get("data")
        return isinstance(items, list) and len(items) > 0
    return True


def _parse_json(response: httpx.Response, label: str) -> Envelope:
    try:
        return response.json()
    except ValueError as e:
        raise HttpError(f"Invalid response for {label}", response.status_code) from e


def _error_message(response: httpx.Response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        message = body.get("message")
        if isinstance(message, str) and message:
            return message
    return None


@dataclass
class ApiSession:
    """Everything the façades share: HTTP client, cache, coalescer, token."""

    settings: Settings
    http: httpx.AsyncClient
    cache: ResponseCache
    coalescer: RequestCoalescer
    tokens: TokenStore
    background: BackgroundTasks

    async def fetch_envelope(self, path: str, label: str) -> Envelope:
        """Coalesced GET of an envelope; non-OK raises ``HttpError``."""
        response = await self.coalescer.fetch(self.settings.url(path))
        if not response.is_success:
            raise HttpError(f"Failed to fetch {label}", response.status_code)
        return _parse_json(response, label)

    async def read(
        self,
        path: str,
        cache_key: str,
        *,
        label: str,
        list_data: bool = False,
        swr: bool = True,
        force_refresh: bool = False,
    ) -> Envelope:
        """Cached read of ``path`` stored under ``cache_key``."""
        if not force_refresh:
            if swr:
                cached, is_stale = await self.cache.get_with_stale(cache_key)
                if cached is not None:
                    if is_stale:
                        self.refresh_in_background(
                            path, cache_key, label=label, list_data=list_data
                        )
                    return cached
            else:
                cached = await self.cache.get(cache_key)
                if cached is not None:
                    return cached

        logger.debug("cache miss %s, fetching %s", cache_key, path)
        data = await self.fetch_envelope(path, label)
        if _is_cacheable(data, list_data):
            await self.cache.set(cache_key, data)
        return data

    def refresh_in_background(
        self,
        path: str,
        cache_key: str,
        *,
        label: str,
        list_data: bool = False,
    ) -> None:
        """Warm ``cache_key`` from the network without blocking the caller."""

        async def refresh() -> None:
            data = await self.fetch_envelope(path, label)
            if _is_cacheable(data, list_data):
                await self.cache.set(cache_key, data)

        self.background.spawn(refresh(), name=f"refresh:{cache_key}")

    async def send(
        self,
        method: str,
        path: str,
        *,
        verb: str,
        label: str,
        json: Any = None,
        invalidates: Iterable[str] = (),
        authenticated: bool = True,
    ) -> Envelope:
        """Direct, uncoalesced request; invalidates cache keys on success."""
        headers = {"Content-Type": "application/json"}
        if authenticated:
            headers.update(await self.tokens.headers())

        request_kwargs: dict[str, Any] = {"headers": headers}
        if json is not None:
            request_kwargs["json"] = json
        response = await fetch_with_retry(
            self.http,
            self.settings.url(path),
            method=method,
            retries=1,
            timeout=self.settings.timeout,
            **request_kwargs,
        )
        if not response.is_success:
            message = _error_message(response)
            raise HttpError(
                message or f"Failed to {verb} {label} ({response.status_code})",
                response.status_code,
            )
        data = _parse_json(response, label)
        for key in invalidates:
            await self.cache.remove(key)
        return data


class Resource:
    """Base class for a façade bound to an ``ApiSession``."""

    def __init__(self, session: ApiSession) -> None:
        self._session = session


class _PostCollection(Resource):
    """Ordered post list with an editable page header."""

    path: str
    posts_key: str
    header_key: str
    label: str

    async def get_all_posts(self, *, force_refresh: bool = False) -> Envelope:
        return await self._session.read(
            self.path,
            self.posts_key,
            label=f"{self.label} posts",
            list_data=True,
            force_refresh=force_refresh,
        )

    async def create_post(self, post: dict[str, Any]) -> Envelope:
        return await self._session.send(
            "POST",
            self.path,
            verb="create",
            label=f"{self.label} post",
            json=post,
            invalidates=[self.posts_key],
        )

    async def update_post(self, post_id: str, post: dict[str, Any]) -> Envelope:
        return await self._session.send(
            "PUT",
            f"{self.path}/{quote(str(post_id), safe='')}",
            verb="update",
            label=f"{self.label} post",
            json=post,
            invalidates=[self.posts_key],
        )

    async def delete_post(self, post_id: str) -> Envelope:
        return await self._session.send(
            "DELETE",
            f"{self.path}/{quote(str(post_id), safe='')}",
            verb="delete",
            label=f"{self.label} post",
            invalidates=[self.posts_key],
        )

    async def reorder_posts(self, orders: list[Any]) -> Envelope:
        return await self._session.send(
            "PUT",
            f"{self.path}/reorder",
            verb="reorder",
            label=f"{self.label} posts",
            json={"orders": orders},
            invalidates=[self.posts_key],
        )

    async def get_header(self, *, force_refresh: bool = False) -> Envelope:
        return await self._session.read(
            f"{self.path}/header",
            self.header_key,
            label=f"{self.label} header",
            force_refresh=force_refresh,
        )

    async def update_header(self, header: dict[str, Any]) -> Envelope:
        return await self._session.send(
            "PUT",
            f"{self.path}/header",
            verb="update",
            label=f"{self.label} header",
            json=header,
            invalidates=[self.header_key],
        )


class WorkAPI(_PostCollection):
    path = "work"
    posts_key = keys.WORK_POSTS
    header_key = keys.WORK_HEADER
    label = "work"


class FiledAPI(_PostCollection):
    path = "filed"
    posts_key = keys.FILED_POSTS
    header_key = keys.FILED_HEADER
    label = "filed"


class LocationPostAPI(_PostCollection):
    path = "location"
    posts_key = keys.LOCATION_POSTS
    header_key = keys.LOCATION_HEADER
    label = "location"

    async def get_post(self, post_id: str) -> Envelope:
        """Single post, never cached."""
        return await self._session.fetch_envelope(
            f"{self.path}/{quote(str(post_id), safe='')}", "location post"
        )


class AboutAPI(Resource):
    async def get_about(self, *, force_refresh: bool = False) -> Envelope:
        return await self._session.read(
            "about", keys.ABOUT, label="about content", force_refresh=force_refresh
        )

    async def update_about(self, about: dict[str, Any]) -> Envelope:
        return await self._session.send(
            "PUT",
            "about",
            verb="update",
            label="about content",
            json=about,
            invalidates=[keys.ABOUT],
        )


class CVAPI(Resource):
    async def get_cv(self, *, force_refresh: bool = False) -> Envelope:
        return await self._session.read(
            "cv", keys.CV, label="CV", force_refresh=force_refresh
        )

    async def update_cv(self, cv: dict[str, Any]) -> Envelope:
        return await self._session.send(
            "PUT", "cv", verb="update", label="CV", json=cv, invalidates=[keys.CV]
        )


class LocationVideoAPI(Resource):
    """Location page video plus per-city data."""

    async def get_location(self, *, force_refresh: bool = False) -> Envelope:
        return await self._session.read(
            "location-video",
            keys.LOCATION,
            label="location",
            swr=False,
            force_refresh=force_refresh,
        )

    async def update_location(self, location: dict[str, Any]) -> Envelope:
        return await self._session.send(
            "PUT",
            "location-video",
            verb="update",
            label="location",
            json=location,
            invalidates=[keys.LOCATION],
        )

    async def get_city_data(
        self, city_name: str, *, force_refresh: bool = False
    ) -> Envelope:
        """City data, or an empty success envelope when it cannot be loaded."""
        try:
            return await self._session.read(
                f"location-video/{quote(city_name, safe='')}",
                keys.city_key(city_name),
                label=f"city {city_name}",
                swr=False,
                force_refresh=force_refresh,
            )
        except NodetreeError as e:
            logger.info("city data unavailable for %s: %s", city_name, e)
            return dict(EMPTY_CITY_DATA)

    async def update_city_data(self, city_name: str, data: dict[str, Any]) -> Envelope:
        return await self._session.send(
            "PUT",
            f"location-video/{quote(city_name, safe='')}",
            verb="update",
            label=f"city {city_name}",
            json=data,
            invalidates=[keys.city_key(city_name)],
        )

    async def delete_city_data(self, city_name: str) -> Envelope:
        return await self._session.send(
            "DELETE",
            f"location-video/{quote(city_name, safe='')}",
            verb="delete",
            label=f"city {city_name}",
            invalidates=[keys.city_key(city_name)],
        )

    async def clear_city_cache(self) -> None:
        """Drop every cached city entry."""
        await self._session.cache.clear_by_prefix(keys.CITY_PREFIX)

    async def get_header(self, *, force_refresh: bool = False) -> Envelope:
        return await self._session.read(
            "location-video/header",
            keys.LOCATION_HEADER,
            label="location header",
            force_refresh=force_refresh,
        )

    async def update_header(self, header: dict[str, Any]) -> Envelope:
        return await self._session.send(
            "PUT",
            "location-video/header",
            verb="update",
            label="location header",
            json=header,
            invalidates=[keys.LOCATION_HEADER],
        )


class HumanAPI(Resource):
    async def get_header(self, *, force_refresh: bool = False) -> Envelope:
        return await self._session.read(
            "human/header",
            keys.HUMAN_HEADER,
            label="human header",
            force_refresh=force_refresh,
        )

    async def update_header(self, header: dict[str, Any]) -> Envelope:
        return await self._session.send(
            "PUT",
            "human/header",
            verb="update",
            label="human header",
            json=header,
            invalidates=[keys.HUMAN_HEADER],
        )


class HomeAPI(Resource):
    async def get_home(self, *, force_refresh: bool = False) -> Envelope:
        return await self._session.read(
            "home",
            keys.HOME,
            label="home settings",
            swr=False,
            force_refresh=force_refresh,
        )

    async def update_home(self, home: dict[str, Any]) -> Envelope:
        return await self._session.send(
            "PUT",
            "home",
            verb="update",
            label="home settings",
            json=home,
            invalidates=[keys.HOME],
        )


class ContactAPI(Resource):
    async def get_contact(self, *, force_refresh: bool = False) -> Envelope:
        return await self._session.read(
            "contact",
            keys.CONTACT,
            label="contact",
            swr=False,
            force_refresh=force_refresh,
        )

    async def update_contact(self, contact: dict[str, Any]) -> Envelope:
        return await self._session.send(
            "PUT",
            "contact",
            verb="update",
            label="contact",
            json=contact,
            invalidates=[keys.CONTACT],
        )

    async def send_message(self, message: dict[str, Any]) -> Envelope:
        """Public contact form submission."""
        return await self._session.send(
            "POST",
            "contact/send",
            verb="send",
            label="message",
            json=message,
            authenticated=False,
        )


class GuestbookAPI(Resource):
    async def get_all(self, *, force_refresh: bool = False) -> Envelope:
        return await self._session.read(
            "guestbook",
            keys.GUESTBOOK,
            label="guestbook entries",
            list_data=True,
            force_refresh=force_refresh,
        )

    async def create(self, entry: dict[str, Any]) -> Envelope:
        """Public guestbook entry."""
        return await self._session.send(
            "POST",
            "guestbook",
            verb="create",
            label="guestbook entry",
            json=entry,
            invalidates=[keys.GUESTBOOK],
            authenticated=False,
        )

    async def delete(self, entry_id: str) -> Envelope:
        """Admin only."""
        return await self._session.send(
            "DELETE",
            f"guestbook/{quote(str(entry_id), safe='')}",
            verb="delete",
            label="guestbook entry",
            invalidates=[keys.GUESTBOOK],
        )


class UtilAPI(Resource):
    async def fetch_metadata(self, url: str) -> Envelope:
        """Link preview metadata for ``url``."""
        query = urlencode({"url": url})
        return await self._session.fetch_envelope(
            f"util/fetch-metadata?{query}", "link metadata"
        )


__all__ = [
    "CVAPI",
    "EMPTY_CITY_DATA",
    "AboutAPI",
    "ApiSession",
    "ContactAPI",
    "FiledAPI",
    "GuestbookAPI",
    "HomeAPI",
    "HumanAPI",
    "LocationPostAPI",
    "LocationVideoAPI",
    "Resource",
    "UtilAPI",
    "WorkAPI",
]
