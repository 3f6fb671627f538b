"""Bearer token storage and the auth endpoints."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from nodetree.adapters.base import AsyncStorageAdapter
from nodetree.errors import NodetreeError, StorageError

if TYPE_CHECKING:
    from nodetree.resources import ApiSession
    from nodetree.types import Envelope

logger = logging.getLogger(__name__)

AUTH_TOKEN_KEY = "auth_token"


class TokenStore:
    """Persistent holder of the admin bearer token."""

    def __init__(
        self, adapter: AsyncStorageAdapter, *, key: str = AUTH_TOKEN_KEY
    ) -> None:
        self._adapter = adapter
        self._key = key

    async def get(self) -> str | None:
        """Stored token; an unreadable store reads as no token."""
        try:
            return await self._adapter.get_item(self._key)
        except StorageError:
            logger.warning("token read failed", exc_info=True)
            return None

    async def set(self, token: str) -> None:
        try:
            await self._adapter.set_item(self._key, token)
        except StorageError:
            logger.warning("token write failed", exc_info=True)

    async def clear(self) -> None:
        try:
            await self._adapter.remove_item(self._key)
        except StorageError:
            logger.warning("token removal failed", exc_info=True)

    async def headers(self) -> dict[str, str]:
        """Authorization header when a token is stored, else nothing."""
        token = await self.get()
        if token:
            return {"Authorization": f"Bearer {token}"}
        return {}


class AuthAPI:
    """Login, token verification and logout."""

    def __init__(self, session: ApiSession) -> None:
        self._session = session

    async def login(self, username: str, password: str) -> Envelope:
        """Log in and keep the returned token for admin requests."""
        data = await self._session.send(
            "POST",
            "auth/login",
            verb="log in",
            label="user",
            json={"username": username, "password": password},
            authenticated=False,
        )
        if not isinstance(data, dict):
            return data
        token = data.get("token")
        if data.get("success") and isinstance(token, str) and token:
            await self._session.tokens.set(token)
        return data

    async def verify(self) -> Envelope:
        """Check the stored token against the server."""
        return await self._session.send(
            "GET", "auth/verify", verb="verify", label="token"
        )

    async def logout(self) -> None:
        """Forget the token and every cached response.

        The server call is best effort; the local state is cleared even when
        it fails.
        """
        try:
            await self._session.send(
                "POST", "auth/logout", verb="log out", label="user"
            )
        except NodetreeError as e:
            logger.info("logout request failed: %s", e)
        try:
            await self._session.tokens.clear()
        finally:
            await self._session.cache.clear()


__all__ = ["AUTH_TOKEN_KEY", "AuthAPI", "TokenStore"]
