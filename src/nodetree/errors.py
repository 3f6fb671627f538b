"""Exception hierarchy for the nodetree client."""

from __future__ import annotations


class NodetreeError(Exception):
    """Base class for every error raised by this package."""


class NetworkError(NodetreeError):
    """The request never produced an HTTP response."""


class RequestTimeoutError(NetworkError):
    """A request attempt exceeded its deadline."""


class HttpError(NodetreeError):
    """The API answered with a non-OK status."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    def __repr__(self) -> str:
        return f"HttpError({self.message!r}, status_code={self.status_code})"


class StorageError(NodetreeError):
    """The key-value store rejected an operation.

    Never escapes ``ResponseCache``; a failed cache read is a miss and a
    failed write is dropped.
    """


class StorageQuotaExceededError(StorageError):
    """A write would exceed the store's size quota."""


__all__ = [
    "HttpError",
    "NetworkError",
    "NodetreeError",
    "RequestTimeoutError",
    "StorageError",
    "StorageQuotaExceededError",
]
