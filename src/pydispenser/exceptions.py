"""Custom exception hierarchy for pydispenser."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any


class DispenserError(Exception):
    """Base exception for all pydispenser errors."""


class DispenserConfigError(DispenserError):
    """Invalid or missing configuration."""


class MissingTokenError(DispenserError):
    """No access token available for a remote call."""

    def __init__(self, message: str = "No authentication token provided") -> None:
        super().__init__(message)


class ValidationError(DispenserError, ValueError):
    """Device data rejected locally, before any remote call.

    ``field`` names the first failing input field (e.g. ``"floor_number"``).
    """

    def __init__(self, message: str, *, field: str = "") -> None:
        self.field = field
        super().__init__(message)


class CacheError(DispenserError):
    """Snapshot storage failure.

    Raised by key-value backends; the persistence cache always swallows it.
    """


def _lookup(container: Any, key: str) -> Any:
    if container is None:
        return None
    if isinstance(container, Mapping):
        return container.get(key)
    return getattr(container, key, None)


def extract_error_message(exc: BaseException, default: str) -> str:
    """Best human-readable message for a gateway rejection.

    Precedence: ``response.data.message`` → ``response.data.error`` →
    ``response.data.detail`` → ``str(exc)`` → *default*.
    """
    data = _lookup(_lookup(exc, "response"), "data")
    for key in ("message", "error", "detail"):
        value = _lookup(data, key)
        if value:
            return str(value)
    text = str(exc)
    return text if text else default


class RemoteError(DispenserError):
    """A RemoteGateway call was rejected (network, HTTP or API failure)."""

    def __init__(self, message: str, *, operation: str = "") -> None:
        self.operation = operation
        super().__init__(message)

    @classmethod
    def from_exception(cls, exc: BaseException, *, operation: str, default: str) -> RemoteError:
        """Wrap *exc*; the caller is expected to ``raise ... from exc``."""
        if isinstance(exc, RemoteError):
            return cls(str(exc), operation=exc.operation or operation)
        return cls(extract_error_message(exc, default), operation=operation)
