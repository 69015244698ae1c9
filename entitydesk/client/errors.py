"""Errors raised below the entity client boundary."""

from __future__ import annotations

from typing import Any


class ClientError(RuntimeError):
    """Base class for failures converted into ``MutationResult`` by the clients."""


class TransportError(ClientError):
    """Raised when a request never produced an HTTP response."""


class ApiHTTPError(ClientError):
    """Raised for non-2xx responses."""

    def __init__(self, status_code: int, payload: Any = None, text: str = "") -> None:
        self.status_code = status_code
        self.payload = payload
        self.text = text
        super().__init__(f"HTTP {status_code}")


class ShapeError(ClientError):
    """Raised when a response body does not match the expected list shape."""


class MissingOrganizationError(ValueError):
    """Raised when an organization-scoped call is made without an organization id."""
