"""HTTP transport used by the entity clients."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Protocol

import httpx

from entitydesk.client.errors import ApiHTTPError, TransportError
from entitydesk.config import get_settings

logger = logging.getLogger(__name__)

QueryParams = list[tuple[str, str]]


@dataclass(slots=True)
class TransportResponse:
    """Decoded response of a successful request."""

    status_code: int
    payload: Any = None
    text: str = ""


class Transport(Protocol):
    """Protocol for pluggable HTTP transports."""

    async def request(
        self,
        method: str,
        url: str,
        *,
        params: QueryParams | None = None,
        json_body: Any = None,
    ) -> TransportResponse:
        """Send one request and return the decoded 2xx response."""


class HttpxTransport:
    """JSON-over-HTTP transport backed by ``httpx.AsyncClient``.

    Raises ``TransportError`` when no response arrives and ``ApiHTTPError``
    for any non-2xx status. Timeouts are handled here, not by callers.
    """

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    @classmethod
    def from_settings(cls, **client_kwargs: Any) -> HttpxTransport:
        settings = get_settings()
        headers = {"Content-Type": "application/json"}
        if settings.api_token:
            headers["Authorization"] = f"Bearer {settings.api_token}"
        client = httpx.AsyncClient(
            base_url=settings.api_base_url,
            headers=headers,
            timeout=settings.request_timeout_seconds,
            **client_kwargs,
        )
        return cls(client)

    async def request(
        self,
        method: str,
        url: str,
        *,
        params: QueryParams | None = None,
        json_body: Any = None,
    ) -> TransportResponse:
        try:
            response = await self._client.request(
                method.upper(),
                url,
                params=params or None,
                json=json_body,
            )
        except httpx.HTTPError as exc:
            logger.warning("entitydesk.transport_failed method=%s url=%s error=%s", method, url, exc)
            raise TransportError(str(exc) or exc.__class__.__name__) from exc

        payload = _decode_json(response)
        if not response.is_success:
            raise ApiHTTPError(response.status_code, payload, response.text)
        return TransportResponse(status_code=response.status_code, payload=payload, text=response.text)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> HttpxTransport:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


def _decode_json(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
