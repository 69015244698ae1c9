"""Normalization of list payloads and client failures."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any

from entitydesk.client.errors import ApiHTTPError, ShapeError, TransportError
from entitydesk.schemas.common import MutationResult, PaginatedResult

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "Unknown error"
NETWORK_ERROR_MESSAGE = "Network error"


@dataclass(slots=True, frozen=True)
class BareArray:
    """List endpoint answered with the full, unpaginated row list."""

    rows: list[dict[str, Any]] = field(default_factory=list)


@dataclass(slots=True, frozen=True)
class ListEnvelope:
    """List endpoint answered with rows plus pagination metadata."""

    rows: list[dict[str, Any]]
    total_count: int
    total_pages: int


ListPayload = BareArray | ListEnvelope


def classify_list_payload(raw: Any, *, page_size: int | None = None) -> ListPayload:
    """Resolve a raw list response body into ``BareArray`` or ``ListEnvelope``.

    An envelope missing ``totalCount`` counts its rows. An envelope missing
    ``totalPages`` derives it from ``page_size`` when known and otherwise
    reports a single page; an empty result always has zero pages. A
    server-supplied ``totalPages`` is trusted even if it disagrees with the
    current page size, unless it reports zero pages for a non-empty result.
    """

    if isinstance(raw, list):
        return BareArray(rows=_validate_rows(raw))
    if not isinstance(raw, dict) or "data" not in raw:
        raise ShapeError(f"Unexpected list payload type: {type(raw).__name__}")

    rows = raw.get("data")
    if not isinstance(rows, list):
        raise ShapeError("List envelope 'data' is not an array")
    clean_rows = _validate_rows(rows)

    total_count = _optional_count(raw.get("totalCount"), "totalCount")
    if total_count is None:
        total_count = len(clean_rows)

    total_pages = _optional_count(raw.get("totalPages"), "totalPages")
    if total_pages is None or (total_pages == 0 and total_count > 0):
        total_pages = synthesize_total_pages(total_count, page_size)

    return ListEnvelope(rows=clean_rows, total_count=total_count, total_pages=total_pages)


def synthesize_total_pages(total_count: int, page_size: int | None) -> int:
    """Compute page count when the server did not report one."""

    if total_count <= 0:
        return 0
    if page_size and page_size > 0:
        return math.ceil(total_count / page_size)
    return 1


def to_paginated(payload: ListPayload) -> PaginatedResult[dict[str, Any]]:
    """Turn the tagged list payload into the canonical paginated shape."""

    if isinstance(payload, BareArray):
        return PaginatedResult(data=list(payload.rows), total_count=len(payload.rows), total_pages=1)
    return PaginatedResult(
        data=list(payload.rows),
        total_count=payload.total_count,
        total_pages=payload.total_pages,
    )


def extract_error_message(payload: Any) -> str | None:
    """Pull a human-readable message out of a backend error body."""

    if isinstance(payload, str):
        return payload.strip() or None
    if not isinstance(payload, dict):
        return None
    message = payload.get("message")
    if isinstance(message, str) and message.strip():
        return message.strip()
    if isinstance(message, list) and message:
        return ", ".join(str(item) for item in message)
    error = payload.get("error")
    if isinstance(error, str) and error.strip():
        return error.strip()
    if isinstance(error, dict):
        nested = error.get("message")
        if isinstance(nested, str) and nested.strip():
            return nested.strip()
    detail = payload.get("detail")
    if isinstance(detail, str) and detail.strip():
        return detail.strip()
    return None


def error_to_result(exc: Exception, empty: Any) -> MutationResult[Any]:
    """Convert a failure below the client boundary into a ``MutationResult``."""

    if isinstance(exc, ApiHTTPError):
        message = extract_error_message(exc.payload) or str(exc) or GENERIC_ERROR_MESSAGE
        return MutationResult(status=exc.status_code, error=message, data=empty)
    if isinstance(exc, TransportError):
        return MutationResult(status=500, error=str(exc) or NETWORK_ERROR_MESSAGE, data=empty)
    if isinstance(exc, ShapeError):
        logger.warning("entitydesk.shape_error detail=%s", exc)
        return MutationResult(status=200, data=empty)
    return MutationResult(status=500, error=GENERIC_ERROR_MESSAGE, data=empty)


def _validate_rows(rows: list[Any]) -> list[dict[str, Any]]:
    if not all(isinstance(row, dict) for row in rows):
        raise ShapeError("List rows must be JSON objects")
    return list(rows)


def _optional_count(value: Any, name: str) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ShapeError(f"'{name}' is not a number")
    count = int(value)
    if count < 0:
        raise ShapeError(f"'{name}' is negative")
    return count
