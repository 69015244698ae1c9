"""CRUD and listing services for schemaless entity documents."""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from entitydesk.models.document import EntityDocument
from entitydesk.schemas.common import PaginatedResult

logger = logging.getLogger(__name__)

DEFAULT_SORT_FIELD = "createdAt"
RANGE_SUFFIXES = ("__gte", "__lte")
SYSTEM_KEYS = frozenset({"_id", "id", "organizationId", "createdAt", "updatedAt"})
MERGED_KEYS = frozenset({"dynamicFields"})


def serialize_document(document: EntityDocument) -> dict[str, Any]:
    """Render a stored document as the JSON row clients see."""

    row: dict[str, Any] = {"_id": document.id}
    row.update(document.body or {})
    if document.organization_id is not None:
        row["organizationId"] = document.organization_id
    row["createdAt"] = _isoformat(document.created_at)
    row["updatedAt"] = _isoformat(document.updated_at)
    return row


def list_documents(
    db: Session,
    entity_type: str,
    *,
    organization_id: str | None = None,
    page: int = 1,
    page_size: int | None = 10,
    sort_field: str | None = None,
    sort_direction: str | None = None,
    search: str | None = None,
    filters: Iterable[tuple[str, str]] = (),
    search_fields: Sequence[str] = ("name",),
) -> PaginatedResult[dict[str, Any]]:
    """Filter, sort and page one entity type.

    Filtering happens on the serialized rows because bodies are free-form
    JSON. ``filters`` holds raw query pairs; a key given more than once
    matches any of its values. A ``page_size`` of ``None`` returns every
    matching row on one page.
    """

    stmt = select(EntityDocument).where(EntityDocument.entity_type == entity_type)
    if organization_id is not None:
        stmt = stmt.where(EntityDocument.organization_id == organization_id)
    rows = [serialize_document(document) for document in db.scalars(stmt.order_by(EntityDocument.created_at.desc())).all()]

    term = (search or "").strip().lower()
    if term:
        rows = [row for row in rows if _matches_search(row, term, search_fields)]

    grouped: dict[str, list[str]] = {}
    for key, value in filters:
        grouped.setdefault(key, []).append(value)
    for key, values in grouped.items():
        rows = [row for row in rows if _matches_filter(row, key, values)]

    if sort_field:
        rows = _sort_rows(rows, sort_field, sort_direction or "asc")
    else:
        rows = _sort_rows(rows, DEFAULT_SORT_FIELD, sort_direction or "desc")

    total_count = len(rows)
    if page_size is None:
        return PaginatedResult(data=rows, total_count=total_count, total_pages=1 if rows else 0)
    start = (page - 1) * page_size
    return PaginatedResult(
        data=rows[start : start + page_size],
        total_count=total_count,
        total_pages=math.ceil(total_count / page_size),
    )


def get_document(
    db: Session,
    entity_type: str,
    document_id: str,
    *,
    organization_id: str | None = None,
) -> dict[str, Any] | None:
    document = _load(db, entity_type, document_id, organization_id)
    return serialize_document(document) if document is not None else None


def get_oldest_document(db: Session, entity_type: str) -> dict[str, Any] | None:
    """Return the first document ever created for ``entity_type``."""

    document = db.scalar(
        select(EntityDocument)
        .where(EntityDocument.entity_type == entity_type)
        .order_by(EntityDocument.created_at.asc())
        .limit(1)
    )
    return serialize_document(document) if document is not None else None


def create_document(
    db: Session,
    entity_type: str,
    payload: Mapping[str, Any],
    *,
    organization_id: str | None = None,
) -> dict[str, Any]:
    """Store a new document; system keys in ``payload`` are ignored."""

    document = EntityDocument(
        entity_type=entity_type,
        organization_id=organization_id,
        body=_clean_body(payload),
    )
    db.add(document)
    db.commit()
    db.refresh(document)
    logger.info("entitydesk.document_created entity=%s id=%s org=%s", entity_type, document.id, organization_id)
    return serialize_document(document)


def update_document(
    db: Session,
    entity_type: str,
    document_id: str,
    payload: Mapping[str, Any],
    *,
    organization_id: str | None = None,
) -> dict[str, Any] | None:
    """Merge ``payload`` into a stored document.

    Top-level keys replace existing values; ``dynamicFields`` is merged key
    by key so single-field edits keep the other dynamic values.
    """

    document = _load(db, entity_type, document_id, organization_id)
    if document is None:
        return None
    body = dict(document.body or {})
    for key, value in _clean_body(payload).items():
        if key in MERGED_KEYS and isinstance(value, Mapping) and isinstance(body.get(key), Mapping):
            body[key] = {**body[key], **value}
        else:
            body[key] = value
    document.body = body
    db.commit()
    db.refresh(document)
    return serialize_document(document)


def delete_document(
    db: Session,
    entity_type: str,
    document_id: str,
    *,
    organization_id: str | None = None,
) -> bool:
    document = _load(db, entity_type, document_id, organization_id)
    if document is None:
        return False
    db.delete(document)
    db.commit()
    return True


def delete_documents(
    db: Session,
    entity_type: str,
    document_ids: Sequence[str],
    *,
    organization_id: str | None = None,
) -> int:
    """Delete several documents; unknown ids are skipped."""

    clean_ids = sorted({document_id.strip() for document_id in document_ids if document_id.strip()})
    if not clean_ids:
        return 0
    stmt = delete(EntityDocument).where(
        EntityDocument.entity_type == entity_type,
        EntityDocument.id.in_(clean_ids),
    )
    if organization_id is not None:
        stmt = stmt.where(EntityDocument.organization_id == organization_id)
    deleted = db.execute(stmt).rowcount or 0
    db.commit()
    logger.info("entitydesk.documents_deleted entity=%s requested=%d deleted=%d", entity_type, len(clean_ids), deleted)
    return deleted


def resolve_field(row: Mapping[str, Any], field: str) -> Any:
    value: Any = row
    for part in field.split("."):
        if not isinstance(value, Mapping):
            return None
        value = value.get(part)
    return value


def _load(db: Session, entity_type: str, document_id: str, organization_id: str | None) -> EntityDocument | None:
    stmt = select(EntityDocument).where(
        EntityDocument.entity_type == entity_type,
        EntityDocument.id == document_id.strip(),
    )
    if organization_id is not None:
        stmt = stmt.where(EntityDocument.organization_id == organization_id)
    return db.scalar(stmt)


def _clean_body(payload: Mapping[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in payload.items() if key not in SYSTEM_KEYS}


def _matches_search(row: Mapping[str, Any], term: str, search_fields: Sequence[str]) -> bool:
    for field in search_fields:
        value = resolve_field(row, field)
        if value is not None and not isinstance(value, (dict, list)) and term in str(value).lower():
            return True
    return False


def _matches_filter(row: Mapping[str, Any], key: str, values: list[str]) -> bool:
    for suffix in RANGE_SUFFIXES:
        if key.endswith(suffix):
            actual = resolve_field(row, key[: -len(suffix)])
            return all(_in_range(actual, value, suffix) for value in values)
    actual = resolve_field(row, key)
    if len(values) > 1:
        return any(_matches_value(actual, value, exact=True) for value in values)
    return _matches_value(actual, values[0], exact=False)


def _matches_value(actual: Any, raw: str, *, exact: bool) -> bool:
    if actual is None:
        return False
    if isinstance(actual, list):
        return any(_matches_value(item, raw, exact=True) for item in actual)
    if isinstance(actual, bool):
        lowered = raw.strip().lower()
        return lowered in {"true", "false"} and actual == (lowered == "true")
    if isinstance(actual, (int, float)):
        number = _to_number(raw)
        return number is not None and float(actual) == number
    if isinstance(actual, dict):
        return False
    text = str(actual).lower()
    needle = raw.strip().lower()
    return text == needle if exact else needle in text


def _in_range(actual: Any, raw: str, suffix: str) -> bool:
    if actual is None or isinstance(actual, (bool, dict, list)):
        return False
    if isinstance(actual, (int, float)):
        bound: Any = _to_number(raw)
        if bound is None:
            return False
        value: Any = float(actual)
    else:
        bound, value = raw.strip(), str(actual)
    return value >= bound if suffix == "__gte" else value <= bound


def _to_number(raw: str) -> float | None:
    try:
        return float(raw)
    except ValueError:
        return None


def _sort_rows(rows: list[dict[str, Any]], field: str, direction: str) -> list[dict[str, Any]]:
    present = [row for row in rows if resolve_field(row, field) is not None]
    missing = [row for row in rows if resolve_field(row, field) is None]
    present.sort(key=lambda row: _sort_key(resolve_field(row, field)), reverse=direction == "desc")
    return present + missing


def _sort_key(value: Any) -> tuple[int, Any]:
    if isinstance(value, bool):
        return (0, int(value))
    if isinstance(value, (int, float)):
        return (0, value)
    return (1, str(value).lower())


def _isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None
