"""Uniform CRUD routes generated for every entity definition."""

from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Path, Request
from sqlalchemy.orm import Session

from entitydesk.config import get_settings
from entitydesk.db.dependencies import get_db
from entitydesk.entities import ENTITY_DEFINITIONS, EntityDefinition
from entitydesk.schemas.common import BulkDeleteRequest, BulkDeleteResult, DeleteResult, JsonDocument, PaginatedResult
from entitydesk.services.documents import (
    create_document,
    delete_document,
    delete_documents,
    get_document,
    get_oldest_document,
    list_documents,
    update_document,
)

LIST_CONTROL_KEYS = frozenset({"page", "pageSize", "sortField", "sortDirection", "search", "organizationId"})


def build_entity_router(definition: EntityDefinition) -> APIRouter:
    """Build list/get/create/update/delete routes for one entity type."""

    router = APIRouter(prefix=definition.base_path)
    label = definition.name

    def scope(request: Request, body: JsonDocument | None = None) -> str | None:
        if not definition.org_scoped:
            return None
        organization_id = (request.query_params.get("organizationId") or "").strip()
        if not organization_id and body is not None:
            organization_id = str(body.get("organizationId") or "").strip()
        if not organization_id:
            raise HTTPException(status_code=400, detail="organizationId is required")
        return organization_id

    @router.get("", response_model=list[JsonDocument] if definition.bare_list else PaginatedResult[JsonDocument])
    def list_entities(request: Request, db: Session = Depends(get_db)) -> Any:
        """List one page of records, or all of them for bare-list entities."""

        organization_id = scope(request)
        params = request.query_params
        page = _positive_int(params.get("page"), "page", 1)
        page_size = min(
            _positive_int(params.get("pageSize"), "pageSize", get_settings().default_page_size),
            get_settings().max_page_size,
        )
        sort_direction = (params.get("sortDirection") or "").lower() or None
        if sort_direction not in (None, "asc", "desc"):
            raise HTTPException(status_code=400, detail="sortDirection must be 'asc' or 'desc'")

        result = list_documents(
            db,
            label,
            organization_id=organization_id,
            page=page,
            page_size=None if definition.bare_list else page_size,
            sort_field=(params.get("sortField") or "").strip() or None,
            sort_direction=sort_direction,
            search=params.get("search"),
            filters=[(key, value) for key, value in params.multi_items() if key not in LIST_CONTROL_KEYS],
            search_fields=definition.search_fields,
        )
        if definition.bare_list:
            return result.data
        return result

    if definition.has_current_route:

        @router.get("/current", response_model=JsonDocument)
        def get_current_entity(db: Session = Depends(get_db)) -> JsonDocument:
            """Return the record of the calling tenant; the oldest one without authentication."""

            current = get_oldest_document(db, label)
            if current is None:
                raise HTTPException(status_code=404, detail=f"No current {label} record")
            return current

    @router.get("/{entity_id}", response_model=JsonDocument)
    def get_entity(
        request: Request,
        entity_id: str = Path(..., min_length=1),
        db: Session = Depends(get_db),
    ) -> JsonDocument:
        """Fetch one record."""

        document = get_document(db, label, entity_id, organization_id=scope(request))
        if document is None:
            raise HTTPException(status_code=404, detail=f"{label} record not found")
        return document

    @router.post("", response_model=JsonDocument, status_code=201)
    def create_entity(
        request: Request,
        payload: JsonDocument = Body(...),
        db: Session = Depends(get_db),
    ) -> JsonDocument:
        """Create one record."""

        return create_document(db, label, payload, organization_id=scope(request, payload))

    @router.api_route("/{entity_id}", methods=["PUT", "PATCH"], response_model=JsonDocument)
    def update_entity(
        request: Request,
        payload: JsonDocument = Body(...),
        entity_id: str = Path(..., min_length=1),
        db: Session = Depends(get_db),
    ) -> JsonDocument:
        """Merge fields into one record."""

        updated = update_document(db, label, entity_id, payload, organization_id=scope(request))
        if updated is None:
            raise HTTPException(status_code=404, detail=f"{label} record not found")
        return updated

    @router.delete("/{entity_id}", response_model=DeleteResult)
    def remove_entity(
        request: Request,
        entity_id: str = Path(..., min_length=1),
        db: Session = Depends(get_db),
    ) -> DeleteResult:
        """Delete one record."""

        deleted = delete_document(db, label, entity_id, organization_id=scope(request))
        if not deleted:
            raise HTTPException(status_code=404, detail=f"{label} record not found")
        return DeleteResult(id=entity_id, deleted=True)

    @router.delete("", response_model=BulkDeleteResult)
    def remove_entities(
        request: Request,
        payload: BulkDeleteRequest,
        db: Session = Depends(get_db),
    ) -> BulkDeleteResult:
        """Delete several records at once."""

        deleted = delete_documents(db, label, payload.ids, organization_id=scope(request))
        return BulkDeleteResult(deleted_count=deleted)

    return router


def build_entity_routers() -> list[APIRouter]:
    return [build_entity_router(definition) for definition in ENTITY_DEFINITIONS.values()]


def _positive_int(raw: str | None, name: str, default: int) -> int:
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=f"{name} must be an integer") from exc
    if value < 1:
        raise HTTPException(status_code=400, detail=f"{name} must be >= 1")
    return value
