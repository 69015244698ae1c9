"""Parametrized REST client for one entity type."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Literal
from urllib.parse import quote

from entitydesk.client.errors import ClientError, MissingOrganizationError, ShapeError
from entitydesk.client.normalizer import classify_list_payload, error_to_result, to_paginated
from entitydesk.client.transport import QueryParams, Transport, TransportResponse
from entitydesk.schemas.common import MutationResult, PaginatedResult
from entitydesk.schemas.query import QueryDescriptor

logger = logging.getLogger(__name__)

Operation = Literal["fetch", "fetchAll", "create", "update", "delete"]
Row = dict[str, Any]


@dataclass(slots=True, frozen=True)
class RouteOverride:
    """Resolved custom route for one operation."""

    url: str
    method: str | None = None
    params: Mapping[str, str] | None = None


CustomRoute = Callable[[str | None, str | None], "RouteOverride | str"]


@dataclass(slots=True, frozen=True)
class EntityClientConfig:
    """Static configuration of one entity client."""

    base_path: str
    include_org_id: bool = False
    custom_routes: Mapping[Operation, CustomRoute] = field(default_factory=dict)
    id_field: str = "_id"
    update_method: Literal["PUT", "PATCH"] = "PUT"


class EntityApiClient:
    """CRUD client for one entity REST surface.

    Every public call returns a ``MutationResult`` (or the raw list payload
    when ``raw_data_only`` is requested). Transport and HTTP failures never
    propagate past this class. Calls are not retried; ``create`` in
    particular is not idempotent.
    """

    def __init__(self, config: EntityClientConfig, transport: Transport) -> None:
        self.config = config
        self._transport = transport

    @property
    def base_path(self) -> str:
        return self.config.base_path.rstrip("/") or "/"

    async def fetch_all(
        self,
        query: QueryDescriptor | None = None,
        *,
        raw_data_only: bool = False,
        organization_id: str | None = None,
    ) -> MutationResult[PaginatedResult[Row]] | list[Any] | dict[str, Any]:
        """List rows for ``query``.

        With ``raw_data_only`` the successful body is returned untouched;
        failures are still reported as a ``MutationResult`` with ``[]``.
        """

        org_id = self._require_org(organization_id)
        descriptor = query or QueryDescriptor()
        route = self._resolve("fetchAll", self.base_path, None, org_id)
        params = self._params(route, descriptor.to_query_params(), org_id)
        try:
            response = await self._send("GET", route.url, params=params)
        except ClientError as exc:
            return error_to_result(exc, [] if raw_data_only else PaginatedResult())

        if raw_data_only:
            return response.payload if isinstance(response.payload, (list, dict)) else []
        try:
            listing = classify_list_payload(response.payload, page_size=descriptor.page_size)
        except ShapeError as exc:
            logger.warning("entitydesk.list_shape_error path=%s detail=%s", self.base_path, exc)
            return MutationResult(status=response.status_code, data=PaginatedResult())
        return MutationResult(status=response.status_code, data=to_paginated(listing))

    async def fetch(
        self,
        entity_id: str | int | None = None,
        *,
        organization_id: str | None = None,
    ) -> MutationResult[Row]:
        """Fetch one row by id, or through the custom fetch route."""

        org_id = self._require_org(organization_id)
        clean_id = _clean_id(entity_id)
        if clean_id is None and "fetch" not in self.config.custom_routes:
            return MutationResult(status=400, error="An id is required to fetch a record.", data={})
        route = self._resolve("fetch", self._item_url(clean_id), clean_id, org_id)
        try:
            response = await self._send("GET", route.url, params=self._params(route, [], org_id))
        except ClientError as exc:
            return error_to_result(exc, {})
        return MutationResult(status=response.status_code, data=_as_row(response.payload))

    async def create(self, partial: Mapping[str, Any], *, organization_id: str | None = None) -> MutationResult[Row]:
        """Create one row. Not safe to retry."""

        org_id = self._require_org(organization_id)
        body = dict(partial)
        if org_id is not None and not body.get("organizationId"):
            body["organizationId"] = org_id
        route = self._resolve("create", self.base_path, None, org_id)
        try:
            response = await self._send(
                route.method or "POST",
                route.url,
                params=self._params(route, [], org_id),
                json_body=body,
            )
        except ClientError as exc:
            return error_to_result(exc, {})
        return MutationResult(status=response.status_code, data=_as_row(response.payload))

    async def update(self, partial: Mapping[str, Any], *, organization_id: str | None = None) -> MutationResult[Row]:
        """Update one row; the payload must carry the row id."""

        org_id = self._require_org(organization_id)
        clean_id = _clean_id(partial.get(self.config.id_field, partial.get("id")))
        if clean_id is None:
            return MutationResult(status=400, error=f"Update payload is missing '{self.config.id_field}'.", data={})

        route = self._resolve("update", self._item_url(clean_id), clean_id, org_id)
        body = dict(partial)
        if _url_encodes_id(route.url, clean_id):
            body.pop(self.config.id_field, None)
            body.pop("id", None)
        try:
            response = await self._send(
                route.method or self.config.update_method,
                route.url,
                params=self._params(route, [], org_id),
                json_body=body,
            )
        except ClientError as exc:
            return error_to_result(exc, {})
        return MutationResult(status=response.status_code, data=_as_row(response.payload))

    async def delete(self, entity_id: str | int, *, organization_id: str | None = None) -> MutationResult[Row]:
        """Delete one row."""

        org_id = self._require_org(organization_id)
        clean_id = _clean_id(entity_id)
        if clean_id is None:
            return MutationResult(status=400, error="An id is required to delete a record.", data={})
        route = self._resolve("delete", self._item_url(clean_id), clean_id, org_id)
        try:
            response = await self._send(
                route.method or "DELETE",
                route.url,
                params=self._params(route, [], org_id),
            )
        except ClientError as exc:
            return error_to_result(exc, {})
        return MutationResult(status=response.status_code, data=_as_row(response.payload))

    async def delete_many(
        self,
        ids: Sequence[str | int],
        *,
        organization_id: str | None = None,
    ) -> MutationResult[Row]:
        """Delete several rows in one request."""

        org_id = self._require_org(organization_id)
        clean_ids = [clean for clean in (_clean_id(value) for value in ids) if clean is not None]
        if not clean_ids:
            return MutationResult(status=400, error="No ids were given.", data={})
        try:
            response = await self._send(
                "DELETE",
                self.base_path,
                params=self._params(None, [], org_id),
                json_body={"ids": clean_ids},
            )
        except ClientError as exc:
            return error_to_result(exc, {})
        return MutationResult(status=response.status_code, data=_as_row(response.payload))

    async def custom_request(
        self,
        method: str,
        route: str,
        *,
        params: Mapping[str, str] | None = None,
        json_body: Any = None,
        raw_data_only: bool = False,
        organization_id: str | None = None,
    ) -> MutationResult[Any] | Any:
        """Call an entity-specific endpoint outside the CRUD surface."""

        org_id = self._require_org(organization_id)
        query: QueryParams = [(key, value) for key, value in (params or {}).items()]
        if org_id is not None:
            query.append(("organizationId", org_id))
        try:
            response = await self._send(method, route, params=query, json_body=json_body)
        except ClientError as exc:
            return error_to_result(exc, None)
        if raw_data_only:
            return response.payload
        payload = response.payload
        if isinstance(payload, dict) and "data" in payload:
            payload = payload["data"]
        return MutationResult(status=response.status_code, data=payload)

    def _require_org(self, organization_id: str | None) -> str | None:
        if not self.config.include_org_id:
            return organization_id.strip() if organization_id and organization_id.strip() else None
        if organization_id is None or not str(organization_id).strip():
            raise MissingOrganizationError(f"{self.base_path} requires an organization id")
        return str(organization_id).strip()

    def _item_url(self, entity_id: str | None) -> str:
        if entity_id is None:
            return self.base_path
        return f"{self.base_path.rstrip('/')}/{quote(entity_id, safe='')}"

    def _resolve(self, operation: Operation, fallback: str, entity_id: str | None, org_id: str | None) -> RouteOverride:
        custom = self.config.custom_routes.get(operation)
        if custom is None:
            return RouteOverride(url=fallback)
        resolved = custom(entity_id, org_id)
        if isinstance(resolved, str):
            return RouteOverride(url=resolved)
        return resolved

    def _params(self, route: RouteOverride | None, base: QueryParams, org_id: str | None) -> QueryParams:
        params: QueryParams = []
        if route is not None and route.params:
            params.extend((key, str(value)) for key, value in route.params.items())
        params.extend(base)
        if self.config.include_org_id and org_id is not None:
            params = [(key, value) for key, value in params if key != "organizationId"]
            params.append(("organizationId", org_id))
        return params

    async def _send(
        self,
        method: str,
        url: str,
        *,
        params: QueryParams,
        json_body: Any = None,
    ) -> TransportResponse:
        logger.debug("entitydesk.request method=%s url=%s params=%s", method, url, params)
        return await self._transport.request(method, url, params=params, json_body=json_body)


def create_api_service(
    base_path: str,
    transport: Transport,
    *,
    include_org_id: bool = False,
    custom_routes: Mapping[Operation, CustomRoute] | None = None,
    id_field: str = "_id",
    update_method: Literal["PUT", "PATCH"] = "PUT",
) -> EntityApiClient:
    """Build a client for the entity served at ``base_path``."""

    config = EntityClientConfig(
        base_path=base_path,
        include_org_id=include_org_id,
        custom_routes=dict(custom_routes or {}),
        id_field=id_field,
        update_method=update_method,
    )
    return EntityApiClient(config, transport)


def _clean_id(value: Any) -> str | None:
    if value is None or isinstance(value, bool):
        return None
    text = str(value).strip()
    return text or None


def _as_row(payload: Any) -> Row:
    return payload if isinstance(payload, dict) else {}


def _url_encodes_id(url: str, entity_id: str) -> bool:
    segments = [segment for segment in url.split("?", 1)[0].split("/") if segment]
    return entity_id in segments or quote(entity_id, safe="") in segments
