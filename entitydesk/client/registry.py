"""Construction of the per-entity clients handed to screens."""

from __future__ import annotations

from urllib.parse import quote

from entitydesk.client.factory import CustomRoute, EntityApiClient, Operation, RouteOverride, create_api_service
from entitydesk.client.transport import Transport
from entitydesk.entities import ENTITY_DEFINITIONS, EntityDefinition


def _current_route(base_path: str) -> CustomRoute:
    def resolve(entity_id: str | None, _org_id: str | None) -> RouteOverride:
        if entity_id:
            return RouteOverride(url=f"{base_path}/{quote(entity_id, safe='')}")
        return RouteOverride(url=f"{base_path}/current")

    return resolve


def build_entity_client(definition: EntityDefinition, transport: Transport) -> EntityApiClient:
    """Build the client for one entity definition."""

    custom_routes: dict[Operation, CustomRoute] = {}
    if definition.has_current_route:
        custom_routes["fetch"] = _current_route(definition.base_path)
    return create_api_service(
        definition.base_path,
        transport,
        include_org_id=definition.org_scoped,
        custom_routes=custom_routes,
        update_method="PATCH" if definition.update_method == "PATCH" else "PUT",
    )


def build_entity_clients(transport: Transport) -> dict[str, EntityApiClient]:
    """Build one client per known entity type, sharing ``transport``."""

    return {name: build_entity_client(definition, transport) for name, definition in ENTITY_DEFINITIONS.items()}
