"""Entity REST clients."""

from entitydesk.client.errors import ApiHTTPError, MissingOrganizationError, ShapeError, TransportError
from entitydesk.client.factory import EntityApiClient, EntityClientConfig, RouteOverride, create_api_service
from entitydesk.client.registry import build_entity_client, build_entity_clients
from entitydesk.client.transport import HttpxTransport, Transport, TransportResponse

__all__ = [
    "ApiHTTPError",
    "EntityApiClient",
    "EntityClientConfig",
    "HttpxTransport",
    "MissingOrganizationError",
    "RouteOverride",
    "ShapeError",
    "Transport",
    "TransportError",
    "TransportResponse",
    "build_entity_client",
    "build_entity_clients",
    "create_api_service",
]
