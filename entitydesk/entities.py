"""Entity types exposed through the uniform REST surface."""

from dataclasses import dataclass


@dataclass(slots=True, frozen=True)
class EntityDefinition:
    """Static description of one entity type shared by backend routes and clients."""

    name: str
    base_path: str
    org_scoped: bool = True
    search_fields: tuple[str, ...] = ("name",)
    bare_list: bool = False
    update_method: str = "PUT"
    has_current_route: bool = False


ENTITY_DEFINITIONS: dict[str, EntityDefinition] = {
    definition.name: definition
    for definition in (
        EntityDefinition(name="accounts", base_path="/accounts"),
        EntityDefinition(
            name="organizations",
            base_path="/organizations",
            org_scoped=False,
            search_fields=("name", "email", "phone"),
            has_current_route=True,
        ),
        EntityDefinition(name="courses", base_path="/courses", search_fields=("name", "description")),
        EntityDefinition(name="locations", base_path="/locations", search_fields=("name", "address", "city")),
        EntityDefinition(name="tasks", base_path="/tasks", search_fields=("title", "description"), bare_list=True),
        EntityDefinition(name="clubs", base_path="/clubs", search_fields=("name", "city")),
        EntityDefinition(name="payments", base_path="/payments", search_fields=("payerName", "description")),
        EntityDefinition(
            name="feature-flags",
            base_path="/feature-flags",
            org_scoped=False,
            search_fields=("key", "name", "description"),
        ),
        EntityDefinition(
            name="contacts",
            base_path="/contacts",
            search_fields=("firstName", "lastName", "email", "phone"),
            update_method="PATCH",
        ),
    )
}


def get_entity_definition(name: str) -> EntityDefinition:
    """Look up an entity definition by name."""

    try:
        return ENTITY_DEFINITIONS[name]
    except KeyError as exc:
        raise KeyError(f"Unknown entity type: {name}") from exc
