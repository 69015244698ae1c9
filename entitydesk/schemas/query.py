"""List-query descriptor shared by entity clients and data tables."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

FilterScalar = str | int | float | bool
FilterValue = FilterScalar | tuple[FilterScalar, ...]

_FIELD_ALIASES: dict[str, str] = {
    "page": "page",
    "page_size": "pageSize",
    "sort_field": "sortField",
    "sort_direction": "sortDirection",
    "search": "search",
}
RESERVED_QUERY_KEYS = frozenset(_FIELD_ALIASES) | frozenset(_FIELD_ALIASES.values())


class QueryDescriptor(BaseModel):
    """Immutable description of one list request.

    Reserved keys describe pagination, sorting and the free-text search term.
    Any other key is an extra filter whose value is a scalar or a tuple of
    scalars. Two descriptors compare equal when they produce the same
    querystring, so ``True`` and ``1`` are different filter values.
    """

    model_config = ConfigDict(frozen=True, extra="allow", populate_by_name=True)

    page: int | None = Field(default=None, ge=1)
    page_size: int | None = Field(default=None, ge=1, alias="pageSize")
    sort_field: str | None = Field(default=None, min_length=1, alias="sortField")
    sort_direction: Literal["asc", "desc"] | None = Field(default=None, alias="sortDirection")
    search: str | None = None

    @model_validator(mode="before")
    @classmethod
    def normalize_filter_values(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        normalized: dict[str, Any] = {}
        for key, value in data.items():
            if key in RESERVED_QUERY_KEYS:
                normalized[key] = value
                continue
            if value is None:
                continue
            normalized[key] = _normalize_filter_value(key, value)
        return normalized

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, QueryDescriptor):
            return NotImplemented
        return self._wire_key() == other._wire_key()

    def __hash__(self) -> int:
        return hash(self._wire_key())

    def _wire_key(self) -> tuple[tuple[str, str], ...]:
        # Repeated parameters are OR-ed by the backend, so their order is irrelevant.
        return tuple(sorted(self.to_query_params()))

    @property
    def filters(self) -> dict[str, FilterValue]:
        """Return the extra filter keys."""

        return dict(self.model_extra or {})

    def to_dict(self) -> dict[str, Any]:
        """Serialize with wire names, omitting unset keys."""

        return self.model_dump(by_alias=True, exclude_none=True)

    def evolve(self, **changes: Any) -> QueryDescriptor:
        """Return a copy with ``changes`` applied; ``None`` removes a key."""

        data = self.to_dict()
        for key, value in changes.items():
            wire_key = _FIELD_ALIASES.get(key, key)
            if value is None:
                data.pop(wire_key, None)
            else:
                data[wire_key] = value
        return QueryDescriptor.model_validate(data)

    def with_filters(self, filters: dict[str, Any]) -> QueryDescriptor:
        """Replace every extra filter and go back to the first page."""

        data = {key: value for key, value in self.to_dict().items() if key in RESERVED_QUERY_KEYS}
        for key in filters:
            if key in RESERVED_QUERY_KEYS:
                raise ValueError(f"Filter key collides with a reserved query key: {key}")
        data.update(filters)
        data["page"] = 1
        return QueryDescriptor.model_validate(data)

    def to_query_params(self) -> list[tuple[str, str]]:
        """Build querystring pairs; list filters become repeated parameters."""

        params: list[tuple[str, str]] = []
        if self.page is not None:
            params.append(("page", str(self.page)))
        if self.page_size is not None:
            params.append(("pageSize", str(self.page_size)))
        if self.sort_field:
            params.append(("sortField", self.sort_field))
            params.append(("sortDirection", self.sort_direction or "asc"))
        if self.search and self.search.strip():
            params.append(("search", self.search.strip()))
        for key, value in self.filters.items():
            if isinstance(value, tuple):
                params.extend((key, _format_param(item)) for item in value if item != "")
            elif value != "":
                params.append((key, _format_param(value)))
        return params


def _normalize_filter_value(key: str, value: Any) -> FilterValue:
    if isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, (list, tuple, set, frozenset)):
        items = sorted(value, key=str) if isinstance(value, (set, frozenset)) else list(value)
        if all(isinstance(item, (str, int, float, bool)) for item in items):
            return tuple(items)
    raise ValueError(f"Filter '{key}' must be a scalar or a list of scalars")


def _format_param(value: FilterScalar) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
