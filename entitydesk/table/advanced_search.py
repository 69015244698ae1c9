"""Structured per-field filters merged into the list query."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from entitydesk.schemas.query import FilterScalar, FilterValue, QueryDescriptor
from entitydesk.table.columns import ColumnDef, FieldType, find_column

RANGE_MIN_SUFFIX = "__gte"
RANGE_MAX_SUFFIX = "__lte"


@dataclass(slots=True, frozen=True)
class Equals:
    value: FilterScalar


@dataclass(slots=True, frozen=True)
class Range:
    minimum: FilterScalar | None = None
    maximum: FilterScalar | None = None


@dataclass(slots=True, frozen=True)
class OneOf:
    values: tuple[FilterScalar, ...]


FieldFilter = Equals | Range | OneOf


def filter_params(field: str, field_filter: FieldFilter) -> dict[str, FilterValue]:
    """Encode one filter as query keys."""

    if isinstance(field_filter, Equals):
        return {field: field_filter.value}
    if isinstance(field_filter, OneOf):
        return {field: tuple(field_filter.values)}
    params: dict[str, FilterValue] = {}
    if field_filter.minimum is not None:
        params[f"{field}{RANGE_MIN_SUFFIX}"] = field_filter.minimum
    if field_filter.maximum is not None:
        params[f"{field}{RANGE_MAX_SUFFIX}"] = field_filter.maximum
    return params


def filter_for_column(column: ColumnDef | None, raw: Any) -> FieldFilter | None:
    """Choose the filter kind from the column type; empty input clears the filter."""

    if _is_empty(raw):
        return None
    field_type = column.field_type if column is not None else FieldType.TEXT

    if isinstance(raw, Mapping):
        lower, upper = raw.get("min"), raw.get("max")
        if _is_empty(lower) and _is_empty(upper):
            return None
        return Range(minimum=None if _is_empty(lower) else lower, maximum=None if _is_empty(upper) else upper)
    if isinstance(raw, (list, tuple, set, frozenset)):
        values = tuple(item for item in raw if not _is_empty(item))
        if not values:
            return None
        if field_type in (FieldType.NUMBER, FieldType.DATE) and len(values) == 2 and not isinstance(raw, (set, frozenset)):
            return Range(minimum=values[0], maximum=values[1])
        return OneOf(values=values)
    if field_type is FieldType.BOOLEAN:
        return Equals(value=_parse_bool(raw))
    if field_type is FieldType.MULTI_SELECT:
        return OneOf(values=(raw,))
    if isinstance(raw, str):
        return Equals(value=raw.strip())
    return Equals(value=raw)


class AdvancedSearch:
    """Field to filter mapping, independent of the free-text search term."""

    def __init__(
        self,
        columns: Iterable[ColumnDef] = (),
        initial: Mapping[str, FieldFilter] | None = None,
    ) -> None:
        self._columns = tuple(columns)
        self._filters: dict[str, FieldFilter] = dict(initial or {})

    @property
    def filters(self) -> dict[str, FieldFilter]:
        return dict(self._filters)

    def __bool__(self) -> bool:
        return bool(self._filters)

    def set(self, field: str, field_filter: FieldFilter | None) -> bool:
        """Set or clear one field; return whether the mapping changed."""

        if field_filter is None:
            return self._filters.pop(field, None) is not None
        if self._filters.get(field) == field_filter:
            return False
        self._filters[field] = field_filter
        return True

    def set_from_input(self, field: str, raw: Any) -> bool:
        return self.set(field, filter_for_column(find_column(self._columns, field), raw))

    def replace(self, filters: Mapping[str, FieldFilter]) -> bool:
        new_filters = dict(filters)
        if new_filters == self._filters:
            return False
        self._filters = new_filters
        return True

    def replace_from_inputs(self, raw_filters: Mapping[str, Any]) -> bool:
        parsed: dict[str, FieldFilter] = {}
        for field, raw in raw_filters.items():
            field_filter = filter_for_column(find_column(self._columns, field), raw)
            if field_filter is not None:
                parsed[field] = field_filter
        return self.replace(parsed)

    def reset(self) -> bool:
        return self.replace({})

    def to_extra_params(self) -> dict[str, FilterValue]:
        params: dict[str, FilterValue] = {}
        for field, field_filter in self._filters.items():
            params.update(filter_params(field, field_filter))
        return params

    def apply(self, descriptor: QueryDescriptor, base_filters: Mapping[str, Any] | None = None) -> QueryDescriptor:
        """Merge the filters into ``descriptor`` and go back to page 1."""

        merged: dict[str, Any] = dict(base_filters or {})
        merged.update(self.to_extra_params())
        return descriptor.with_filters(merged)


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _parse_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"true", "1", "yes", "on"}
    return bool(value)
