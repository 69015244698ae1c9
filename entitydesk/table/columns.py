"""Column definitions supplied by entity screens."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class FieldType(str, Enum):
    TEXT = "TEXT"
    NUMBER = "NUMBER"
    DATE = "DATE"
    SELECT = "SELECT"
    MULTI_SELECT = "MULTI_SELECT"
    BOOLEAN = "BOOLEAN"


@dataclass(slots=True, frozen=True)
class ColumnOption:
    label: str
    value: Any


@dataclass(slots=True, frozen=True)
class ColumnDef:
    """One table column bound to a row field."""

    accessor_key: str
    header: str
    field_type: FieldType = FieldType.TEXT
    options: tuple[ColumnOption, ...] = field(default_factory=tuple)
    hidden: bool = False
    editable: bool = True
    exportable: bool = True
    sortable: bool = True


def resolve_value(row: dict[str, Any], key: str) -> Any:
    """Read ``key`` from ``row``; dotted keys walk nested objects."""

    if key in row:
        return row[key]
    current: Any = row
    for part in key.split("."):
        if not isinstance(current, dict) or part not in current:
            return None
        current = current[part]
    return current


def find_column(columns: list[ColumnDef] | tuple[ColumnDef, ...], key: str) -> ColumnDef | None:
    return next((column for column in columns if column.accessor_key == key), None)
