"""Server-driven data table engine and its helpers."""

from entitydesk.table.advanced_search import AdvancedSearch, Equals, OneOf, Range
from entitydesk.table.columns import ColumnDef, ColumnOption, FieldType
from entitydesk.table.engine import DataTableEngine, TableHandle
from entitydesk.table.export import ExportFormat, export_rows
from entitydesk.table.inline_edit import CellEdit, InvalidTransitionError, build_field_payload
from entitydesk.table.state import CellEditStatus, LoggingNotifier, Notifier, TableSnapshot, TableStatus

__all__ = [
    "AdvancedSearch",
    "CellEdit",
    "CellEditStatus",
    "ColumnDef",
    "ColumnOption",
    "DataTableEngine",
    "Equals",
    "ExportFormat",
    "FieldType",
    "InvalidTransitionError",
    "LoggingNotifier",
    "Notifier",
    "OneOf",
    "Range",
    "TableHandle",
    "TableSnapshot",
    "TableStatus",
    "build_field_payload",
    "export_rows",
]
