"""Server-driven data table: fetch orchestration, selection, edits and bulk actions."""

from __future__ import annotations

import asyncio
import inspect
import logging
import math
from collections.abc import Awaitable, Callable, Mapping, Sequence
from typing import Any

from entitydesk.client.errors import MissingOrganizationError
from entitydesk.client.factory import EntityApiClient
from entitydesk.config import get_settings
from entitydesk.schemas.common import MutationResult, PaginatedResult
from entitydesk.schemas.query import QueryDescriptor
from entitydesk.table.advanced_search import AdvancedSearch, FieldFilter
from entitydesk.table.columns import ColumnDef, resolve_value
from entitydesk.table.export import ExportFormat, export_rows
from entitydesk.table.inline_edit import CellEdit, build_field_payload
from entitydesk.table.state import CellEditStatus, LoggingNotifier, Notifier, TableSnapshot, TableStatus

logger = logging.getLogger(__name__)

Row = dict[str, Any]
BulkHook = Callable[[list[Row]], Awaitable[MutationResult[Any]]]
BulkUpdateHook = Callable[[list[Row], str, Any], Awaitable[MutationResult[Any]]]
ExportHook = Callable[[list[Row]], Awaitable[None] | None]


class TableHandle:
    """Imperative handle given to sibling components.

    Lets a create or edit dialog patch the table's rows without a full refetch.
    """

    def __init__(self, engine: DataTableEngine) -> None:
        self._engine = engine

    def refresh(self) -> asyncio.Task[None] | None:
        return self._engine.refresh()

    def add_item(self, item: Row) -> None:
        self._engine.add_item(item)

    def update_item(self, item: Row) -> bool:
        return self._engine.update_item(item)


class DataTableEngine:
    """State machine behind one mounted entity table.

    Statuses move ``idle -> fetching`` on mount and ``fetching -> loaded|error``
    when a fetch settles. Only the most recently issued fetch may commit;
    superseded fetches are cancelled and their late results discarded. A
    failed fetch keeps the previously loaded rows. Nothing is committed after
    ``unmount``.
    """

    def __init__(
        self,
        client: EntityApiClient,
        columns: Sequence[ColumnDef] = (),
        *,
        organization_id: str | None = None,
        id_field: str = "_id",
        page_size: int | None = None,
        prepend_new_items: bool = False,
        base_filters: Mapping[str, Any] | None = None,
        initial_query: QueryDescriptor | None = None,
        notifier: Notifier | None = None,
        on_state_change: Callable[[TableSnapshot], None] | None = None,
        on_refresh_ready: Callable[[TableHandle], None] | None = None,
        on_column_order_change: Callable[[list[str]], None] | None = None,
        on_advanced_search_change: Callable[[dict[str, FieldFilter]], None] | None = None,
        on_selection_change: Callable[[frozenset[str]], None] | None = None,
        on_bulk_delete: BulkHook | None = None,
        on_bulk_advanced_update: BulkUpdateHook | None = None,
        on_export_selected: ExportHook | None = None,
    ) -> None:
        if client.config.include_org_id and not (organization_id and organization_id.strip()):
            raise MissingOrganizationError(f"{client.base_path} table requires an organization id")
        self._client = client
        self._columns = tuple(columns)
        self._organization_id = organization_id.strip() if organization_id else None
        self._id_field = id_field
        self._prepend_new_items = prepend_new_items
        self._base_filters = dict(base_filters or {})
        self._notifier = notifier or LoggingNotifier()

        self._on_state_change = on_state_change
        self._on_refresh_ready = on_refresh_ready
        self._on_column_order_change = on_column_order_change
        self._on_advanced_search_change = on_advanced_search_change
        self._on_selection_change = on_selection_change
        self._on_bulk_delete = on_bulk_delete
        self._on_bulk_advanced_update = on_bulk_advanced_update
        self._on_export_selected = on_export_selected

        self._advanced = AdvancedSearch(self._columns)
        page_size = page_size or get_settings().default_page_size
        base_query = initial_query or QueryDescriptor(page=1, page_size=page_size)
        if base_query.page is None or base_query.page_size is None:
            base_query = base_query.evolve(page=base_query.page or 1, page_size=base_query.page_size or page_size)
        if self._base_filters:
            base_query = base_query.evolve(**self._base_filters)
        self._query = base_query

        self._status = TableStatus.IDLE
        self._rows: list[Row] = []
        self._total_count = 0
        self._total_pages = 0
        self._last_error: str | None = None
        self._selected: set[str] = set()
        self._cell_edits: dict[tuple[str, str], CellEdit] = {}
        self._column_order = [column.accessor_key for column in self._columns if not column.hidden]

        self._token = 0
        self._fetch_task: asyncio.Task[None] | None = None
        self._mounted = False
        self._disposed = False
        self.handle = TableHandle(self)

    def mount(self) -> asyncio.Task[None]:
        """Start the first fetch and hand out the imperative handle."""

        if self._disposed:
            raise RuntimeError("A table cannot be mounted again after unmount")
        if self._mounted:
            raise RuntimeError("Table is already mounted")
        self._mounted = True
        task = self._schedule_fetch()
        if self._on_refresh_ready is not None:
            self._on_refresh_ready(self.handle)
        return task

    def unmount(self) -> None:
        """Discard in-flight work and drop all local state."""

        self._mounted = False
        self._disposed = True
        self._token += 1
        if self._fetch_task is not None and not self._fetch_task.done():
            self._fetch_task.cancel()
        self._fetch_task = None
        self._rows = []
        self._selected.clear()
        self._cell_edits.clear()

    async def wait_idle(self) -> None:
        """Wait until no fetch is in flight, including fetches issued meanwhile."""

        while self._fetch_task is not None and not self._fetch_task.done():
            await asyncio.wait({self._fetch_task})

    @property
    def status(self) -> TableStatus:
        return self._status

    @property
    def query(self) -> QueryDescriptor:
        return self._query

    @property
    def rows(self) -> list[Row]:
        return [dict(row) for row in self._rows]

    @property
    def total_count(self) -> int:
        return self._total_count

    @property
    def total_pages(self) -> int:
        return self._total_pages

    @property
    def last_error(self) -> str | None:
        return self._last_error

    @property
    def column_order(self) -> list[str]:
        return list(self._column_order)

    @property
    def advanced_filters(self) -> dict[str, FieldFilter]:
        return self._advanced.filters

    @property
    def selected_ids(self) -> frozenset[str]:
        return frozenset(self._selected)

    @property
    def selected_rows(self) -> list[Row]:
        return [dict(row) for row in self._rows if self._row_id(row) in self._selected]

    def snapshot(self) -> TableSnapshot:
        return TableSnapshot(
            status=self._status,
            query=self._query,
            rows=tuple(dict(row) for row in self._rows),
            total_count=self._total_count,
            total_pages=self._total_pages,
            selected_ids=frozenset(self._selected),
            last_error=self._last_error,
            column_order=tuple(self._column_order),
        )

    def cell_value(self, row_id: str | int, field: str) -> Any:
        index = self._index_of(str(row_id))
        if index is None:
            return None
        return resolve_value(self._rows[index], field)

    def cell_status(self, row_id: str | int, field: str) -> CellEditStatus:
        edit = self._cell_edits.get((str(row_id), field))
        return edit.status if edit is not None else CellEditStatus.CLEAN

    def set_query(self, query: QueryDescriptor) -> asyncio.Task[None] | None:
        return self._apply_query(query)

    def set_page(self, page: int) -> asyncio.Task[None] | None:
        if page < 1:
            raise ValueError("page must be >= 1")
        return self._apply_query(self._query.evolve(page=page), clear_selection=True)

    def set_page_size(self, page_size: int) -> asyncio.Task[None] | None:
        if page_size < 1:
            raise ValueError("page_size must be >= 1")
        return self._apply_query(self._query.evolve(page_size=page_size, page=1), clear_selection=True)

    def set_sort(self, field: str | None, direction: str = "asc") -> asyncio.Task[None] | None:
        if field is None:
            return self._apply_query(self._query.evolve(sort_field=None, sort_direction=None))
        if direction not in ("asc", "desc"):
            raise ValueError("direction must be 'asc' or 'desc'")
        return self._apply_query(self._query.evolve(sort_field=field, sort_direction=direction))

    def set_search(self, term: str | None) -> asyncio.Task[None] | None:
        clean = term.strip() if term else None
        if (clean or None) == ((self._query.search or "").strip() or None):
            return None
        return self._apply_query(self._query.evolve(search=clean or None, page=1))

    def set_advanced_filters(self, raw_filters: Mapping[str, Any]) -> asyncio.Task[None] | None:
        """Replace all advanced filters from raw field inputs."""

        if not self._advanced.replace_from_inputs(raw_filters):
            return None
        return self._advanced_filters_changed()

    def set_advanced_filter(self, field: str, raw: Any) -> asyncio.Task[None] | None:
        if not self._advanced.set_from_input(field, raw):
            return None
        return self._advanced_filters_changed()

    def clear_advanced_filters(self) -> asyncio.Task[None] | None:
        if not self._advanced.reset():
            return None
        return self._advanced_filters_changed()

    def reorder_columns(self, order: Sequence[str]) -> None:
        if sorted(order) != sorted(self._column_order):
            raise ValueError("Column order must contain exactly the visible columns")
        self._column_order = list(order)
        if self._on_column_order_change is not None:
            self._on_column_order_change(list(self._column_order))

    def refresh(self) -> asyncio.Task[None] | None:
        """Re-issue the current query."""

        if not self._mounted:
            return None
        return self._schedule_fetch()

    def add_item(self, item: Row) -> None:
        """Insert a row created elsewhere; a known id is treated as an update."""

        row_id = self._row_id(item)
        if row_id is None:
            raise ValueError(f"Item has no '{self._id_field}' value")
        if self.update_item(item):
            return
        if self._prepend_new_items:
            self._rows.insert(0, dict(item))
        else:
            self._rows.append(dict(item))
        self._adjust_total(1)
        self._emit_state()

    def update_item(self, item: Row) -> bool:
        """Replace the loaded row with the same id; return whether one matched."""

        row_id = self._row_id(item)
        index = self._index_of(row_id) if row_id is not None else None
        if index is None:
            return False
        self._rows[index] = dict(item)
        self._emit_state()
        return True

    def toggle_row(self, row_id: str | int, selected: bool | None = None) -> None:
        key = str(row_id)
        if self._index_of(key) is None:
            return
        should_select = key not in self._selected if selected is None else selected
        if should_select:
            self._selected.add(key)
        else:
            self._selected.discard(key)
        self._emit_selection()

    def select_all_on_page(self, selected: bool = True) -> None:
        if selected:
            self._selected = {row_id for row_id in (self._row_id(row) for row in self._rows) if row_id is not None}
        else:
            self._selected.clear()
        self._emit_selection()

    def clear_selection(self) -> None:
        if self._selected:
            self._selected.clear()
            self._emit_selection()

    async def edit_cell(self, row_id: str | int, field: str, value: Any) -> MutationResult[Any]:
        """Send a single-field update and apply it only once the server confirms."""

        key = str(row_id)
        index = self._index_of(key)
        if index is None:
            return MutationResult(status=404, error="Row is not loaded.", data={})
        edit = self._cell_edits.get((key, field))
        if edit is not None and edit.status is CellEditStatus.PENDING:
            return MutationResult(status=409, error="An edit for this cell is already pending.", data={})
        current = resolve_value(self._rows[index], field)
        if edit is None:
            edit = CellEdit(row_id=key, field=field, previous_value=current)
            self._cell_edits[(key, field)] = edit
        else:
            edit.previous_value = current
        edit.begin(value)
        self._emit_state()

        payload = build_field_payload(field, value)
        payload[self._client.config.id_field] = key
        result = await self._client.update(payload, organization_id=self._organization_id)
        if not self._mounted:
            return result

        if result.error is None:
            confirmed_row = self._confirmed_row(key, field, value, result.data)
            if confirmed_row is not None:
                self.update_item(confirmed_row)
            edit.confirm(resolve_value(confirmed_row, field) if confirmed_row is not None else value)
            self._notifier.success("Updated successfully")
        else:
            edit.roll_back(result.error)
            logger.warning(
                "entitydesk.cell_edit_rolled_back path=%s row_id=%s field=%s error=%s",
                self._client.base_path,
                key,
                field,
                result.error,
            )
            self._notifier.error(result.error)
        self._emit_state()
        return result

    async def create_row(self, partial: Mapping[str, Any]) -> MutationResult[Any]:
        """Create a row and show it once the server has stored it."""

        result = await self._client.create(partial, organization_id=self._organization_id)
        if not self._mounted:
            return result
        if result.error is not None:
            logger.warning(
                "entitydesk.create_failed path=%s status=%d error=%s",
                self._client.base_path,
                result.status,
                result.error,
            )
            self._notifier.error(result.error)
            return result
        if isinstance(result.data, dict) and self._row_id(result.data) is not None:
            self.add_item(result.data)
        else:
            # Nothing to insert without the stored row.
            self.refresh()
        self._notifier.success("Created successfully")
        return result

    async def delete_row(self, row_id: str | int) -> MutationResult[Any]:
        """Delete one row and drop it locally once the server confirms."""

        key = str(row_id)
        result = await self._client.delete(key, organization_id=self._organization_id)
        if not self._mounted:
            return result
        if result.error is not None:
            logger.warning(
                "entitydesk.delete_failed path=%s row_id=%s error=%s",
                self._client.base_path,
                key,
                result.error,
            )
            self._notifier.error(result.error)
            return result
        index = self._index_of(key)
        if index is not None:
            del self._rows[index]
        self._cell_edits = {edit_key: edit for edit_key, edit in self._cell_edits.items() if edit_key[0] != key}
        if key in self._selected:
            self._selected.discard(key)
            self._emit_selection()
        self._adjust_total(-1)
        self._emit_state()
        self._notifier.success("Deleted successfully")
        return result

    async def bulk_delete(self) -> MutationResult[Any] | None:
        """Delete the selected rows, then refetch the current page."""

        rows = self.selected_rows
        if not rows:
            self._notifier.error("Select rows first")
            return None
        if self._on_bulk_delete is not None:
            result = await self._on_bulk_delete(rows)
        else:
            ids = [row_id for row_id in (self._row_id(row) for row in rows) if row_id is not None]
            result = await self._client.delete_many(ids, organization_id=self._organization_id)
        if not self._mounted:
            return result
        if result.error is None:
            self._notifier.success("Deleted successfully")
            self.clear_selection()
            self.refresh()
        else:
            self._notifier.error(result.error or "Failed to delete items")
        return result

    async def bulk_advanced_update(self, field: str, value: Any) -> MutationResult[Any] | None:
        """Set ``field`` to ``value`` on every selected row, then refetch."""

        rows = self.selected_rows
        if not rows:
            self._notifier.error("Select rows first")
            return None
        if self._on_bulk_advanced_update is not None:
            result = await self._on_bulk_advanced_update(rows, field, value)
        else:
            result = await self._update_rows(rows, field, value)
        if not self._mounted:
            return result
        if result.error is None:
            self._notifier.success("Updated successfully")
            self.clear_selection()
        else:
            self._notifier.error(result.error or "Failed to update items")
        # Partial failures still changed server state.
        self.refresh()
        return result

    async def export_selected(self, fmt: str = ExportFormat.EXCEL) -> bytes | None:
        """Export the selected rows; a caller hook replaces the built-in export."""

        rows = self.selected_rows
        if not rows:
            self._notifier.error("Select rows first")
            return None
        if self._on_export_selected is not None:
            outcome = self._on_export_selected(rows)
            if inspect.isawaitable(outcome):
                await outcome
            return None
        return export_rows(rows, self._visible_columns(), fmt)

    def _advanced_filters_changed(self) -> asyncio.Task[None] | None:
        if self._on_advanced_search_change is not None:
            self._on_advanced_search_change(self._advanced.filters)
        return self._apply_query(self._advanced.apply(self._query, self._base_filters), clear_selection=True)

    def _apply_query(self, query: QueryDescriptor, *, clear_selection: bool = False) -> asyncio.Task[None] | None:
        if query == self._query:
            return None
        self._query = query
        if clear_selection:
            self.clear_selection()
        if not self._mounted:
            return None
        return self._schedule_fetch()

    def _schedule_fetch(self) -> asyncio.Task[None]:
        self._token += 1
        token = self._token
        previous = self._fetch_task
        if previous is not None and not previous.done():
            previous.cancel()
        self._set_status(TableStatus.FETCHING)
        task = asyncio.get_running_loop().create_task(self._run_fetch(token, self._query))
        self._fetch_task = task
        return task

    async def _run_fetch(self, token: int, query: QueryDescriptor) -> None:
        try:
            result = await self._client.fetch_all(query, organization_id=self._organization_id)
        except asyncio.CancelledError:
            logger.debug("entitydesk.fetch_cancelled path=%s token=%d", self._client.base_path, token)
            raise
        except Exception:
            logger.exception("entitydesk.fetch_crashed path=%s token=%d", self._client.base_path, token)
            result = MutationResult(status=500, error="Unknown error", data=PaginatedResult())

        if not self._mounted or token != self._token:
            logger.debug("entitydesk.fetch_discarded path=%s token=%d current=%d", self._client.base_path, token, self._token)
            return
        self._commit_fetch(token, result)

    def _commit_fetch(self, token: int, result: MutationResult[Any]) -> None:
        if result.error is not None:
            self._last_error = result.error
            logger.info("entitydesk.fetch_failed path=%s token=%d status=%d", self._client.base_path, token, result.status)
            self._set_status(TableStatus.ERROR)
            return

        page = result.data if isinstance(result.data, PaginatedResult) else PaginatedResult()
        self._rows = [dict(row) for row in page.data]
        self._total_count = page.total_count
        self._total_pages = page.total_pages
        self._last_error = None

        loaded_ids = {row_id for row_id in (self._row_id(row) for row in self._rows) if row_id is not None}
        if not self._selected <= loaded_ids:
            self._selected &= loaded_ids
            self._emit_selection()
        self._cell_edits = {key: edit for key, edit in self._cell_edits.items() if key[0] in loaded_ids}
        logger.debug(
            "entitydesk.fetch_committed path=%s token=%d rows=%d total=%d",
            self._client.base_path,
            token,
            len(self._rows),
            self._total_count,
        )
        self._set_status(TableStatus.LOADED)

    async def _update_rows(self, rows: list[Row], field: str, value: Any) -> MutationResult[Any]:
        payload = build_field_payload(field, value)
        id_key = self._client.config.id_field
        results = await asyncio.gather(
            *(
                self._client.update({**payload, id_key: row_id}, organization_id=self._organization_id)
                for row_id in (self._row_id(row) for row in rows)
                if row_id is not None
            )
        )
        failures = [result for result in results if result.error is not None]
        if failures:
            return MutationResult(
                status=failures[0].status,
                error=f"{len(failures)} of {len(results)} updates failed: {failures[0].error}",
                data={"updated": len(results) - len(failures)},
            )
        return MutationResult(status=200, data={"updated": len(results)})

    def _confirmed_row(self, row_id: str, field: str, value: Any, server_row: Any) -> Row | None:
        index = self._index_of(row_id)
        if isinstance(server_row, dict) and self._row_id(server_row) == row_id:
            return dict(server_row)
        if index is None:
            return None
        # Server confirmed without echoing the row.
        return _deep_merge(self._rows[index], build_field_payload(field, value))

    def _adjust_total(self, delta: int) -> None:
        self._total_count = max(self._total_count + delta, 0)
        page_size = self._query.page_size
        if self._total_count == 0:
            self._total_pages = 0
        elif page_size:
            self._total_pages = math.ceil(self._total_count / page_size)
        else:
            self._total_pages = max(self._total_pages, 1)

    def _visible_columns(self) -> list[ColumnDef]:
        by_key = {column.accessor_key: column for column in self._columns}
        return [by_key[key] for key in self._column_order if key in by_key]

    def _row_id(self, row: Mapping[str, Any]) -> str | None:
        value = row.get(self._id_field)
        if value is None and self._id_field != "id":
            value = row.get("id")
        if value is None:
            return None
        return str(value)

    def _index_of(self, row_id: str) -> int | None:
        for index, row in enumerate(self._rows):
            if self._row_id(row) == row_id:
                return index
        return None

    def _set_status(self, status: TableStatus) -> None:
        self._status = status
        self._emit_state()

    def _emit_state(self) -> None:
        if self._on_state_change is not None and self._mounted:
            self._on_state_change(self.snapshot())

    def _emit_selection(self) -> None:
        if self._on_selection_change is not None:
            self._on_selection_change(frozenset(self._selected))


def _deep_merge(base: Mapping[str, Any], patch: Mapping[str, Any]) -> Row:
    merged = dict(base)
    for key, value in patch.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged
