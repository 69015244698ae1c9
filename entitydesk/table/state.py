"""Table state enums, snapshots and the notification collaborator."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

from entitydesk.schemas.query import QueryDescriptor

logger = logging.getLogger(__name__)


class TableStatus(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    LOADED = "loaded"
    ERROR = "error"


class CellEditStatus(str, Enum):
    CLEAN = "clean"
    PENDING = "pending"
    CONFIRMED = "confirmed"
    ROLLED_BACK = "rolled_back"


@dataclass(slots=True, frozen=True)
class TableSnapshot:
    """Read-only view of one table handed to screens."""

    status: TableStatus
    query: QueryDescriptor
    rows: tuple[dict[str, Any], ...]
    total_count: int
    total_pages: int
    selected_ids: frozenset[str] = field(default_factory=frozenset)
    last_error: str | None = None
    column_order: tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_loading(self) -> bool:
        return self.status is TableStatus.FETCHING


class Notifier(Protocol):
    """Transient user notifications (toasts)."""

    def success(self, message: str) -> None:
        """Show a success notification."""

    def error(self, message: str) -> None:
        """Show an error notification."""


class LoggingNotifier:
    """Notifier used when a screen does not provide one."""

    def success(self, message: str) -> None:
        logger.info("entitydesk.notify_success message=%s", message)

    def error(self, message: str) -> None:
        logger.warning("entitydesk.notify_error message=%s", message)
