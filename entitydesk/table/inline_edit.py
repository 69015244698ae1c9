"""Single-field edit payloads and the per-cell edit state machine."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from entitydesk.table.state import CellEditStatus

_ALLOWED_TRANSITIONS: dict[CellEditStatus, frozenset[CellEditStatus]] = {
    CellEditStatus.CLEAN: frozenset({CellEditStatus.PENDING}),
    CellEditStatus.PENDING: frozenset({CellEditStatus.CONFIRMED, CellEditStatus.ROLLED_BACK}),
    CellEditStatus.CONFIRMED: frozenset({CellEditStatus.PENDING}),
    CellEditStatus.ROLLED_BACK: frozenset({CellEditStatus.PENDING}),
}


class InvalidTransitionError(RuntimeError):
    """Raised when a cell edit is moved to a state it cannot reach."""


def build_field_payload(field: str, value: Any) -> dict[str, Any]:
    """Build the update body for one field.

    Dotted fields such as ``dynamicFields.color`` become nested objects so the
    backend merges them into the existing sub-document.
    """

    parts = [part for part in field.split(".") if part]
    if not parts:
        raise ValueError("Field name must not be empty")
    payload: dict[str, Any] = {parts[-1]: value}
    for part in reversed(parts[:-1]):
        payload = {part: payload}
    return payload


@dataclass(slots=True)
class CellEdit:
    """Lifecycle of one edited cell: clean, pending, then confirmed or rolled back."""

    row_id: str
    field: str
    previous_value: Any
    pending_value: Any = None
    confirmed_value: Any = None
    status: CellEditStatus = CellEditStatus.CLEAN
    error: str | None = None

    def begin(self, value: Any) -> None:
        self._move(CellEditStatus.PENDING)
        self.pending_value = value
        self.error = None

    def confirm(self, value: Any) -> None:
        self._move(CellEditStatus.CONFIRMED)
        self.confirmed_value = value
        self.previous_value = value

    def roll_back(self, error: str) -> None:
        self._move(CellEditStatus.ROLLED_BACK)
        self.pending_value = None
        self.error = error

    @property
    def display_value(self) -> Any:
        # Unconfirmed values are never shown as truth.
        if self.status is CellEditStatus.CONFIRMED:
            return self.confirmed_value
        return self.previous_value

    def _move(self, target: CellEditStatus) -> None:
        if target not in _ALLOWED_TRANSITIONS[self.status]:
            raise InvalidTransitionError(f"Cannot move cell edit from {self.status.value} to {target.value}")
        self.status = target
