from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Optional, Protocol, Sequence

from ..core.enums import TimesheetState
from ..notifications.model import NewOutboxEvent
from .model import Timesheet, TimesheetEntry


class EntryWriteOutcome(str, Enum):
    WRITTEN = "WRITTEN"
    NOT_EDITABLE = "NOT_EDITABLE"
    VERSION_CONFLICT = "VERSION_CONFLICT"
    MISSING = "MISSING"


class TimesheetRepository(Protocol):
    """Persistence for timesheets and their day entries.

    Every method is one transaction. Methods that change state re-check the
    timesheet row at write time so callers never rely on an earlier read.
    """

    def get(self, timesheet_id: int) -> Optional[Timesheet]:
        raise NotImplementedError

    def find_for_period(self, *, user_id: int, start: date, end: date) -> Optional[Timesheet]:
        raise NotImplementedError

    def create_with_entries(
        self,
        *,
        user_id: int,
        start: date,
        end: date,
        dates: Sequence[date],
    ) -> tuple[Timesheet, bool]:
        """Create the timesheet unless the exact period already exists.

        Returns ``(timesheet, created)``. Raises ``ConflictError`` when the
        owner already has a different period overlapping ``[start, end]``.
        """

        raise NotImplementedError

    def list_entries(self, timesheet_id: int) -> Sequence[TimesheetEntry]:
        raise NotImplementedError

    def get_entry(self, *, timesheet_id: int, entry_id: int) -> Optional[TimesheetEntry]:
        raise NotImplementedError

    def write_entry(self, *, entry: TimesheetEntry, owner_id: int, expected_version: int) -> EntryWriteOutcome:
        """Persist all editable fields if the parent is still owner-editable."""

        raise NotImplementedError

    def apply_entry_times(self, *, timesheet_id: int, owner_id: int, entries: Sequence[TimesheetEntry]) -> bool:
        """Overwrite time fields and comments of ``entries`` in one transaction.

        Returns False (and writes nothing) if the timesheet is not editable.
        """

        raise NotImplementedError

    def transition(
        self,
        *,
        timesheet_id: int,
        from_state: TimesheetState,
        to_state: TimesheetState,
        changes: dict,
        event: NewOutboxEvent,
    ) -> Optional[int]:
        """Conditional state change plus outbox insert.

        Returns the outbox event id, or None if the row was not in
        ``from_state`` at write time (nothing is written then).
        """

        raise NotImplementedError

    def list_for_owner(self, user_id: int) -> Sequence[Timesheet]:
        raise NotImplementedError

    def list_for_manager(self, manager_id: int, *, state: Optional[TimesheetState] = None) -> Sequence[Timesheet]:
        raise NotImplementedError

    def list_all(self, *, state: Optional[TimesheetState] = None) -> Sequence[Timesheet]:
        raise NotImplementedError
