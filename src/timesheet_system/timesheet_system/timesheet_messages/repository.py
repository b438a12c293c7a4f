from __future__ import annotations

from typing import Optional, Protocol, Sequence

from .model import TimesheetMessage


class MessageRepository(Protocol):
    def add(self, *, timesheet_id: int, sender_id: int, content: str) -> int:
        raise NotImplementedError

    def get(self, message_id: int) -> Optional[TimesheetMessage]:
        raise NotImplementedError

    def list_for_timesheet(self, timesheet_id: int) -> Sequence[TimesheetMessage]:
        """Oldest first, with the sender's name and role filled in."""

        raise NotImplementedError
