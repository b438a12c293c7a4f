from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..core.enums import Role


@dataclass(frozen=True)
class TimesheetMessage:
    message_id: int
    timesheet_id: int
    sender_id: int
    content: str
    created_at: Optional[datetime] = None
    sender_name: str = ""
    sender_role: Optional[Role] = None

    def to_dict(self) -> dict:
        return {
            "id": self.message_id,
            "timesheetId": self.timesheet_id,
            "content": self.content,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "sender": {
                "id": self.sender_id,
                "name": self.sender_name,
                "role": self.sender_role.value if self.sender_role else None,
            },
        }
