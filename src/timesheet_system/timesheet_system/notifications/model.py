from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..core.enums import NotificationType, OutboxEventType


@dataclass(frozen=True)
class Notification:
    notification_id: int
    user_id: int
    type: NotificationType
    title: str
    message: str
    resource_id: Optional[int] = None
    is_read: bool = False
    read_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    def to_payload(self) -> dict:
        return {
            "id": self.notification_id,
            "type": self.type.value,
            "title": self.title,
            "message": self.message,
            "resourceId": self.resource_id,
            "isRead": self.is_read,
            "readAt": self.read_at.isoformat() if self.read_at else None,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass(frozen=True)
class NewOutboxEvent:
    """Transition record written in the same transaction as the state change."""

    event_type: OutboxEventType
    timesheet_id: int
    actor_id: int
    note: Optional[str] = None


@dataclass(frozen=True)
class OutboxEvent:
    event_id: int
    event_type: OutboxEventType
    timesheet_id: int
    actor_id: int
    note: Optional[str]
    created_at: datetime
    attempts: int = 0
    last_error: Optional[str] = None
    processed_at: Optional[datetime] = None
