from __future__ import annotations

from typing import Iterable, Optional, Protocol, Sequence

from ..core.enums import NotificationType
from .model import Notification, OutboxEvent


class NotificationRepository(Protocol):
    def replace_unread(
        self,
        *,
        user_id: int,
        type: NotificationType,
        resource_id: Optional[int],
        title: str,
        message: str,
    ) -> Notification:
        """Drop unread notifications with the same (recipient, resource, type)
        and insert the new one, in one transaction."""

        raise NotImplementedError

    def delete_by_types(
        self,
        *,
        resource_id: int,
        types: Iterable[NotificationType],
        user_id: Optional[int] = None,
    ) -> int:
        """Delete notifications for ``resource_id``; ``user_id`` narrows to one recipient."""

        raise NotImplementedError

    def get(self, notification_id: int) -> Optional[Notification]:
        raise NotImplementedError

    def list_for_user(self, user_id: int, *, limit: int) -> Sequence[Notification]:
        raise NotImplementedError

    def mark_read(self, *, notification_id: int, user_id: int) -> bool:
        raise NotImplementedError

    def delete(self, *, notification_id: int, user_id: int) -> bool:
        raise NotImplementedError

    def delete_all(self, user_id: int) -> int:
        raise NotImplementedError


class OutboxRepository(Protocol):
    def get(self, event_id: int) -> Optional[OutboxEvent]:
        raise NotImplementedError

    def claim(self, event_id: int) -> bool:
        """Mark an unprocessed event as in flight; False if someone else has it."""

        raise NotImplementedError

    def mark_processed(self, event_id: int) -> None:
        raise NotImplementedError

    def mark_failed(self, event_id: int, *, error: str) -> None:
        """Record the error and release the claim so the event is retried."""

        raise NotImplementedError

    def list_pending(self, *, limit: int, max_attempts: int) -> Sequence[OutboxEvent]:
        raise NotImplementedError
