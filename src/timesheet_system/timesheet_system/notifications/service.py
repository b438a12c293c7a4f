from __future__ import annotations

from typing import Sequence

from loguru import logger

from ..core.constants import DEFAULT_LIST_LIMIT
from ..core.exceptions import NotFoundError
from .model import Notification
from .repository import NotificationRepository


class NotificationService:
    """Use cases: a user reading and dismissing their own notifications."""

    def __init__(self, notifications: NotificationRepository):
        self._notifications = notifications

    def list_for_user(self, *, user_id: int, limit: int = DEFAULT_LIST_LIMIT) -> Sequence[Notification]:
        return self._notifications.list_for_user(int(user_id), limit=int(limit))

    def unread_count(self, *, user_id: int) -> int:
        return sum(1 for n in self.list_for_user(user_id=user_id) if not n.is_read)

    def mark_read(self, *, user_id: int, notification_id: int) -> Notification:
        if not self._notifications.mark_read(notification_id=int(notification_id), user_id=int(user_id)):
            raise NotFoundError("Notification not found")
        notification = self._notifications.get(int(notification_id))
        if not notification:
            raise NotFoundError("Notification not found")
        return notification

    def dismiss(self, *, user_id: int, notification_id: int) -> None:
        if not self._notifications.delete(notification_id=int(notification_id), user_id=int(user_id)):
            raise NotFoundError("Notification not found")

    def clear_all(self, *, user_id: int) -> int:
        removed = self._notifications.delete_all(int(user_id))
        logger.info(f"User {user_id} cleared {removed} notification(s)")
        return removed
