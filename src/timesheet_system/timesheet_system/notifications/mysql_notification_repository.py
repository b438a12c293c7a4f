from __future__ import annotations

from typing import Iterable, Optional, Sequence

from ..core.enums import NotificationType
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, in_clause
from .model import Notification
from .repository import NotificationRepository

_COLUMNS = "notification_id, user_id, type, title, message, resource_id, is_read, read_at, created_at"


def _row_to_notification(r: dict) -> Notification:
    return Notification(
        notification_id=int(r["notification_id"]),
        user_id=int(r["user_id"]),
        type=NotificationType(r["type"]),
        title=r["title"],
        message=r["message"],
        resource_id=int(r["resource_id"]) if r.get("resource_id") is not None else None,
        is_read=bool(r.get("is_read")),
        read_at=r.get("read_at"),
        created_at=r.get("created_at"),
    )


class MySQLNotificationRepository(NotificationRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def replace_unread(
        self,
        *,
        user_id: int,
        type: NotificationType,
        resource_id: Optional[int],
        title: str,
        message: str,
    ) -> Notification:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                DELETE FROM notifications
                WHERE user_id=%s AND type=%s AND resource_id <=> %s AND is_read=0
                """,
                (int(user_id), type.value, resource_id),
            )
            cur.execute(
                """
                INSERT INTO notifications(user_id, type, title, message, resource_id)
                VALUES(%s,%s,%s,%s,%s)
                """,
                (int(user_id), type.value, title, message, resource_id),
            )
            notification_id = int(cur.lastrowid)
            cur.execute(f"SELECT {_COLUMNS} FROM notifications WHERE notification_id=%s", (notification_id,))
            return _row_to_notification(fetchone(cur))

    def delete_by_types(
        self,
        *,
        resource_id: int,
        types: Iterable[NotificationType],
        user_id: Optional[int] = None,
    ) -> int:
        values = [t.value for t in types]
        if not values:
            return 0

        sql = f"DELETE FROM notifications WHERE resource_id=%s AND type IN ({in_clause(values)})"
        params: list[object] = [int(resource_id), *values]
        if user_id is not None:
            sql += " AND user_id=%s"
            params.append(int(user_id))

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql, tuple(params))
            return int(cur.rowcount or 0)

    def get(self, notification_id: int) -> Optional[Notification]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM notifications WHERE notification_id=%s", (int(notification_id),))
            row = fetchone(cur)
            return _row_to_notification(row) if row else None

    def list_for_user(self, user_id: int, *, limit: int) -> Sequence[Notification]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM notifications
                WHERE user_id=%s
                ORDER BY is_read ASC, created_at DESC, notification_id DESC
                LIMIT %s
                """,
                (int(user_id), int(limit)),
            )
            return [_row_to_notification(r) for r in fetchall(cur)]

    def mark_read(self, *, notification_id: int, user_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE notifications
                SET is_read=1, read_at=COALESCE(read_at, NOW())
                WHERE notification_id=%s AND user_id=%s
                """,
                (int(notification_id), int(user_id)),
            )
            if cur.rowcount > 0:
                return True
            # Already read rows report zero affected rows on MySQL.
            cur.execute(
                "SELECT 1 AS found FROM notifications WHERE notification_id=%s AND user_id=%s",
                (int(notification_id), int(user_id)),
            )
            return fetchone(cur) is not None

    def delete(self, *, notification_id: int, user_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "DELETE FROM notifications WHERE notification_id=%s AND user_id=%s",
                (int(notification_id), int(user_id)),
            )
            return cur.rowcount > 0

    def delete_all(self, user_id: int) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("DELETE FROM notifications WHERE user_id=%s", (int(user_id),))
            return int(cur.rowcount or 0)
