from __future__ import annotations

from typing import Optional, Sequence

from ..core.enums import Role
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import TimesheetMessage
from .repository import MessageRepository

_SELECT = """
    SELECT m.message_id, m.timesheet_id, m.sender_id, m.content, m.created_at,
           u.full_name AS sender_name, u.role AS sender_role
    FROM timesheet_messages m
    JOIN users u ON u.user_id = m.sender_id
"""


def _row_to_message(row: dict) -> TimesheetMessage:
    return TimesheetMessage(
        message_id=int(row["message_id"]),
        timesheet_id=int(row["timesheet_id"]),
        sender_id=int(row["sender_id"]),
        content=row["content"],
        created_at=row.get("created_at"),
        sender_name=row.get("sender_name") or "",
        sender_role=Role(row["sender_role"]) if row.get("sender_role") else None,
    )


class MySQLMessageRepository(MessageRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def add(self, *, timesheet_id: int, sender_id: int, content: str) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "INSERT INTO timesheet_messages (timesheet_id, sender_id, content) VALUES (%s, %s, %s)",
                (int(timesheet_id), int(sender_id), content),
            )
            return int(cur.lastrowid)

    def get(self, message_id: int) -> Optional[TimesheetMessage]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(_SELECT + " WHERE m.message_id=%s", (int(message_id),))
            row = fetchone(cur)
            return _row_to_message(row) if row else None

    def list_for_timesheet(self, timesheet_id: int) -> Sequence[TimesheetMessage]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                _SELECT + " WHERE m.timesheet_id=%s ORDER BY m.created_at ASC, m.message_id ASC",
                (int(timesheet_id),),
            )
            return [_row_to_message(r) for r in fetchall(cur)]
