from __future__ import annotations

from typing import Optional, Sequence

from ..core.enums import OutboxEventType
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import OutboxEvent
from .repository import OutboxRepository

_COLUMNS = "event_id, event_type, timesheet_id, actor_id, note, created_at, attempts, last_error, processed_at"

# Claims older than this are considered abandoned by a crashed worker.
_CLAIM_TIMEOUT_MINUTES = 5


def _row_to_event(r: dict) -> OutboxEvent:
    return OutboxEvent(
        event_id=int(r["event_id"]),
        event_type=OutboxEventType(r["event_type"]),
        timesheet_id=int(r["timesheet_id"]),
        actor_id=int(r["actor_id"]),
        note=r.get("note"),
        created_at=r["created_at"],
        attempts=int(r.get("attempts") or 0),
        last_error=r.get("last_error"),
        processed_at=r.get("processed_at"),
    )


class MySQLOutboxRepository(OutboxRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get(self, event_id: int) -> Optional[OutboxEvent]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM workflow_outbox WHERE event_id=%s", (int(event_id),))
            row = fetchone(cur)
            return _row_to_event(row) if row else None

    def claim(self, event_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE workflow_outbox
                SET claimed_at=NOW(), attempts=attempts+1
                WHERE event_id=%s AND processed_at IS NULL
                  AND (claimed_at IS NULL OR claimed_at < NOW() - INTERVAL %s MINUTE)
                """,
                (int(event_id), _CLAIM_TIMEOUT_MINUTES),
            )
            return cur.rowcount > 0

    def mark_processed(self, event_id: int) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE workflow_outbox SET processed_at=NOW(), claimed_at=NULL, last_error=NULL WHERE event_id=%s",
                (int(event_id),),
            )

    def mark_failed(self, event_id: int, *, error: str) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE workflow_outbox SET claimed_at=NULL, last_error=%s WHERE event_id=%s",
                ((error or "")[:1000], int(event_id)),
            )

    def list_pending(self, *, limit: int, max_attempts: int) -> Sequence[OutboxEvent]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM workflow_outbox
                WHERE processed_at IS NULL AND attempts < %s
                ORDER BY event_id
                LIMIT %s
                """,
                (int(max_attempts), int(limit)),
            )
            return [_row_to_event(r) for r in fetchall(cur)]
