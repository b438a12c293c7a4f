from __future__ import annotations

from datetime import date
from typing import Optional, Sequence

from ..core.enums import TimesheetState
from ..core.exceptions import ConflictError
from ..database.connection import DatabaseConnection
from ..database.mysql_base import as_decimal, db_cursor, fetchall, fetchone
from ..notifications.model import NewOutboxEvent
from .model import TIME_FIELDS, Timesheet, TimesheetEntry
from .repository import EntryWriteOutcome, TimesheetRepository

_TIMESHEET_COLUMNS = """
    t.timesheet_id, t.user_id, t.period_start, t.period_end, t.state,
    t.staff_sig, t.staff_sig_at, t.manager_sig, t.manager_sig_at,
    t.hr_sig, t.hr_sig_at, t.denial_note, t.created_at, t.updated_at
"""

_ENTRY_COLUMNS = """
    entry_id, timesheet_id, work_date, in1, out1, in2, out2, in3, out3,
    adjustment_hours, comments, version
"""

# Columns a workflow transition may set besides ``state``.
_TRANSITION_COLUMNS = frozenset(
    {
        "staff_sig",
        "staff_sig_at",
        "manager_sig",
        "manager_sig_at",
        "hr_sig",
        "hr_sig_at",
        "denial_note",
    }
)


def _row_to_timesheet(r: dict) -> Timesheet:
    return Timesheet(
        timesheet_id=int(r["timesheet_id"]),
        user_id=int(r["user_id"]),
        period_start=r["period_start"],
        period_end=r["period_end"],
        state=TimesheetState(r["state"]),
        staff_sig=r.get("staff_sig"),
        staff_sig_at=r.get("staff_sig_at"),
        manager_sig=r.get("manager_sig"),
        manager_sig_at=r.get("manager_sig_at"),
        hr_sig=r.get("hr_sig"),
        hr_sig_at=r.get("hr_sig_at"),
        denial_note=r.get("denial_note"),
        created_at=r.get("created_at"),
        updated_at=r.get("updated_at"),
    )


def _row_to_entry(r: dict) -> TimesheetEntry:
    return TimesheetEntry(
        entry_id=int(r["entry_id"]),
        timesheet_id=int(r["timesheet_id"]),
        work_date=r["work_date"],
        in1=r.get("in1"),
        out1=r.get("out1"),
        in2=r.get("in2"),
        out2=r.get("out2"),
        in3=r.get("in3"),
        out3=r.get("out3"),
        adjustment_hours=as_decimal(r.get("adjustment_hours")),
        comments=r.get("comments"),
        version=int(r.get("version") or 0),
    )


class MySQLTimesheetRepository(TimesheetRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get(self, timesheet_id: int) -> Optional[Timesheet]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_TIMESHEET_COLUMNS} FROM timesheets t WHERE t.timesheet_id=%s", (int(timesheet_id),))
            row = fetchone(cur)
            return _row_to_timesheet(row) if row else None

    def find_for_period(self, *, user_id: int, start: date, end: date) -> Optional[Timesheet]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_TIMESHEET_COLUMNS}
                FROM timesheets t
                WHERE t.user_id=%s AND t.period_start=%s AND t.period_end=%s
                """,
                (int(user_id), start, end),
            )
            row = fetchone(cur)
            return _row_to_timesheet(row) if row else None

    def create_with_entries(
        self,
        *,
        user_id: int,
        start: date,
        end: date,
        dates: Sequence[date],
    ) -> tuple[Timesheet, bool]:
        with db_cursor(self._conn_factory) as (_, cur):
            # Serialises period creation per owner so overlap checks cannot race.
            cur.execute("SELECT user_id FROM users WHERE user_id=%s FOR UPDATE", (int(user_id),))
            fetchone(cur)

            cur.execute(
                f"""
                SELECT {_TIMESHEET_COLUMNS}
                FROM timesheets t
                WHERE t.user_id=%s AND t.period_start<=%s AND t.period_end>=%s
                ORDER BY t.period_start
                """,
                (int(user_id), end, start),
            )
            overlapping = [_row_to_timesheet(r) for r in fetchall(cur)]
            for ts in overlapping:
                if ts.same_period(start, end):
                    return ts, False
            if overlapping:
                other = overlapping[0]
                raise ConflictError(
                    f"Timesheet period overlaps existing period {other.period_start} - {other.period_end}"
                )

            cur.execute(
                """
                INSERT INTO timesheets(user_id, period_start, period_end, state)
                VALUES(%s,%s,%s,%s)
                """,
                (int(user_id), start, end, TimesheetState.PENDING_STAFF.value),
            )
            timesheet_id = int(cur.lastrowid)
            cur.executemany(
                "INSERT INTO timesheet_entries(timesheet_id, work_date, adjustment_hours) VALUES(%s,%s,0)",
                [(timesheet_id, d) for d in dates],
            )

            cur.execute(f"SELECT {_TIMESHEET_COLUMNS} FROM timesheets t WHERE t.timesheet_id=%s", (timesheet_id,))
            return _row_to_timesheet(fetchone(cur)), True

    def list_entries(self, timesheet_id: int) -> Sequence[TimesheetEntry]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_ENTRY_COLUMNS} FROM timesheet_entries WHERE timesheet_id=%s ORDER BY work_date",
                (int(timesheet_id),),
            )
            return [_row_to_entry(r) for r in fetchall(cur)]

    def get_entry(self, *, timesheet_id: int, entry_id: int) -> Optional[TimesheetEntry]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_ENTRY_COLUMNS} FROM timesheet_entries WHERE entry_id=%s AND timesheet_id=%s",
                (int(entry_id), int(timesheet_id)),
            )
            row = fetchone(cur)
            return _row_to_entry(row) if row else None

    def write_entry(self, *, entry: TimesheetEntry, owner_id: int, expected_version: int) -> EntryWriteOutcome:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE timesheet_entries e
                JOIN timesheets t ON t.timesheet_id = e.timesheet_id
                SET e.in1=%s, e.out1=%s, e.in2=%s, e.out2=%s, e.in3=%s, e.out3=%s,
                    e.adjustment_hours=%s, e.comments=%s, e.version=e.version+1
                WHERE e.entry_id=%s AND e.timesheet_id=%s AND e.version=%s
                  AND t.state=%s AND t.user_id=%s
                """,
                (
                    *[getattr(entry, f) for f in TIME_FIELDS],
                    entry.adjustment_hours,
                    entry.comments,
                    int(entry.entry_id),
                    int(entry.timesheet_id),
                    int(expected_version),
                    TimesheetState.PENDING_STAFF.value,
                    int(owner_id),
                ),
            )
            if cur.rowcount > 0:
                return EntryWriteOutcome.WRITTEN

            cur.execute(
                """
                SELECT t.state, t.user_id, e.version
                FROM timesheet_entries e
                JOIN timesheets t ON t.timesheet_id = e.timesheet_id
                WHERE e.entry_id=%s AND e.timesheet_id=%s
                """,
                (int(entry.entry_id), int(entry.timesheet_id)),
            )
            row = fetchone(cur)
            if not row:
                return EntryWriteOutcome.MISSING
            if row["state"] != TimesheetState.PENDING_STAFF.value or int(row["user_id"]) != int(owner_id):
                return EntryWriteOutcome.NOT_EDITABLE
            return EntryWriteOutcome.VERSION_CONFLICT

    def apply_entry_times(self, *, timesheet_id: int, owner_id: int, entries: Sequence[TimesheetEntry]) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT state, user_id FROM timesheets WHERE timesheet_id=%s LOCK IN SHARE MODE",
                (int(timesheet_id),),
            )
            row = fetchone(cur)
            if not row or row["state"] != TimesheetState.PENDING_STAFF.value or int(row["user_id"]) != int(owner_id):
                return False

            for entry in sorted(entries, key=lambda e: e.entry_id):
                cur.execute(
                    """
                    UPDATE timesheet_entries
                    SET in1=%s, out1=%s, in2=%s, out2=%s, in3=%s, out3=%s,
                        comments=%s, version=version+1
                    WHERE entry_id=%s AND timesheet_id=%s
                    """,
                    (
                        *[getattr(entry, f) for f in TIME_FIELDS],
                        entry.comments,
                        int(entry.entry_id),
                        int(timesheet_id),
                    ),
                )
            return True

    def transition(
        self,
        *,
        timesheet_id: int,
        from_state: TimesheetState,
        to_state: TimesheetState,
        changes: dict,
        event: NewOutboxEvent,
    ) -> Optional[int]:
        unknown = set(changes) - _TRANSITION_COLUMNS
        if unknown:
            raise ValueError(f"Unsupported transition columns: {sorted(unknown)}")

        columns = sorted(changes)
        assignments = "".join(f", {c}=%s" for c in columns)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                UPDATE timesheets
                SET state=%s{assignments}, updated_at=NOW()
                WHERE timesheet_id=%s AND state=%s
                """,
                (to_state.value, *[changes[c] for c in columns], int(timesheet_id), from_state.value),
            )
            if cur.rowcount == 0:
                return None

            cur.execute(
                """
                INSERT INTO workflow_outbox(event_type, timesheet_id, actor_id, note)
                VALUES(%s,%s,%s,%s)
                """,
                (event.event_type.value, int(event.timesheet_id), int(event.actor_id), event.note),
            )
            return int(cur.lastrowid)

    def list_for_owner(self, user_id: int) -> Sequence[Timesheet]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_TIMESHEET_COLUMNS} FROM timesheets t WHERE t.user_id=%s ORDER BY t.period_start DESC",
                (int(user_id),),
            )
            return [_row_to_timesheet(r) for r in fetchall(cur)]

    def list_for_manager(self, manager_id: int, *, state: Optional[TimesheetState] = None) -> Sequence[Timesheet]:
        clauses = ["u.manager_id=%s"]
        params: list[object] = [int(manager_id)]
        if state is not None:
            clauses.append("t.state=%s")
            params.append(state.value)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_TIMESHEET_COLUMNS}
                FROM timesheets t
                JOIN users u ON u.user_id = t.user_id
                WHERE {" AND ".join(clauses)}
                ORDER BY t.period_start DESC, t.updated_at ASC, u.full_name ASC
                """,
                tuple(params),
            )
            return [_row_to_timesheet(r) for r in fetchall(cur)]

    def list_all(self, *, state: Optional[TimesheetState] = None) -> Sequence[Timesheet]:
        where = "1=1"
        params: tuple = ()
        if state is not None:
            where = "t.state=%s"
            params = (state.value,)

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_TIMESHEET_COLUMNS}
                FROM timesheets t
                JOIN users u ON u.user_id = t.user_id
                WHERE {where}
                ORDER BY t.period_start DESC, t.updated_at ASC, u.full_name ASC
                """,
                params,
            )
            return [_row_to_timesheet(r) for r in fetchall(cur)]
