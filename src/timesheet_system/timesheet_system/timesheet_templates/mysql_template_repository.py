from __future__ import annotations

from typing import Optional, Sequence

from ..core.enums import DayType
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, in_clause
from .model import TemplatePattern, TimesheetTemplate
from .repository import TemplateRepository


class MySQLTemplateRepository(TemplateRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def _load(self, cur, rows: list[dict]) -> list[TimesheetTemplate]:
        if not rows:
            return []
        ids = [int(r["template_id"]) for r in rows]
        cur.execute(
            f"""
            SELECT template_id, day_type, in1, out1, in2, out2, in3, out3, comments
            FROM timesheet_template_patterns
            WHERE template_id IN ({in_clause(ids)})
            ORDER BY day_type
            """,
            tuple(ids),
        )
        patterns: dict[int, list[TemplatePattern]] = {}
        for p in fetchall(cur):
            patterns.setdefault(int(p["template_id"]), []).append(
                TemplatePattern(
                    day_type=DayType(p["day_type"]),
                    in1=p.get("in1"),
                    out1=p.get("out1"),
                    in2=p.get("in2"),
                    out2=p.get("out2"),
                    in3=p.get("in3"),
                    out3=p.get("out3"),
                    comments=p.get("comments"),
                )
            )
        return [
            TimesheetTemplate(
                template_id=int(r["template_id"]),
                user_id=int(r["user_id"]),
                name=r["name"],
                description=r.get("description"),
                is_default=bool(r.get("is_default")),
                patterns=tuple(patterns.get(int(r["template_id"]), [])),
            )
            for r in rows
        ]

    def list_for_user(self, user_id: int) -> Sequence[TimesheetTemplate]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT template_id, user_id, name, description, is_default
                FROM timesheet_templates
                WHERE user_id=%s
                ORDER BY is_default DESC, updated_at DESC
                """,
                (int(user_id),),
            )
            return self._load(cur, fetchall(cur))

    def get_for_user(self, *, template_id: int, user_id: int) -> Optional[TimesheetTemplate]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT template_id, user_id, name, description, is_default
                FROM timesheet_templates
                WHERE template_id=%s AND user_id=%s
                """,
                (int(template_id), int(user_id)),
            )
            row = fetchone(cur)
            loaded = self._load(cur, [row] if row else [])
            return loaded[0] if loaded else None

    def get_by_name(self, *, user_id: int, name: str) -> Optional[TimesheetTemplate]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT template_id, user_id, name, description, is_default
                FROM timesheet_templates
                WHERE user_id=%s AND name=%s
                """,
                (int(user_id), name),
            )
            row = fetchone(cur)
            loaded = self._load(cur, [row] if row else [])
            return loaded[0] if loaded else None

    def create(
        self,
        *,
        user_id: int,
        name: str,
        description: Optional[str],
        is_default: bool,
        patterns: Sequence[TemplatePattern],
    ) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            if is_default:
                cur.execute(
                    "UPDATE timesheet_templates SET is_default=0 WHERE user_id=%s AND is_default=1",
                    (int(user_id),),
                )
            cur.execute(
                """
                INSERT INTO timesheet_templates(user_id, name, description, is_default)
                VALUES(%s,%s,%s,%s)
                """,
                (int(user_id), name, description, 1 if is_default else 0),
            )
            template_id = int(cur.lastrowid)
            cur.executemany(
                """
                INSERT INTO timesheet_template_patterns(
                    template_id, day_type, in1, out1, in2, out2, in3, out3, comments
                )
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                [
                    (template_id, p.day_type.value, p.in1, p.out1, p.in2, p.out2, p.in3, p.out3, p.comments)
                    for p in patterns
                ],
            )
            return template_id

    def delete(self, *, template_id: int, user_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "DELETE FROM timesheet_templates WHERE template_id=%s AND user_id=%s",
                (int(template_id), int(user_id)),
            )
            return cur.rowcount > 0
