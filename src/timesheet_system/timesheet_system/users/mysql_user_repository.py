from __future__ import annotations

from decimal import Decimal
from typing import Iterable, Optional, Sequence

from ..core.enums import Role
from ..database.connection import DatabaseConnection
from ..database.mysql_base import as_decimal, db_cursor, fetchall, fetchone, in_clause
from .model import User
from .repository import UserRepository

_USER_COLUMNS = "user_id, full_name, email, password_hash, role, manager_id, pay_rate, is_active"
_UPDATABLE_COLUMNS = frozenset({"full_name", "email", "password_hash", "role", "manager_id", "pay_rate", "is_active"})


def _row_to_user(row: dict) -> User:
    return User(
        user_id=int(row["user_id"]),
        full_name=row["full_name"],
        email=row["email"],
        password_hash=row["password_hash"],
        role=Role(row["role"]),
        manager_id=row.get("manager_id"),
        pay_rate=as_decimal(row.get("pay_rate")),
        is_active=bool(row.get("is_active", True)),
    )


class MySQLUserRepository(UserRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, user_id: int) -> Optional[User]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_USER_COLUMNS} FROM users WHERE user_id=%s", (int(user_id),))
            row = fetchone(cur)
            return _row_to_user(row) if row else None

    def get_by_email(self, email: str) -> Optional[User]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_USER_COLUMNS} FROM users WHERE email=%s", (email,))
            row = fetchone(cur)
            return _row_to_user(row) if row else None

    def list_by_roles(self, roles: Iterable[Role]) -> Sequence[User]:
        values = [r.value for r in roles]
        if not values:
            return []
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_USER_COLUMNS}
                FROM users
                WHERE is_active=1 AND role IN ({in_clause(values)})
                ORDER BY user_id
                """,
                tuple(values),
            )
            return [_row_to_user(r) for r in fetchall(cur)]

    def list_direct_reports(self, manager_id: int) -> Sequence[User]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_USER_COLUMNS} FROM users WHERE manager_id=%s ORDER BY full_name",
                (int(manager_id),),
            )
            return [_row_to_user(r) for r in fetchall(cur)]

    def create_user(
        self,
        *,
        full_name: str,
        email: str,
        password_hash: str,
        role: Role,
        manager_id: Optional[int] = None,
        pay_rate: Decimal = Decimal("0"),
    ) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO users(full_name, email, password_hash, role, manager_id, pay_rate, is_active)
                VALUES(%s,%s,%s,%s,%s,%s,1)
                """,
                (full_name, email, password_hash, role.value, manager_id, pay_rate),
            )
            return int(cur.lastrowid)

    def list_all(self) -> Sequence[User]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_USER_COLUMNS} FROM users ORDER BY created_at DESC, user_id DESC")
            return [_row_to_user(r) for r in fetchall(cur)]

    def update_user(self, user_id: int, changes: dict) -> bool:
        unknown = set(changes) - _UPDATABLE_COLUMNS
        if unknown:
            raise ValueError(f"Not updatable: {', '.join(sorted(unknown))}")
        if not changes:
            return self.get_by_id(user_id) is not None

        params = []
        assignments = []
        for column, value in changes.items():
            assignments.append(f"{column}=%s")
            params.append(value.value if isinstance(value, Role) else value)
        params.append(int(user_id))
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"UPDATE users SET {', '.join(assignments)} WHERE user_id=%s", tuple(params))
            if cur.rowcount:
                return True
            # MySQL reports 0 rows when the values did not change.
            cur.execute("SELECT 1 AS found FROM users WHERE user_id=%s", (int(user_id),))
            return fetchone(cur) is not None
