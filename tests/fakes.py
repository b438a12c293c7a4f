"""In-memory repositories shared by the test modules.

They follow the same contracts as the MySQL repositories, including the
conditional writes: transitions and entry writes re-check state under a lock.
"""
from __future__ import annotations

import threading
from dataclasses import dataclass, replace
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, Optional

from src.timesheet_system.timesheet_system.container import Container, assemble_container
from src.timesheet_system.timesheet_system.core.enums import NotificationType, Role, TimesheetState
from src.timesheet_system.timesheet_system.core.exceptions import ConflictError
from src.timesheet_system.timesheet_system.notifications.model import NewOutboxEvent, Notification, OutboxEvent
from src.timesheet_system.timesheet_system.timesheet_messages.model import TimesheetMessage
from src.timesheet_system.timesheet_system.timesheet_templates.model import TimesheetTemplate
from src.timesheet_system.timesheet_system.timesheets.model import TIME_FIELDS, Timesheet, TimesheetEntry
from src.timesheet_system.timesheet_system.timesheets.repository import EntryWriteOutcome
from src.timesheet_system.timesheet_system.users.model import User
from src.timesheet_system.timesheet_system.users.tokens import IdentityClaims


class InMemoryUsers:
    def __init__(self, users: Iterable[User] = ()):
        self.by_id: dict[int, User] = {u.user_id: u for u in users}

    def add(self, user: User) -> User:
        self.by_id[user.user_id] = user
        return user

    def get_by_id(self, user_id: int) -> Optional[User]:
        return self.by_id.get(int(user_id))

    def get_by_email(self, email: str) -> Optional[User]:
        return next((u for u in self.by_id.values() if u.email == email), None)

    def list_by_roles(self, roles):
        roles = set(roles)
        return [u for u in sorted(self.by_id.values(), key=lambda u: u.user_id) if u.is_active and u.role in roles]

    def list_direct_reports(self, manager_id: int):
        return [u for u in self.by_id.values() if u.manager_id == manager_id]

    def create_user(self, *, full_name, email, password_hash, role, manager_id=None, pay_rate=Decimal("0")) -> int:
        user_id = max(self.by_id, default=0) + 1
        self.add(User(user_id, full_name, email, password_hash, role, manager_id, pay_rate))
        return user_id

    def list_all(self):
        return sorted(self.by_id.values(), key=lambda u: u.user_id, reverse=True)

    def update_user(self, user_id: int, changes: dict) -> bool:
        user = self.by_id.get(int(user_id))
        if user is None:
            return False
        self.by_id[user.user_id] = replace(user, **changes)
        return True


class InMemoryOutbox:
    def __init__(self):
        self._lock = threading.Lock()
        self.events: dict[int, OutboxEvent] = {}
        self.claimed: set[int] = set()

    def add(self, event: NewOutboxEvent) -> int:
        with self._lock:
            event_id = len(self.events) + 1
            self.events[event_id] = OutboxEvent(
                event_id=event_id,
                event_type=event.event_type,
                timesheet_id=event.timesheet_id,
                actor_id=event.actor_id,
                note=event.note,
                created_at=datetime(2025, 1, 1, 12, 0),
            )
            return event_id

    def get(self, event_id: int) -> Optional[OutboxEvent]:
        return self.events.get(int(event_id))

    def claim(self, event_id: int) -> bool:
        with self._lock:
            event = self.events.get(int(event_id))
            if event is None or event.processed_at is not None or event_id in self.claimed:
                return False
            self.claimed.add(event_id)
            self.events[event_id] = replace(event, attempts=event.attempts + 1)
            return True

    def mark_processed(self, event_id: int) -> None:
        with self._lock:
            self.claimed.discard(event_id)
            self.events[event_id] = replace(self.events[event_id], processed_at=datetime(2025, 1, 1, 12, 1))

    def mark_failed(self, event_id: int, *, error: str) -> None:
        with self._lock:
            self.claimed.discard(event_id)
            self.events[event_id] = replace(self.events[event_id], last_error=error)

    def list_pending(self, *, limit: int, max_attempts: int):
        pending = [e for e in self.events.values() if e.processed_at is None and e.attempts < max_attempts]
        return sorted(pending, key=lambda e: e.event_id)[:limit]

    def pending(self):
        return [e for e in self.events.values() if e.processed_at is None]


class InMemoryTimesheets:
    def __init__(self, users: InMemoryUsers, outbox: InMemoryOutbox):
        self._users = users
        self._outbox = outbox
        self._lock = threading.Lock()
        self.sheets: dict[int, Timesheet] = {}
        self.entries: dict[int, TimesheetEntry] = {}
        self.transition_calls = 0

    def get(self, timesheet_id: int) -> Optional[Timesheet]:
        return self.sheets.get(int(timesheet_id))

    def find_for_period(self, *, user_id, start, end):
        return next(
            (t for t in self.sheets.values() if t.user_id == user_id and t.same_period(start, end)),
            None,
        )

    def create_with_entries(self, *, user_id, start, end, dates):
        with self._lock:
            for ts in self.sheets.values():
                if ts.user_id != user_id or not ts.overlaps(start, end):
                    continue
                if ts.same_period(start, end):
                    return ts, False
                raise ConflictError("Timesheet period overlaps existing period")

            ts = Timesheet(
                timesheet_id=len(self.sheets) + 1,
                user_id=user_id,
                period_start=start,
                period_end=end,
                state=TimesheetState.PENDING_STAFF,
            )
            self.sheets[ts.timesheet_id] = ts
            for d in dates:
                entry_id = len(self.entries) + 1
                self.entries[entry_id] = TimesheetEntry(entry_id=entry_id, timesheet_id=ts.timesheet_id, work_date=d)
            return ts, True

    def list_entries(self, timesheet_id: int):
        rows = [e for e in self.entries.values() if e.timesheet_id == timesheet_id]
        return sorted(rows, key=lambda e: e.work_date)

    def get_entry(self, *, timesheet_id, entry_id):
        entry = self.entries.get(int(entry_id))
        return entry if entry and entry.timesheet_id == timesheet_id else None

    def _editable(self, timesheet_id: int, owner_id: int) -> bool:
        ts = self.sheets.get(timesheet_id)
        return bool(ts and ts.state is TimesheetState.PENDING_STAFF and ts.user_id == owner_id)

    def write_entry(self, *, entry, owner_id, expected_version):
        with self._lock:
            current = self.entries.get(entry.entry_id)
            if current is None or current.timesheet_id != entry.timesheet_id:
                return EntryWriteOutcome.MISSING
            if not self._editable(entry.timesheet_id, owner_id):
                return EntryWriteOutcome.NOT_EDITABLE
            if current.version != expected_version:
                return EntryWriteOutcome.VERSION_CONFLICT
            self.entries[entry.entry_id] = replace(entry, version=current.version + 1)
            return EntryWriteOutcome.WRITTEN

    def apply_entry_times(self, *, timesheet_id, owner_id, entries):
        with self._lock:
            if not self._editable(timesheet_id, owner_id):
                return False
            for entry in entries:
                current = self.entries[entry.entry_id]
                changes = {name: getattr(entry, name) for name in TIME_FIELDS}
                self.entries[entry.entry_id] = replace(
                    current, comments=entry.comments, version=current.version + 1, **changes
                )
            return True

    def transition(self, *, timesheet_id, from_state, to_state, changes, event):
        with self._lock:
            self.transition_calls += 1
            ts = self.sheets.get(int(timesheet_id))
            if ts is None or ts.state is not from_state:
                return None
            self.sheets[ts.timesheet_id] = replace(ts, state=to_state, **changes)
            return self._outbox.add(event)

    def list_for_owner(self, user_id: int):
        return [t for t in self.sheets.values() if t.user_id == user_id]

    def list_for_manager(self, manager_id: int, *, state=None):
        reports = {u.user_id for u in self._users.list_direct_reports(manager_id)}
        return [t for t in self.sheets.values() if t.user_id in reports and (state is None or t.state is state)]

    def list_all(self, *, state=None):
        return [t for t in self.sheets.values() if state is None or t.state is state]

    def force_state(self, timesheet_id: int, state: TimesheetState) -> None:
        self.sheets[timesheet_id] = replace(self.sheets[timesheet_id], state=state)


class InMemoryNotifications:
    def __init__(self):
        self._lock = threading.Lock()
        self.rows: dict[int, Notification] = {}
        self._next_id = 1

    def replace_unread(self, *, user_id, type, resource_id, title, message):
        with self._lock:
            for nid, n in list(self.rows.items()):
                if n.user_id == user_id and n.type is type and n.resource_id == resource_id and not n.is_read:
                    del self.rows[nid]
            n = Notification(
                notification_id=self._next_id,
                user_id=user_id,
                type=type,
                title=title,
                message=message,
                resource_id=resource_id,
                created_at=datetime(2025, 1, 1, 12, 0),
            )
            self.rows[n.notification_id] = n
            self._next_id += 1
            return n

    def delete_by_types(self, *, resource_id, types, user_id=None):
        types = set(types)
        with self._lock:
            doomed = [
                nid
                for nid, n in self.rows.items()
                if n.resource_id == resource_id and n.type in types and (user_id is None or n.user_id == user_id)
            ]
            for nid in doomed:
                del self.rows[nid]
            return len(doomed)

    def get(self, notification_id: int):
        return self.rows.get(int(notification_id))

    def list_for_user(self, user_id: int, *, limit: int):
        rows = [n for n in self.rows.values() if n.user_id == user_id]
        rows.sort(key=lambda n: (n.is_read, -n.notification_id))
        return rows[:limit]

    def mark_read(self, *, notification_id, user_id):
        n = self.rows.get(int(notification_id))
        if not n or n.user_id != user_id:
            return False
        self.rows[n.notification_id] = replace(n, is_read=True, read_at=n.read_at or datetime(2025, 1, 2))
        return True

    def delete(self, *, notification_id, user_id):
        n = self.rows.get(int(notification_id))
        if not n or n.user_id != user_id:
            return False
        del self.rows[n.notification_id]
        return True

    def delete_all(self, user_id: int):
        doomed = [nid for nid, n in self.rows.items() if n.user_id == user_id]
        for nid in doomed:
            del self.rows[nid]
        return len(doomed)

    def for_user(self, user_id: int, type: Optional[NotificationType] = None):
        return [n for n in self.rows.values() if n.user_id == user_id and (type is None or n.type is type)]


class InMemoryTemplates:
    def __init__(self):
        self.rows: dict[int, TimesheetTemplate] = {}

    def list_for_user(self, user_id: int):
        return [t for t in self.rows.values() if t.user_id == user_id]

    def get_for_user(self, *, template_id, user_id):
        t = self.rows.get(int(template_id))
        return t if t and t.user_id == user_id else None

    def get_by_name(self, *, user_id, name):
        return next((t for t in self.rows.values() if t.user_id == user_id and t.name == name), None)

    def create(self, *, user_id, name, description, is_default, patterns):
        if is_default:
            for tid, t in self.rows.items():
                if t.user_id == user_id:
                    self.rows[tid] = replace(t, is_default=False)
        template_id = len(self.rows) + 1
        self.rows[template_id] = TimesheetTemplate(template_id, user_id, name, description, is_default, tuple(patterns))
        return template_id

    def delete(self, *, template_id, user_id):
        if self.get_for_user(template_id=template_id, user_id=user_id) is None:
            return False
        del self.rows[int(template_id)]
        return True


class InMemoryMessages:
    def __init__(self, users: InMemoryUsers):
        self._users = users
        self.rows: dict[int, TimesheetMessage] = {}

    def add(self, *, timesheet_id, sender_id, content):
        message_id = len(self.rows) + 1
        sender = self._users.get_by_id(sender_id)
        self.rows[message_id] = TimesheetMessage(
            message_id=message_id,
            timesheet_id=int(timesheet_id),
            sender_id=int(sender_id),
            content=content,
            created_at=datetime(2025, 3, 10, 9, 0, message_id % 60),
            sender_name=sender.full_name if sender else "",
            sender_role=sender.role if sender else None,
        )
        return message_id

    def get(self, message_id: int):
        return self.rows.get(int(message_id))

    def list_for_timesheet(self, timesheet_id: int):
        return [m for m in self.rows.values() if m.timesheet_id == int(timesheet_id)]


class RecordingMailer:
    def __init__(self, *, fail: bool = False):
        self.sent: list[dict] = []
        self.fail = fail

    def send_final_approval_email(self, **kwargs) -> bool:
        if self.fail:
            raise RuntimeError("smtp down")
        self.sent.append(kwargs)
        return True


# Fixed cast used by most tests.
ADMIN = User(1, "Ada Admin", "admin@example.com", "x", Role.ADMIN)
HR = User(2, "Helen HR", "hr@example.com", "x", Role.HR)
MANAGER = User(3, "Mark Manager", "manager@example.com", "x", Role.MANAGER)
STAFF = User(4, "Sam Staff", "staff@example.com", "x", Role.STAFF, manager_id=3)
OTHER_MANAGER = User(5, "Olga Other", "olga@example.com", "x", Role.MANAGER)
LONER = User(6, "Lou Loner", "lou@example.com", "x", Role.STAFF)

PERIOD = (date(2025, 3, 1), date(2025, 3, 15))


def claims(user: User) -> IdentityClaims:
    return IdentityClaims(user_id=user.user_id, role=user.role, name=user.full_name)


@dataclass
class World:
    users: InMemoryUsers
    outbox: InMemoryOutbox
    timesheets: InMemoryTimesheets
    notifications: InMemoryNotifications
    templates: InMemoryTemplates
    messages: InMemoryMessages
    mailer: RecordingMailer
    container: Container

    def new_timesheet(self, owner: User = STAFF, period=PERIOD) -> Timesheet:
        ts, _ = self.container.entry_service.create_for_period(user_id=owner.user_id, start=period[0], end=period[1])
        return ts


def build_world(*, mailer: Optional[RecordingMailer] = None) -> World:
    users = InMemoryUsers([ADMIN, HR, MANAGER, STAFF, OTHER_MANAGER, LONER])
    outbox = InMemoryOutbox()
    timesheets = InMemoryTimesheets(users, outbox)
    notifications = InMemoryNotifications()
    templates = InMemoryTemplates()
    messages = InMemoryMessages(users)
    mailer = mailer or RecordingMailer()
    container = assemble_container(
        users_repo=users,
        timesheets_repo=timesheets,
        templates_repo=templates,
        notifications_repo=notifications,
        outbox_repo=outbox,
        messages_repo=messages,
        secret_key="test-secret",
        mailer=mailer,
    )
    return World(users, outbox, timesheets, notifications, templates, messages, mailer, container)
