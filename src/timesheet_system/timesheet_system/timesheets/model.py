from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from ..core.enums import TimesheetState

TIME_FIELDS = ("in1", "out1", "in2", "out2", "in3", "out3")
PAIR_FIELDS = (("in1", "out1"), ("in2", "out2"), ("in3", "out3"))


@dataclass(frozen=True)
class Timesheet:
    """Domain entity: one owner's timesheet for a pay period."""

    timesheet_id: int
    user_id: int
    period_start: date
    period_end: date
    state: TimesheetState
    staff_sig: Optional[str] = None
    staff_sig_at: Optional[datetime] = None
    manager_sig: Optional[str] = None
    manager_sig_at: Optional[datetime] = None
    hr_sig: Optional[str] = None
    hr_sig_at: Optional[datetime] = None
    denial_note: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def overlaps(self, start: date, end: date) -> bool:
        return self.period_start <= end and start <= self.period_end

    def same_period(self, start: date, end: date) -> bool:
        return self.period_start == start and self.period_end == end


@dataclass(frozen=True)
class TimesheetEntry:
    """Domain entity: one calendar day of a timesheet."""

    entry_id: int
    timesheet_id: int
    work_date: date
    in1: Optional[datetime] = None
    out1: Optional[datetime] = None
    in2: Optional[datetime] = None
    out2: Optional[datetime] = None
    in3: Optional[datetime] = None
    out3: Optional[datetime] = None
    adjustment_hours: Decimal = Decimal("0")
    comments: Optional[str] = None
    version: int = 0

    def pairs(self) -> list[tuple[Optional[datetime], Optional[datetime]]]:
        return [(getattr(self, a), getattr(self, b)) for a, b in PAIR_FIELDS]

    def merged(self, changes: dict) -> "TimesheetEntry":
        return replace(self, **changes)


@dataclass(frozen=True)
class EntryPatch:
    """Partial entry update: only keys present in ``changes`` are applied.

    ``None`` as a value clears the field; an absent key leaves it untouched.
    """

    changes: dict = field(default_factory=dict)

    def is_empty(self) -> bool:
        return not self.changes


@dataclass(frozen=True)
class TransitionResult:
    timesheet: Timesheet
    outbox_event_id: Optional[int]
