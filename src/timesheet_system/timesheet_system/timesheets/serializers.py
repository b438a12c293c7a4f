from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

from ..hours.calculator.base import HoursCalculator
from ..hours.calculator.standard_calculator import round_hours
from ..users.model import User
from .model import TIME_FIELDS, Timesheet, TimesheetEntry


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def timesheet_to_dict(ts: Timesheet, *, owner: Optional[User] = None) -> dict:
    data = {
        "id": ts.timesheet_id,
        "userId": ts.user_id,
        "periodStart": ts.period_start.isoformat(),
        "periodEnd": ts.period_end.isoformat(),
        "state": ts.state.value,
        "staffSig": ts.staff_sig,
        "staffSigAt": _iso(ts.staff_sig_at),
        "managerSig": ts.manager_sig,
        "managerSigAt": _iso(ts.manager_sig_at),
        "hrSig": ts.hr_sig,
        "hrSigAt": _iso(ts.hr_sig_at),
        "denialNote": ts.denial_note,
        "createdAt": _iso(ts.created_at),
        "updatedAt": _iso(ts.updated_at),
    }
    if owner is not None:
        data["user"] = owner.public_dict()
    return data


def entry_to_dict(entry: TimesheetEntry, calculator: HoursCalculator) -> dict:
    data = {
        "id": entry.entry_id,
        "date": entry.work_date.isoformat(),
        **{name: _iso(getattr(entry, name)) for name in TIME_FIELDS},
        "adjustmentHours": str(round_hours(entry.adjustment_hours)),
        "comments": entry.comments,
        "version": entry.version,
        "hours": str(round_hours(calculator.daily_hours(entry))),
    }
    return data


def timesheet_detail(
    ts: Timesheet,
    entries: Iterable[TimesheetEntry],
    calculator: HoursCalculator,
    *,
    owner: Optional[User] = None,
) -> dict:
    entries = list(entries)
    summary = calculator.period_summary(entries)
    return {
        **timesheet_to_dict(ts, owner=owner),
        "entries": [entry_to_dict(e, calculator) for e in entries],
        "totals": {
            "regularHours": str(round_hours(summary.regular_hours)),
            "adjustmentHours": str(round_hours(summary.adjustment_hours)),
            "totalHours": str(round_hours(summary.total_hours)),
        },
    }
