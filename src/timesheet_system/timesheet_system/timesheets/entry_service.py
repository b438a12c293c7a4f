from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Optional, Sequence

from loguru import logger

from ..common.datetime_utils import current_pay_period, day_type_for, iter_period_dates, parse_entry_time
from ..common.validators import require_decimal
from ..core.constants import ENTRY_WRITE_ATTEMPTS, MAX_PERIOD_DAYS
from ..core.exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from ..hours.calculator.base import HoursCalculator
from ..timesheet_templates.repository import TemplateRepository
from .model import TIME_FIELDS, EntryPatch, Timesheet, TimesheetEntry
from .repository import EntryWriteOutcome, TimesheetRepository

# API field name -> entry attribute
_PATCH_FIELDS = {
    **{name: name for name in TIME_FIELDS},
    "adjustmentHours": "adjustment_hours",
    "plawaHours": "adjustment_hours",
    "comments": "comments",
}


@dataclass(frozen=True)
class TemplateApplication:
    timesheet: Timesheet
    template_name: str
    entries_updated: int


class EntryService:
    """Timesheet creation per period and owner edits of day entries."""

    def __init__(self, timesheets: TimesheetRepository, templates: TemplateRepository, calculator: HoursCalculator):
        self._timesheets = timesheets
        self._templates = templates
        self._calculator = calculator

    # -------- Periods --------
    def create_for_period(self, *, user_id: int, start: date, end: date) -> tuple[Timesheet, bool]:
        if end < start:
            raise ValidationError("Period start must not be after period end")
        if (end - start).days + 1 > MAX_PERIOD_DAYS:
            raise ValidationError(f"Period cannot be longer than {MAX_PERIOD_DAYS} days")

        existing = self._timesheets.find_for_period(user_id=int(user_id), start=start, end=end)
        if existing:
            return existing, False

        timesheet, created = self._timesheets.create_with_entries(
            user_id=int(user_id),
            start=start,
            end=end,
            dates=list(iter_period_dates(start, end)),
        )
        if created:
            logger.info(f"Timesheet {timesheet.timesheet_id} created for user {user_id} ({start} - {end})")
        return timesheet, created

    def get_or_create_for_period(self, *, user_id: int, start: date, end: date) -> Timesheet:
        timesheet, _ = self.create_for_period(user_id=user_id, start=start, end=end)
        return timesheet

    def get_or_create_current(self, *, user_id: int, today: date) -> Timesheet:
        start, end = current_pay_period(today)
        return self.get_or_create_for_period(user_id=user_id, start=start, end=end)

    def list_entries(self, timesheet_id: int) -> Sequence[TimesheetEntry]:
        return self._timesheets.list_entries(int(timesheet_id))

    # -------- Entries --------
    def _load_owned_editable(self, timesheet_id: int, acting_user_id: int) -> Timesheet:
        timesheet = self._timesheets.get(int(timesheet_id))
        if not timesheet:
            raise NotFoundError("Timesheet not found")
        if timesheet.user_id != int(acting_user_id):
            raise AuthorizationError("Only the owner can edit this timesheet")
        return timesheet

    def build_patch(self, fields: dict, work_date: date) -> EntryPatch:
        if not isinstance(fields, dict):
            raise ValidationError("Entry update must be an object")

        unknown = set(fields) - set(_PATCH_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown entry fields: {', '.join(sorted(unknown))}")

        changes: dict[str, Any] = {}
        for key, value in fields.items():
            attr = _PATCH_FIELDS[key]
            if attr in TIME_FIELDS:
                changes[attr] = self._coerce_time(value, work_date)
            elif attr == "adjustment_hours":
                if value is None:
                    raise ValidationError("Adjustment hours cannot be null")
                changes[attr] = self._calculator.validate_adjustment(require_decimal(value, "Adjustment hours"))
            else:
                if value is not None and not isinstance(value, str):
                    raise ValidationError("Comments must be text")
                changes[attr] = (value or "").strip() or None
        return EntryPatch(changes=changes)

    @staticmethod
    def _coerce_time(value: Any, work_date: date) -> Optional[datetime]:
        if value is None or value == "":
            return None
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            return parse_entry_time(value, work_date)
        raise ValidationError(f"Invalid time value: {value!r}")

    def update_entry(self, *, timesheet_id: int, entry_id: int, fields: dict, acting_user_id: int) -> TimesheetEntry:
        """Merge-patch one entry; only keys present in ``fields`` change."""
        timesheet = self._load_owned_editable(timesheet_id, acting_user_id)
        if not timesheet.state.is_staff_editable:
            raise AuthorizationError("Timesheet is not editable in its current state")

        for attempt in range(1, ENTRY_WRITE_ATTEMPTS + 1):
            entry = self._timesheets.get_entry(timesheet_id=timesheet.timesheet_id, entry_id=int(entry_id))
            if not entry:
                raise NotFoundError("Timesheet entry not found")

            patch = self.build_patch(fields, entry.work_date)
            merged = entry.merged(patch.changes)
            self._calculator.validate_pairs(merged.pairs())
            self._calculator.validate_adjustment(merged.adjustment_hours)

            outcome = self._timesheets.write_entry(
                entry=merged,
                owner_id=timesheet.user_id,
                expected_version=entry.version,
            )
            if outcome is EntryWriteOutcome.WRITTEN:
                return merged.merged({"version": entry.version + 1})
            if outcome is EntryWriteOutcome.NOT_EDITABLE:
                raise AuthorizationError("Timesheet is not editable in its current state")
            if outcome is EntryWriteOutcome.MISSING:
                raise NotFoundError("Timesheet entry not found")
            logger.debug(f"Entry {entry_id} changed concurrently, retrying ({attempt}/{ENTRY_WRITE_ATTEMPTS})")

        raise ConflictError("Entry was modified concurrently, please retry")

    # -------- Templates --------
    def apply_template(self, *, timesheet_id: int, template_id: int, acting_user_id: int) -> TemplateApplication:
        timesheet = self._load_owned_editable(timesheet_id, acting_user_id)
        if not timesheet.state.is_staff_editable:
            raise ValidationError("Timesheet is not in an editable state")

        template = self._templates.get_for_user(template_id=int(template_id), user_id=int(acting_user_id))
        if not template:
            raise NotFoundError("Template not found")

        updated: list[TimesheetEntry] = []
        for entry in self._timesheets.list_entries(timesheet.timesheet_id):
            pattern = template.pattern_for(day_type_for(entry.work_date))
            if pattern is None:
                continue
            # Adjustment hours are never touched by templates.
            candidate = entry.merged({**pattern.times_on(entry.work_date), "comments": pattern.comments})
            self._calculator.validate_pairs(candidate.pairs())
            updated.append(candidate)

        if updated and not self._timesheets.apply_entry_times(
            timesheet_id=timesheet.timesheet_id,
            owner_id=timesheet.user_id,
            entries=updated,
        ):
            raise ValidationError("Timesheet is not in an editable state")

        logger.info(
            f"Template {template.template_id} applied to timesheet {timesheet.timesheet_id} "
            f"({len(updated)} entries)"
        )
        return TemplateApplication(timesheet=timesheet, template_name=template.name, entries_updated=len(updated))
