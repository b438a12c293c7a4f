from __future__ import annotations

from datetime import date
from typing import Iterable, Optional, Sequence

from loguru import logger

from ..common.datetime_utils import day_type_for, format_hhmm, parse_hhmm
from ..common.validators import require_non_empty
from ..core.enums import DayType
from ..core.exceptions import ConflictError, NotFoundError, ValidationError
from ..hours.calculator.base import HoursCalculator
from ..timesheets.model import TimesheetEntry
from ..timesheets.repository import TimesheetRepository
from .model import PATTERN_TIME_FIELDS, TemplatePattern, TimesheetTemplate
from .repository import TemplateRepository

# Any fixed date works: patterns are validated as same-day wall-clock times.
_REFERENCE_DATE = date(2000, 1, 3)


def extract_patterns(entries: Iterable[TimesheetEntry]) -> list[TemplatePattern]:
    """Derive one pattern per day type from entries that carry time data.

    Each day type copies the latest entry with at least one complete pair, as
    a whole, so pairs from different days are never mixed. Days with only
    partial pairs or only adjustment hours are ignored.
    """
    found: dict[DayType, TimesheetEntry] = {}
    for entry in sorted(entries, key=lambda e: e.work_date):
        if any(start and end for start, end in entry.pairs()):
            found[day_type_for(entry.work_date)] = entry

    return [
        TemplatePattern(
            day_type=day_type,
            comments=entry.comments,
            **{name: format_hhmm(getattr(entry, name)) for name in PATTERN_TIME_FIELDS},
        )
        for day_type, entry in found.items()
    ]


class TemplateService:
    def __init__(self, templates: TemplateRepository, timesheets: TimesheetRepository, calculator: HoursCalculator):
        self._templates = templates
        self._timesheets = timesheets
        self._calculator = calculator

    def list_templates(self, *, user_id: int) -> Sequence[TimesheetTemplate]:
        return self._templates.list_for_user(int(user_id))

    def get_template(self, *, user_id: int, template_id: int) -> TimesheetTemplate:
        template = self._templates.get_for_user(template_id=int(template_id), user_id=int(user_id))
        if not template:
            raise NotFoundError("Template not found")
        return template

    def parse_patterns(self, raw_patterns: Optional[list]) -> list[TemplatePattern]:
        if not isinstance(raw_patterns, list):
            raise ValidationError("Template patterns must be a list")

        patterns: list[TemplatePattern] = []
        seen: set[DayType] = set()
        for raw in raw_patterns:
            if not isinstance(raw, dict):
                raise ValidationError("Template pattern must be an object")
            try:
                day_type = DayType(str(raw.get("dayType", "")).upper())
            except ValueError:
                raise ValidationError(f"Unknown day type: {raw.get('dayType')!r}")
            if day_type in seen:
                raise ValidationError(f"Duplicate pattern for {day_type.value}")
            seen.add(day_type)

            times = {}
            for name in PATTERN_TIME_FIELDS:
                value = raw.get(name)
                if value is not None and not isinstance(value, str):
                    raise ValidationError(f"{name} must be a HH:MM string")
                value = (value or "").strip()
                times[name] = parse_hhmm(value).strftime("%H:%M") if value else None
            comments = raw.get("comments")
            patterns.append(TemplatePattern(day_type=day_type, comments=comments or None, **times))
        return patterns

    def _validate_pattern(self, pattern: TemplatePattern) -> None:
        times = pattern.times_on(_REFERENCE_DATE)
        self._calculator.validate_pairs(
            [(times["in1"], times["out1"]), (times["in2"], times["out2"]), (times["in3"], times["out3"])]
        )

    def create_template(
        self,
        *,
        user_id: int,
        name: str,
        description: Optional[str] = None,
        patterns: Optional[list] = None,
        timesheet_id: Optional[int] = None,
        is_default: bool = False,
    ) -> TimesheetTemplate:
        name = require_non_empty(name, "Template name")
        if self._templates.get_by_name(user_id=int(user_id), name=name):
            raise ConflictError("Template name already exists")

        if patterns is None and timesheet_id is not None:
            timesheet = self._timesheets.get(int(timesheet_id))
            if not timesheet or timesheet.user_id != int(user_id):
                raise NotFoundError("Timesheet not found")
            parsed = extract_patterns(self._timesheets.list_entries(timesheet.timesheet_id))
        else:
            parsed = self.parse_patterns(patterns)

        if not parsed:
            raise ValidationError("Template patterns are required")
        for pattern in parsed:
            self._validate_pattern(pattern)

        template_id = self._templates.create(
            user_id=int(user_id),
            name=name,
            description=(description or "").strip() or None,
            is_default=bool(is_default),
            patterns=parsed,
        )
        logger.info(f"Template {template_id} '{name}' created for user {user_id}")
        return self.get_template(user_id=int(user_id), template_id=template_id)

    def delete_template(self, *, user_id: int, template_id: int) -> None:
        if not self._templates.delete(template_id=int(template_id), user_id=int(user_id)):
            raise NotFoundError("Template not found")
        logger.info(f"Template {template_id} deleted by user {user_id}")
