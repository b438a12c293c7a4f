from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

from ..common.datetime_utils import parse_hhmm
from ..core.enums import DayType

PATTERN_TIME_FIELDS = ("in1", "out1", "in2", "out2", "in3", "out3")


@dataclass(frozen=True)
class TemplatePattern:
    """Times for one day type, stored as "HH:MM" strings."""

    day_type: DayType
    in1: Optional[str] = None
    out1: Optional[str] = None
    in2: Optional[str] = None
    out2: Optional[str] = None
    in3: Optional[str] = None
    out3: Optional[str] = None
    comments: Optional[str] = None

    def times_on(self, work_date: date) -> dict[str, Optional[datetime]]:
        out: dict[str, Optional[datetime]] = {}
        for name in PATTERN_TIME_FIELDS:
            value = getattr(self, name)
            out[name] = datetime.combine(work_date, parse_hhmm(value)) if value else None
        return out

    def to_dict(self) -> dict:
        data = {name: getattr(self, name) for name in PATTERN_TIME_FIELDS}
        data["dayType"] = self.day_type.value
        data["comments"] = self.comments
        return data


@dataclass(frozen=True)
class TimesheetTemplate:
    template_id: int
    user_id: int
    name: str
    description: Optional[str] = None
    is_default: bool = False
    patterns: tuple[TemplatePattern, ...] = field(default_factory=tuple)

    def pattern_for(self, day_type: DayType) -> Optional[TemplatePattern]:
        for p in self.patterns:
            if p.day_type is day_type:
                return p
        return None

    def to_dict(self) -> dict:
        return {
            "id": self.template_id,
            "name": self.name,
            "description": self.description,
            "isDefault": self.is_default,
            "patterns": [p.to_dict() for p in self.patterns],
        }
