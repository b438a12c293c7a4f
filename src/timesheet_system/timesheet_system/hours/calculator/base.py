from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from ...timesheets.model import TimesheetEntry

TimePair = tuple[Optional[datetime], Optional[datetime]]


@dataclass(frozen=True)
class HoursSummary:
    regular_hours: Decimal
    adjustment_hours: Decimal
    total_hours: Decimal


class HoursCalculator(ABC):
    """Calculator interface (Strategy Pattern for hour rules)."""

    @abstractmethod
    def validate_pairs(self, pairs: Sequence[TimePair]) -> None:
        raise NotImplementedError

    @abstractmethod
    def validate_adjustment(self, value: Decimal) -> Decimal:
        raise NotImplementedError

    @abstractmethod
    def regular_hours(self, pairs: Sequence[TimePair]) -> Decimal:
        raise NotImplementedError

    def daily_hours(self, entry: TimesheetEntry) -> Decimal:
        return self.regular_hours(entry.pairs()) + (entry.adjustment_hours or Decimal("0"))

    def period_summary(self, entries: Iterable[TimesheetEntry]) -> HoursSummary:
        regular = Decimal("0")
        adjustment = Decimal("0")
        for entry in entries:
            regular += self.regular_hours(entry.pairs())
            adjustment += entry.adjustment_hours or Decimal("0")
        return HoursSummary(regular_hours=regular, adjustment_hours=adjustment, total_hours=regular + adjustment)
