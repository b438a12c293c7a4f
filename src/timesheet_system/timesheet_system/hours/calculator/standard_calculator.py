from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Sequence

from loguru import logger

from ...core.constants import HOURS_QUANTUM, MAX_ADJUSTMENT_HOURS
from ...core.exceptions import ValidationError
from .base import HoursCalculator, TimePair

_ORDINALS = ("First", "Second", "Third")
_SECONDS_PER_HOUR = Decimal(3600)


def round_hours(value: Decimal) -> Decimal:
    """Presentation rounding: two fractional digits, half up."""
    return Decimal(value).quantize(HOURS_QUANTUM, rounding=ROUND_HALF_UP)


class StandardHoursCalculator(HoursCalculator):
    """Standard rule: sum of (out - in) over complete pairs, plus adjustment.

    A pair with only one end set is "in progress" and counts zero.
    """

    def validate_pairs(self, pairs: Sequence[TimePair]) -> None:
        complete = []
        for idx, (t_in, t_out) in enumerate(pairs):
            if t_in is None or t_out is None:
                continue
            if t_out <= t_in:
                raise ValidationError(f"{_ORDINALS[idx]} in time must be before its out time")
            complete.append((t_in, t_out))

        complete.sort()
        for (_, prev_out), (next_in, _) in zip(complete, complete[1:]):
            if next_in < prev_out:
                raise ValidationError("Time periods cannot overlap")

    def validate_adjustment(self, value: Decimal) -> Decimal:
        if value < 0:
            raise ValidationError("Adjustment hours cannot be negative")
        if value > MAX_ADJUSTMENT_HOURS:
            raise ValidationError(f"Adjustment hours cannot exceed {MAX_ADJUSTMENT_HOURS} per day")
        return value

    def regular_hours(self, pairs: Sequence[TimePair]) -> Decimal:
        total = Decimal("0")
        for t_in, t_out in pairs:
            if t_in is None or t_out is None:
                continue
            seconds = Decimal(int((t_out - t_in).total_seconds()))
            if seconds <= 0:
                # Rejected on write; legacy rows must not drive totals negative.
                logger.warning(f"Ignoring non-positive time pair {t_in} -> {t_out}")
                continue
            total += seconds / _SECONDS_PER_HOUR
        return total
