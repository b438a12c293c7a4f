from datetime import date, datetime

import pytest

from src.timesheet_system.timesheet_system.common.datetime_utils import (
    current_pay_period,
    day_type_for,
    iter_period_dates,
    parse_entry_time,
    parse_iso_date,
)
from src.timesheet_system.timesheet_system.core.enums import DayType
from src.timesheet_system.timesheet_system.core.exceptions import ValidationError


@pytest.mark.parametrize(
    "today,expected",
    [
        (date(2025, 3, 1), (date(2025, 3, 1), date(2025, 3, 15))),
        (date(2025, 3, 15), (date(2025, 3, 1), date(2025, 3, 15))),
        (date(2025, 3, 16), (date(2025, 3, 16), date(2025, 3, 31))),
        (date(2024, 2, 20), (date(2024, 2, 16), date(2024, 2, 29))),
    ],
)
def test_current_pay_period(today, expected):
    assert current_pay_period(today) == expected


def test_iter_period_dates_is_inclusive():
    days = list(iter_period_dates(date(2025, 3, 30), date(2025, 4, 2)))
    assert days == [date(2025, 3, 30), date(2025, 3, 31), date(2025, 4, 1), date(2025, 4, 2)]


def test_day_type_for():
    assert day_type_for(date(2025, 3, 3)) is DayType.WEEKDAY
    assert day_type_for(date(2025, 3, 8)) is DayType.SATURDAY
    assert day_type_for(date(2025, 3, 9)) is DayType.SUNDAY


def test_parse_entry_time_accepts_hhmm_and_iso():
    work_date = date(2025, 3, 3)
    assert parse_entry_time("08:30", work_date) == datetime(2025, 3, 3, 8, 30)
    assert parse_entry_time("2025-03-03T17:15:00", work_date) == datetime(2025, 3, 3, 17, 15)


@pytest.mark.parametrize("value", ["25:00", "noon", ""])
def test_parse_entry_time_rejects_garbage(value):
    with pytest.raises(ValidationError):
        parse_entry_time(value, date(2025, 3, 3))


def test_parse_iso_date_rejects_garbage():
    assert parse_iso_date("2025-03-01") == date(2025, 3, 1)
    with pytest.raises(ValidationError):
        parse_iso_date("03/01/2025")


def test_parse_entry_time_converts_offsets_instead_of_dropping_them():
    work_date = date(2025, 3, 3)
    utc = parse_entry_time("2025-03-03T12:00:00Z", work_date)
    plus_three = parse_entry_time("2025-03-03T15:00:00+03:00", work_date)
    assert utc == plus_three
    assert utc.tzinfo is None


@pytest.mark.parametrize("value", ["2025-03-01xyz", "2025-03-01 junk", "2025-3-1", "2025-03-01Tnope"])
def test_parse_iso_date_rejects_trailing_garbage(value):
    with pytest.raises(ValidationError):
        parse_iso_date(value)


def test_parse_iso_date_accepts_full_iso_datetime():
    assert parse_iso_date("2025-03-01T00:00:00") == date(2025, 3, 1)
