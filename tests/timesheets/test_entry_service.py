from datetime import date, datetime
from decimal import Decimal

import pytest

from src.timesheet_system.timesheet_system.core.enums import TimesheetState
from src.timesheet_system.timesheet_system.core.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from src.timesheet_system.timesheet_system.timesheets.repository import EntryWriteOutcome
from tests.fakes import LONER, MANAGER, PERIOD, STAFF, build_world


def monday_entry(world, ts):
    return next(e for e in world.timesheets.list_entries(ts.timesheet_id) if e.work_date == date(2025, 3, 3))


def test_get_or_create_for_period_is_idempotent():
    world = build_world()
    entries = world.container.entry_service
    first = entries.get_or_create_for_period(user_id=STAFF.user_id, start=PERIOD[0], end=PERIOD[1])
    second = entries.get_or_create_for_period(user_id=STAFF.user_id, start=PERIOD[0], end=PERIOD[1])

    assert first.timesheet_id == second.timesheet_id
    assert first.state is TimesheetState.PENDING_STAFF
    assert len(world.timesheets.list_entries(first.timesheet_id)) == 15


def test_create_for_period_reports_whether_it_created():
    world = build_world()
    entries = world.container.entry_service
    _, created = entries.create_for_period(user_id=STAFF.user_id, start=PERIOD[0], end=PERIOD[1])
    _, created_again = entries.create_for_period(user_id=STAFF.user_id, start=PERIOD[0], end=PERIOD[1])
    assert created is True
    assert created_again is False


def test_overlapping_period_conflicts():
    world = build_world()
    world.new_timesheet()
    with pytest.raises(ConflictError):
        world.container.entry_service.create_for_period(
            user_id=STAFF.user_id, start=date(2025, 3, 10), end=date(2025, 3, 20)
        )


def test_other_users_may_share_a_period():
    world = build_world()
    a = world.new_timesheet(STAFF)
    b = world.new_timesheet(LONER)
    assert a.timesheet_id != b.timesheet_id


@pytest.mark.parametrize(
    "start, end",
    [
        (date(2025, 3, 15), date(2025, 3, 1)),
        (date(2025, 3, 1), date(2025, 4, 15)),
    ],
)
def test_invalid_periods_are_rejected(start, end):
    world = build_world()
    with pytest.raises(ValidationError):
        world.container.entry_service.create_for_period(user_id=STAFF.user_id, start=start, end=end)


def test_current_period_is_second_half_of_month():
    world = build_world()
    ts = world.container.entry_service.get_or_create_current(user_id=STAFF.user_id, today=date(2025, 2, 20))
    assert (ts.period_start, ts.period_end) == (date(2025, 2, 16), date(2025, 2, 28))


def test_update_entry_merges_only_present_fields():
    world = build_world()
    ts = world.new_timesheet()
    target = monday_entry(world, ts)
    entries = world.container.entry_service

    entries.update_entry(
        timesheet_id=ts.timesheet_id,
        entry_id=target.entry_id,
        fields={"in1": "09:00", "out1": "12:00", "adjustmentHours": "1.5"},
        acting_user_id=STAFF.user_id,
    )
    updated = entries.update_entry(
        timesheet_id=ts.timesheet_id,
        entry_id=target.entry_id,
        fields={"comments": "dentist"},
        acting_user_id=STAFF.user_id,
    )

    assert updated.in1 == datetime(2025, 3, 3, 9, 0)
    assert updated.out1 == datetime(2025, 3, 3, 12, 0)
    assert updated.adjustment_hours == Decimal("1.5")
    assert updated.comments == "dentist"
    assert world.timesheets.entries[target.entry_id].version == 2


def test_null_clears_a_field():
    world = build_world()
    ts = world.new_timesheet()
    target = monday_entry(world, ts)
    entries = world.container.entry_service
    entries.update_entry(
        timesheet_id=ts.timesheet_id,
        entry_id=target.entry_id,
        fields={"in1": "09:00", "out1": "10:00"},
        acting_user_id=STAFF.user_id,
    )
    updated = entries.update_entry(
        timesheet_id=ts.timesheet_id, entry_id=target.entry_id, fields={"out1": None}, acting_user_id=STAFF.user_id
    )
    assert updated.in1 is not None
    assert updated.out1 is None


def test_iso_datetime_input_is_accepted():
    world = build_world()
    ts = world.new_timesheet()
    target = monday_entry(world, ts)
    updated = world.container.entry_service.update_entry(
        timesheet_id=ts.timesheet_id,
        entry_id=target.entry_id,
        fields={"in1": "2025-03-03T08:30:00Z"},
        acting_user_id=STAFF.user_id,
    )
    assert updated.in1 == datetime(2025, 3, 3, 8, 30)


def test_merged_result_is_validated():
    world = build_world()
    ts = world.new_timesheet()
    target = monday_entry(world, ts)
    entries = world.container.entry_service
    entries.update_entry(
        timesheet_id=ts.timesheet_id,
        entry_id=target.entry_id,
        fields={"in1": "09:00", "out1": "12:00"},
        acting_user_id=STAFF.user_id,
    )
    with pytest.raises(ValidationError):
        entries.update_entry(
            timesheet_id=ts.timesheet_id,
            entry_id=target.entry_id,
            fields={"out1": "08:00"},
            acting_user_id=STAFF.user_id,
        )
    assert world.timesheets.entries[target.entry_id].out1 == datetime(2025, 3, 3, 12, 0)


@pytest.mark.parametrize(
    "fields",
    [
        {"adjustmentHours": "-1"},
        {"adjustmentHours": 25},
        {"adjustmentHours": "lots"},
        {"in1": "9am"},
        {"bogus": 1},
        {"comments": 42},
    ],
)
def test_bad_fields_are_rejected(fields):
    world = build_world()
    ts = world.new_timesheet()
    target = monday_entry(world, ts)
    with pytest.raises(ValidationError):
        world.container.entry_service.update_entry(
            timesheet_id=ts.timesheet_id, entry_id=target.entry_id, fields=fields, acting_user_id=STAFF.user_id
        )


def test_only_owner_may_edit():
    world = build_world()
    ts = world.new_timesheet()
    target = monday_entry(world, ts)
    with pytest.raises(AuthorizationError):
        world.container.entry_service.update_entry(
            timesheet_id=ts.timesheet_id,
            entry_id=target.entry_id,
            fields={"comments": "x"},
            acting_user_id=MANAGER.user_id,
        )


def test_edit_rejected_once_submitted():
    world = build_world()
    ts = world.new_timesheet()
    target = monday_entry(world, ts)
    world.timesheets.force_state(ts.timesheet_id, TimesheetState.PENDING_MANAGER)
    with pytest.raises(AuthorizationError):
        world.container.entry_service.update_entry(
            timesheet_id=ts.timesheet_id,
            entry_id=target.entry_id,
            fields={"comments": "late edit"},
            acting_user_id=STAFF.user_id,
        )


def test_state_change_between_read_and_write_is_caught_at_write():
    world = build_world()
    ts = world.new_timesheet()
    target = monday_entry(world, ts)
    original_get_entry = world.timesheets.get_entry

    def get_entry_then_submit(**kwargs):
        entry = original_get_entry(**kwargs)
        world.timesheets.force_state(ts.timesheet_id, TimesheetState.PENDING_MANAGER)
        return entry

    world.timesheets.get_entry = get_entry_then_submit
    with pytest.raises(AuthorizationError):
        world.container.entry_service.update_entry(
            timesheet_id=ts.timesheet_id, entry_id=target.entry_id, fields={"comments": "x"}, acting_user_id=STAFF.user_id
        )
    assert world.timesheets.entries[target.entry_id].comments is None


def test_version_conflict_is_retried():
    world = build_world()
    ts = world.new_timesheet()
    target = monday_entry(world, ts)
    original_write = world.timesheets.write_entry
    calls = []

    def flaky_write(**kwargs):
        calls.append(kwargs["expected_version"])
        if len(calls) == 1:
            return EntryWriteOutcome.VERSION_CONFLICT
        return original_write(**kwargs)

    world.timesheets.write_entry = flaky_write
    updated = world.container.entry_service.update_entry(
        timesheet_id=ts.timesheet_id, entry_id=target.entry_id, fields={"comments": "ok"}, acting_user_id=STAFF.user_id
    )
    assert len(calls) == 2
    assert updated.comments == "ok"


def test_persistent_version_conflict_gives_up():
    world = build_world()
    ts = world.new_timesheet()
    target = monday_entry(world, ts)
    world.timesheets.write_entry = lambda **kwargs: EntryWriteOutcome.VERSION_CONFLICT
    with pytest.raises(ConflictError):
        world.container.entry_service.update_entry(
            timesheet_id=ts.timesheet_id, entry_id=target.entry_id, fields={"comments": "x"}, acting_user_id=STAFF.user_id
        )


def test_unknown_entry_and_timesheet():
    world = build_world()
    ts = world.new_timesheet()
    entries = world.container.entry_service
    with pytest.raises(NotFoundError):
        entries.update_entry(timesheet_id=ts.timesheet_id, entry_id=999, fields={}, acting_user_id=STAFF.user_id)
    with pytest.raises(NotFoundError):
        entries.update_entry(timesheet_id=999, entry_id=1, fields={}, acting_user_id=STAFF.user_id)


def test_offset_times_are_compared_as_instants():
    world = build_world()
    ts = world.new_timesheet()
    entry = monday_entry(world, ts)

    # 13:00Z is 08:00-05:00, so this out time is an hour before the in time.
    with pytest.raises(ValidationError):
        world.container.entry_service.update_entry(
            timesheet_id=ts.timesheet_id,
            entry_id=entry.entry_id,
            fields={"in1": "2025-03-03T09:00:00-05:00", "out1": "2025-03-03T13:00:00Z"},
            acting_user_id=STAFF.user_id,
        )

    updated = world.container.entry_service.update_entry(
        timesheet_id=ts.timesheet_id,
        entry_id=entry.entry_id,
        fields={"in1": "2025-03-03T09:00:00-05:00", "out1": "2025-03-03T17:30:00Z"},
        acting_user_id=STAFF.user_id,
    )
    assert world.container.calculator.daily_hours(updated) == Decimal("3.5")
