from concurrent.futures import ThreadPoolExecutor

from src.timesheet_system.timesheet_system.core.enums import OutboxEventType
from src.timesheet_system.timesheet_system.notifications.model import NewOutboxEvent
from src.timesheet_system.timesheet_system.notifications.outbox import OutboxRelay
from tests.fakes import STAFF, build_world


class FlakyDispatcher:
    def __init__(self, failures: int):
        self.failures = failures
        self.handled = []

    def handle(self, event):
        if self.failures > 0:
            self.failures -= 1
            raise RuntimeError("temporary")
        self.handled.append(event.event_id)


def seed_events(world, count=1):
    ts = world.new_timesheet()
    return [world.outbox.add(NewOutboxEvent(OutboxEventType.SUBMITTED, ts.timesheet_id, STAFF.user_id)) for _ in range(count)]


def test_dispatch_marks_processed():
    world = build_world()
    [event_id] = seed_events(world)
    dispatcher = FlakyDispatcher(failures=0)
    relay = OutboxRelay(world.outbox, dispatcher)

    assert relay.dispatch(event_id) is True
    assert dispatcher.handled == [event_id]
    assert world.outbox.get(event_id).processed_at is not None
    # Already processed: not handled again.
    assert relay.dispatch(event_id) is False
    assert dispatcher.handled == [event_id]


def test_failed_event_is_retried_by_drain():
    world = build_world()
    [event_id] = seed_events(world)
    dispatcher = FlakyDispatcher(failures=1)
    relay = OutboxRelay(world.outbox, dispatcher)

    relay.schedule(event_id)
    failed = world.outbox.get(event_id)
    assert failed.processed_at is None
    assert failed.attempts == 1
    assert "temporary" in failed.last_error

    assert relay.drain() == 1
    assert dispatcher.handled == [event_id]
    assert world.outbox.pending() == []


def test_drain_stops_after_max_attempts():
    world = build_world()
    seed_events(world)
    relay = OutboxRelay(world.outbox, FlakyDispatcher(failures=100), max_attempts=2)
    relay.drain()
    relay.drain()
    assert relay.drain() == 0
    assert world.outbox.list_pending(limit=10, max_attempts=2) == []
    assert len(world.outbox.pending()) == 1


def test_claimed_event_is_not_dispatched_twice():
    world = build_world()
    [event_id] = seed_events(world)
    dispatcher = FlakyDispatcher(failures=0)
    relay = OutboxRelay(world.outbox, dispatcher)
    assert world.outbox.claim(event_id)
    assert relay.dispatch(event_id) is False
    assert dispatcher.handled == []


def test_schedule_uses_executor():
    world = build_world()
    ids = seed_events(world, count=5)
    dispatcher = FlakyDispatcher(failures=0)
    executor = ThreadPoolExecutor(max_workers=2)
    relay = OutboxRelay(world.outbox, dispatcher, executor=executor)

    for event_id in ids:
        relay.schedule(event_id)
    relay.shutdown()

    assert sorted(dispatcher.handled) == ids


def test_schedule_after_shutdown_leaves_event_pending():
    world = build_world()
    [event_id] = seed_events(world)
    relay = OutboxRelay(world.outbox, FlakyDispatcher(failures=0), executor=ThreadPoolExecutor(max_workers=1))
    relay.shutdown()
    relay.schedule(event_id)
    assert [e.event_id for e in world.outbox.pending()] == [event_id]


def test_schedule_ignores_missing_event_id():
    world = build_world()
    relay = OutboxRelay(world.outbox, FlakyDispatcher(failures=0))
    relay.schedule(None)
    assert world.outbox.events == {}
