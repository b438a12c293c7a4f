from src.timesheet_system.timesheet_system.core.enums import FulfillmentAction, NotificationType, OutboxEventType, TimesheetState
from src.timesheet_system.timesheet_system.notifications.dispatcher import NotificationDispatcher
from src.timesheet_system.timesheet_system.notifications.model import NewOutboxEvent
from tests.fakes import HR, MANAGER, STAFF, RecordingMailer, build_world, claims


class RecordingPublisher:
    def __init__(self, *, fail=False):
        self.sent = []
        self.fail = fail

    def publish(self, recipient_id, payload):
        if self.fail:
            raise ConnectionError("socket closed")
        self.sent.append((recipient_id, payload))


def dispatcher_for(world, publisher, mailer=None):
    return NotificationDispatcher(
        notifications=world.notifications,
        users=world.users,
        timesheets=world.timesheets,
        publisher=publisher,
        mailer=mailer or world.mailer,
        calculator=world.container.calculator,
    )


def test_create_persists_and_pushes():
    world = build_world()
    publisher = RecordingPublisher()
    dispatcher = dispatcher_for(world, publisher)

    n = dispatcher.create(
        recipient_id=STAFF.user_id, type=NotificationType.TIMESHEET_SUBMISSION, resource_id=7, message="hello"
    )
    assert n.title == "Timesheet Submitted"
    assert world.notifications.get(n.notification_id) == n
    assert publisher.sent == [(STAFF.user_id, n.to_payload())]
    assert publisher.sent[0][1]["resourceId"] == 7


def test_publish_failure_is_swallowed():
    world = build_world()
    dispatcher = dispatcher_for(world, RecordingPublisher(fail=True))
    n = dispatcher.create(recipient_id=STAFF.user_id, type=NotificationType.TIMESHEET_DENIAL, resource_id=1, message="m")
    assert world.notifications.get(n.notification_id) is not None


def test_create_replaces_unread_of_same_kind_only():
    world = build_world()
    dispatcher = dispatcher_for(world, RecordingPublisher())
    first = dispatcher.create(recipient_id=STAFF.user_id, type=NotificationType.TIMESHEET_DENIAL, resource_id=1, message="a")
    world.notifications.mark_read(notification_id=first.notification_id, user_id=STAFF.user_id)
    dispatcher.create(recipient_id=STAFF.user_id, type=NotificationType.TIMESHEET_DENIAL, resource_id=1, message="b")
    dispatcher.create(recipient_id=STAFF.user_id, type=NotificationType.TIMESHEET_DENIAL, resource_id=1, message="c")
    dispatcher.create(recipient_id=STAFF.user_id, type=NotificationType.TIMESHEET_DENIAL, resource_id=2, message="d")

    messages = sorted(n.message for n in world.notifications.for_user(STAFF.user_id))
    # The read one stays; "b" was replaced by "c"; resource 2 is separate.
    assert messages == ["a", "c", "d"]


def test_fulfill_actor_scope_only_touches_actor():
    world = build_world()
    dispatcher = dispatcher_for(world, RecordingPublisher())
    for user in (STAFF, MANAGER):
        dispatcher.create(recipient_id=user.user_id, type=NotificationType.TIMESHEET_APPROVAL, resource_id=1, message="m")

    removed = dispatcher.fulfill(acting_user_id=STAFF.user_id, resource_id=1, action=FulfillmentAction.TIMESHEET_VIEWED)
    assert removed == 1
    assert world.notifications.for_user(STAFF.user_id) == []
    assert len(world.notifications.for_user(MANAGER.user_id)) == 1


def test_fulfill_resource_scope_touches_everyone():
    world = build_world()
    dispatcher = dispatcher_for(world, RecordingPublisher())
    for user in (HR, MANAGER):
        dispatcher.create(recipient_id=user.user_id, type=NotificationType.HR_APPROVAL_NEEDED, resource_id=1, message="m")
    dispatcher.create(recipient_id=HR.user_id, type=NotificationType.HR_APPROVAL_NEEDED, resource_id=2, message="m")

    removed = dispatcher.fulfill(acting_user_id=HR.user_id, resource_id=1, action=FulfillmentAction.HR_DECIDED)
    assert removed == 2
    assert [n.resource_id for n in world.notifications.rows.values()] == [2]


def test_handling_same_event_twice_keeps_one_unread():
    world = build_world()
    ts = world.new_timesheet()
    world.timesheets.transition(
        timesheet_id=ts.timesheet_id,
        from_state=ts.state,
        to_state=TimesheetState.PENDING_MANAGER,
        changes={},
        event=NewOutboxEvent(OutboxEventType.SUBMITTED, ts.timesheet_id, STAFF.user_id),
    )
    event = world.outbox.get(1)
    dispatcher = dispatcher_for(world, RecordingPublisher())
    dispatcher.handle(event)
    dispatcher.handle(event)

    assert len(world.notifications.for_user(STAFF.user_id, NotificationType.TIMESHEET_SUBMISSION)) == 1
    assert len(world.notifications.for_user(MANAGER.user_id, NotificationType.MANAGER_APPROVAL_NEEDED)) == 1


def test_email_failure_does_not_break_final_approval():
    world = build_world()
    ts = world.new_timesheet()
    world.timesheets.transition(
        timesheet_id=ts.timesheet_id,
        from_state=ts.state,
        to_state=ts.state,
        changes={},
        event=NewOutboxEvent(OutboxEventType.HR_APPROVED, ts.timesheet_id, HR.user_id),
    )
    dispatcher = dispatcher_for(world, RecordingPublisher(), mailer=RecordingMailer(fail=True))
    dispatcher.handle(world.outbox.get(1))
    assert world.notifications.for_user(STAFF.user_id, NotificationType.TIMESHEET_FINAL_APPROVAL)


def test_event_for_missing_timesheet_is_ignored():
    world = build_world()
    world.outbox.add(NewOutboxEvent(OutboxEventType.SUBMITTED, 42, STAFF.user_id))
    dispatcher_for(world, RecordingPublisher()).handle(world.outbox.get(1))
    assert world.notifications.rows == {}


def test_late_submitted_event_does_not_ask_manager_again():
    world = build_world()
    ts = world.new_timesheet()
    workflow = world.container.workflow

    real_replace_unread = world.notifications.replace_unread
    failures = [RuntimeError("db hiccup")]

    def fail_once(**kwargs):
        if failures:
            raise failures.pop()
        return real_replace_unread(**kwargs)

    world.notifications.replace_unread = fail_once

    workflow.submit(timesheet_id=ts.timesheet_id, actor=claims(STAFF), signature="staff-sig")
    assert [e.event_type for e in world.outbox.pending()] == [OutboxEventType.SUBMITTED]

    workflow.manager_approve(timesheet_id=ts.timesheet_id, actor=claims(MANAGER), signature="mgr-sig")
    assert world.container.relay.drain() == 1

    assert world.timesheets.get(ts.timesheet_id).state is TimesheetState.PENDING_HR
    assert world.outbox.pending() == []
    assert world.notifications.for_user(MANAGER.user_id, NotificationType.MANAGER_APPROVAL_NEEDED) == []
    assert world.notifications.for_user(STAFF.user_id, NotificationType.TIMESHEET_SUBMISSION)
    assert world.notifications.for_user(HR.user_id, NotificationType.HR_APPROVAL_NEEDED)


def test_manager_approval_handled_after_hr_decision_does_not_ask_hr():
    world = build_world()
    ts = world.new_timesheet()
    world.timesheets.transition(
        timesheet_id=ts.timesheet_id,
        from_state=ts.state,
        to_state=TimesheetState.APPROVED,
        changes={},
        event=NewOutboxEvent(OutboxEventType.MANAGER_APPROVED, ts.timesheet_id, MANAGER.user_id),
    )
    dispatcher_for(world, RecordingPublisher()).handle(world.outbox.get(1))

    assert world.notifications.for_user(STAFF.user_id, NotificationType.TIMESHEET_APPROVAL)
    assert world.notifications.for_user(HR.user_id, NotificationType.HR_APPROVAL_NEEDED) == []
