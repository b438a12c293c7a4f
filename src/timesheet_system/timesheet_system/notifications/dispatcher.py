"""Turns committed workflow transitions into notifications, live pushes and
the final-approval email.

Notification rows are written with replace-unread semantics, so handling the
same event twice leaves a single unread notification per
(recipient, resource, type).
Events may arrive late (retries, drain, several workers), so "approval needed"
notices are only raised while the timesheet still waits in the state the
event produced.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from loguru import logger

from ..access.guard import HR_ROLES
from ..common.datetime_utils import period_label
from ..core.constants import MESSAGE_PREVIEW_LENGTH
from ..core.enums import FulfillmentAction, NotificationType, OutboxEventType, TimesheetState
from ..hours.calculator.base import HoursCalculator
from ..hours.calculator.standard_calculator import round_hours
from ..mail.mailer import Mailer
from ..timesheets.model import Timesheet
from ..timesheets.repository import TimesheetRepository
from ..users.model import User
from ..users.repository import UserRepository
from .model import Notification, OutboxEvent
from .publisher import LivePublisher
from .repository import NotificationRepository


class FulfillScope(str, Enum):
    ACTOR = "ACTOR"
    RESOURCE = "RESOURCE"


@dataclass(frozen=True)
class FulfillRule:
    types: frozenset
    scope: FulfillScope


FULFILL_RULES = {
    FulfillmentAction.TIMESHEET_VIEWED: FulfillRule(
        types=frozenset(
            {
                NotificationType.TIMESHEET_SUBMISSION,
                NotificationType.TIMESHEET_APPROVAL,
                NotificationType.TIMESHEET_DENIAL,
                NotificationType.TIMESHEET_FINAL_APPROVAL,
                NotificationType.TIMESHEET_MESSAGE,
            }
        ),
        scope=FulfillScope.ACTOR,
    ),
    FulfillmentAction.MANAGER_DECIDED: FulfillRule(
        types=frozenset({NotificationType.MANAGER_APPROVAL_NEEDED}),
        scope=FulfillScope.RESOURCE,
    ),
    FulfillmentAction.HR_DECIDED: FulfillRule(
        types=frozenset({NotificationType.HR_APPROVAL_NEEDED}),
        scope=FulfillScope.RESOURCE,
    ),
    FulfillmentAction.MESSAGE_SENT: FulfillRule(
        types=frozenset({NotificationType.TIMESHEET_MESSAGE}),
        scope=FulfillScope.ACTOR,
    ),
}

TITLES = {
    NotificationType.TIMESHEET_SUBMISSION: "Timesheet Submitted",
    NotificationType.TIMESHEET_APPROVAL: "Timesheet Approved by Manager",
    NotificationType.TIMESHEET_DENIAL: "Timesheet Requires Attention",
    NotificationType.TIMESHEET_FINAL_APPROVAL: "Timesheet Fully Approved",
    NotificationType.MANAGER_APPROVAL_NEEDED: "Timesheet Awaiting Approval",
    NotificationType.HR_APPROVAL_NEEDED: "Timesheet Awaiting HR Approval",
    NotificationType.TIMESHEET_MESSAGE: "New Timesheet Message",
}


class NotificationDispatcher:
    def __init__(
        self,
        *,
        notifications: NotificationRepository,
        users: UserRepository,
        timesheets: TimesheetRepository,
        publisher: LivePublisher,
        mailer: Mailer,
        calculator: HoursCalculator,
    ):
        self._notifications = notifications
        self._users = users
        self._timesheets = timesheets
        self._publisher = publisher
        self._mailer = mailer
        self._calculator = calculator

    def create(
        self,
        *,
        recipient_id: int,
        type: NotificationType,
        resource_id: Optional[int],
        message: str,
        title: Optional[str] = None,
    ) -> Notification:
        notification = self._notifications.replace_unread(
            user_id=int(recipient_id),
            type=type,
            resource_id=resource_id,
            title=title or TITLES[type],
            message=message,
        )
        try:
            self._publisher.publish(notification.user_id, notification.to_payload())
        except Exception:
            logger.exception(f"Live push failed for notification {notification.notification_id}")
        return notification

    def fulfill(self, *, acting_user_id: int, resource_id: int, action: FulfillmentAction) -> int:
        rule = FULFILL_RULES[action]
        removed = self._notifications.delete_by_types(
            resource_id=int(resource_id),
            types=rule.types,
            user_id=int(acting_user_id) if rule.scope is FulfillScope.ACTOR else None,
        )
        if removed:
            logger.debug(f"Fulfilled {action.value} on timesheet {resource_id}: {removed} notification(s) removed")
        return removed

    def notify_message(self, *, timesheet: Timesheet, owner: User, sender_id: int, sender_name: str, content: str) -> int:
        """Tell the owner and the owner's manager about a new thread message.

        The sender is never notified of their own message.
        """
        preview = content[:MESSAGE_PREVIEW_LENGTH]
        if len(content) > MESSAGE_PREVIEW_LENGTH:
            preview += "..."
        recipients = []
        for user_id in (owner.user_id, owner.manager_id):
            if user_id is not None and user_id != int(sender_id) and user_id not in recipients:
                recipients.append(user_id)
        for user_id in recipients:
            self.create(
                recipient_id=user_id,
                type=NotificationType.TIMESHEET_MESSAGE,
                resource_id=timesheet.timesheet_id,
                message=f"{sender_name} sent a message: '{preview}'",
            )
        return len(recipients)

    # -------- Event handling --------
    def handle(self, event: OutboxEvent) -> None:
        timesheet = self._timesheets.get(event.timesheet_id)
        if not timesheet:
            logger.warning(f"Outbox event {event.event_id} refers to missing timesheet {event.timesheet_id}")
            return
        owner = self._users.get_by_id(timesheet.user_id)
        if not owner:
            logger.warning(f"Timesheet {timesheet.timesheet_id} has no owner record, skipping notifications")
            return
        actor = self._users.get_by_id(event.actor_id)
        actor_name = actor.full_name if actor else "an approver"

        handler = {
            OutboxEventType.SUBMITTED: self._on_submitted,
            OutboxEventType.MANAGER_APPROVED: self._on_manager_approved,
            OutboxEventType.MANAGER_DENIED: self._on_manager_denied,
            OutboxEventType.HR_APPROVED: self._on_hr_approved,
            OutboxEventType.HR_DENIED: self._on_hr_denied,
        }[event.event_type]
        handler(event, timesheet, owner, actor_name)

    @staticmethod
    def _still_waiting(event: OutboxEvent, ts: Timesheet, state: TimesheetState) -> bool:
        if ts.state is state:
            return True
        logger.info(
            f"Outbox event {event.event_id} ({event.event_type.value}) is stale: timesheet {ts.timesheet_id} "
            f"is {ts.state.value}, skipping approval request"
        )
        return False

    def _on_submitted(self, event: OutboxEvent, ts: Timesheet, owner: User, actor_name: str) -> None:
        period = period_label(ts.period_start, ts.period_end)
        self.create(
            recipient_id=owner.user_id,
            type=NotificationType.TIMESHEET_SUBMISSION,
            resource_id=ts.timesheet_id,
            message=f"Your timesheet for {period} has been submitted for manager approval.",
        )
        if owner.manager_id is None:
            logger.warning(f"User {owner.user_id} has no manager; nobody was asked to approve timesheet {ts.timesheet_id}")
            return
        if not self._still_waiting(event, ts, TimesheetState.PENDING_MANAGER):
            return
        self.create(
            recipient_id=owner.manager_id,
            type=NotificationType.MANAGER_APPROVAL_NEEDED,
            resource_id=ts.timesheet_id,
            message=f"{owner.full_name} has submitted a timesheet for {period} that requires your approval.",
        )

    def _on_manager_approved(self, event: OutboxEvent, ts: Timesheet, owner: User, actor_name: str) -> None:
        period = period_label(ts.period_start, ts.period_end)
        self.create(
            recipient_id=owner.user_id,
            type=NotificationType.TIMESHEET_APPROVAL,
            resource_id=ts.timesheet_id,
            message=f"Your timesheet for {period} has been approved by {actor_name} and sent to HR.",
        )
        if self._still_waiting(event, ts, TimesheetState.PENDING_HR):
            for reviewer in self._users.list_by_roles(HR_ROLES):
                self.create(
                    recipient_id=reviewer.user_id,
                    type=NotificationType.HR_APPROVAL_NEEDED,
                    resource_id=ts.timesheet_id,
                    message=(
                        f"{owner.full_name}'s timesheet for {period} has been approved by their manager "
                        f"and requires HR approval."
                    ),
                )
        self.fulfill(acting_user_id=event.actor_id, resource_id=ts.timesheet_id, action=FulfillmentAction.MANAGER_DECIDED)

    def _denial(self, event: OutboxEvent, ts: Timesheet, owner: User, actor_name: str) -> None:
        period = period_label(ts.period_start, ts.period_end)
        message = f"Your timesheet for {period} was returned by {actor_name}."
        if event.note:
            message += f" Note: {event.note}"
        self.create(
            recipient_id=owner.user_id,
            type=NotificationType.TIMESHEET_DENIAL,
            resource_id=ts.timesheet_id,
            message=message,
        )

    def _on_manager_denied(self, event: OutboxEvent, ts: Timesheet, owner: User, actor_name: str) -> None:
        self._denial(event, ts, owner, actor_name)
        self.fulfill(acting_user_id=event.actor_id, resource_id=ts.timesheet_id, action=FulfillmentAction.MANAGER_DECIDED)

    def _on_hr_denied(self, event: OutboxEvent, ts: Timesheet, owner: User, actor_name: str) -> None:
        self._denial(event, ts, owner, actor_name)
        self.fulfill(acting_user_id=event.actor_id, resource_id=ts.timesheet_id, action=FulfillmentAction.HR_DECIDED)

    def _on_hr_approved(self, event: OutboxEvent, ts: Timesheet, owner: User, actor_name: str) -> None:
        period = period_label(ts.period_start, ts.period_end)
        self.create(
            recipient_id=owner.user_id,
            type=NotificationType.TIMESHEET_FINAL_APPROVAL,
            resource_id=ts.timesheet_id,
            message=f"Your timesheet for {period} has been fully approved by HR.",
        )
        self.fulfill(acting_user_id=event.actor_id, resource_id=ts.timesheet_id, action=FulfillmentAction.HR_DECIDED)

        summary = self._calculator.period_summary(self._timesheets.list_entries(ts.timesheet_id))
        try:
            self._mailer.send_final_approval_email(
                owner_email=owner.email,
                owner_name=owner.full_name,
                period_label=period,
                total_hours=round_hours(summary.total_hours),
                adjustment_hours=round_hours(summary.adjustment_hours),
                regular_hours=round_hours(summary.regular_hours),
                approver_name=actor_name,
            )
        except Exception:
            logger.exception(f"Final approval email for timesheet {ts.timesheet_id} failed")
