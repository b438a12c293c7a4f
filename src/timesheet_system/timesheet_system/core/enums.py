from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """User role used for authorization."""

    STAFF = "STAFF"
    MANAGER = "MANAGER"
    HR = "HR"
    ADMIN = "ADMIN"


class TimesheetState(str, Enum):
    """Approval workflow state of a timesheet."""

    PENDING_STAFF = "PENDING_STAFF"
    PENDING_MANAGER = "PENDING_MANAGER"
    PENDING_HR = "PENDING_HR"
    APPROVED = "APPROVED"

    @property
    def is_staff_editable(self) -> bool:
        return self is TimesheetState.PENDING_STAFF


class DayType(str, Enum):
    """Weekday classification used by timesheet templates."""

    WEEKDAY = "WEEKDAY"
    SATURDAY = "SATURDAY"
    SUNDAY = "SUNDAY"


class NotificationType(str, Enum):
    TIMESHEET_SUBMISSION = "timesheet_submission"
    TIMESHEET_APPROVAL = "timesheet_approval"
    TIMESHEET_DENIAL = "timesheet_denial"
    TIMESHEET_FINAL_APPROVAL = "timesheet_final_approval"
    MANAGER_APPROVAL_NEEDED = "manager_approval_needed"
    HR_APPROVAL_NEEDED = "hr_approval_needed"
    TIMESHEET_MESSAGE = "timesheet_message"


class FulfillmentAction(str, Enum):
    """Actions after which stale notifications for a timesheet are removed."""

    TIMESHEET_VIEWED = "timesheet_viewed"
    MANAGER_DECIDED = "manager_decided"
    HR_DECIDED = "hr_decided"
    MESSAGE_SENT = "message_sent"


class OutboxEventType(str, Enum):
    """Committed workflow transitions waiting for their side effects."""

    SUBMITTED = "SUBMITTED"
    MANAGER_APPROVED = "MANAGER_APPROVED"
    MANAGER_DENIED = "MANAGER_DENIED"
    HR_APPROVED = "HR_APPROVED"
    HR_DENIED = "HR_DENIED"
