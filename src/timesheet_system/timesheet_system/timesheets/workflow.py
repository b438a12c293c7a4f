"""Timesheet approval state machine.

PENDING_STAFF -> PENDING_MANAGER -> PENDING_HR -> APPROVED, with denial at
either approval stage returning the timesheet to PENDING_STAFF.

Every transition is one conditional UPDATE keyed on the expected state plus
an outbox insert, committed together. Notifications and email are produced
from the outbox after commit and never affect the caller's result.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional, Sequence

from loguru import logger

from ..access.guard import HR_ROLES, AccessGuard, Capability
from ..common.datetime_utils import now_local
from ..common.validators import require_non_empty
from ..core.enums import FulfillmentAction, OutboxEventType, Role, TimesheetState
from ..core.exceptions import InvalidStateError, NotFoundError
from ..notifications.dispatcher import NotificationDispatcher
from ..notifications.model import NewOutboxEvent
from ..notifications.outbox import OutboxRelay
from ..users.model import User
from ..users.repository import UserRepository
from ..users.tokens import IdentityClaims
from .model import Timesheet, TimesheetEntry, TransitionResult
from .repository import TimesheetRepository

_SIGNATURE_FIELDS = ("staff_sig", "staff_sig_at", "manager_sig", "manager_sig_at", "hr_sig", "hr_sig_at")


@dataclass(frozen=True)
class Transition:
    from_state: TimesheetState
    to_state: TimesheetState
    capability: Capability
    event_type: OutboxEventType
    verb: str
    # Set for approvals; None means a denial carrying a note.
    signer: Optional[str] = None


TRANSITIONS = {
    "submit": Transition(
        TimesheetState.PENDING_STAFF,
        TimesheetState.PENDING_MANAGER,
        Capability.IS_OWNER,
        OutboxEventType.SUBMITTED,
        verb="submit",
        signer="staff",
    ),
    "manager_approve": Transition(
        TimesheetState.PENDING_MANAGER,
        TimesheetState.PENDING_HR,
        Capability.IS_DIRECT_MANAGER_OF_OWNER,
        OutboxEventType.MANAGER_APPROVED,
        verb="approve",
        signer="manager",
    ),
    "manager_deny": Transition(
        TimesheetState.PENDING_MANAGER,
        TimesheetState.PENDING_STAFF,
        Capability.IS_DIRECT_MANAGER_OF_OWNER,
        OutboxEventType.MANAGER_DENIED,
        verb="deny",
    ),
    "hr_approve": Transition(
        TimesheetState.PENDING_HR,
        TimesheetState.APPROVED,
        Capability.HAS_ROLE_HR_OR_ADMIN,
        OutboxEventType.HR_APPROVED,
        verb="approve",
        signer="hr",
    ),
    "hr_deny": Transition(
        TimesheetState.PENDING_HR,
        TimesheetState.PENDING_STAFF,
        Capability.HAS_ROLE_HR_OR_ADMIN,
        OutboxEventType.HR_DENIED,
        verb="deny",
    ),
}

_STATE_MESSAGES = {
    TimesheetState.PENDING_STAFF: "Timesheet is not in staff pending state",
    TimesheetState.PENDING_MANAGER: "Timesheet is not pending manager approval",
    TimesheetState.PENDING_HR: "Timesheet is not pending HR approval",
}


@dataclass(frozen=True)
class TimesheetView:
    timesheet: Timesheet
    owner: User
    entries: Sequence[TimesheetEntry]


class WorkflowEngine:
    def __init__(
        self,
        *,
        timesheets: TimesheetRepository,
        users: UserRepository,
        guard: AccessGuard,
        relay: OutboxRelay,
        dispatcher: NotificationDispatcher,
        clock: Callable[[], datetime] = now_local,
    ):
        self._timesheets = timesheets
        self._users = users
        self._guard = guard
        self._relay = relay
        self._dispatcher = dispatcher
        self._clock = clock

    # -------- Transitions --------
    def submit(self, *, timesheet_id: int, actor: IdentityClaims, signature: str) -> TransitionResult:
        return self._apply("submit", timesheet_id, actor, signature)

    def manager_approve(self, *, timesheet_id: int, actor: IdentityClaims, signature: str) -> TransitionResult:
        return self._apply("manager_approve", timesheet_id, actor, signature)

    def manager_deny(self, *, timesheet_id: int, actor: IdentityClaims, note: str) -> TransitionResult:
        return self._apply("manager_deny", timesheet_id, actor, note)

    def hr_approve(self, *, timesheet_id: int, actor: IdentityClaims, signature: str) -> TransitionResult:
        return self._apply("hr_approve", timesheet_id, actor, signature)

    def hr_deny(self, *, timesheet_id: int, actor: IdentityClaims, note: str) -> TransitionResult:
        return self._apply("hr_deny", timesheet_id, actor, note)

    def _changes(self, transition: Transition, value: str) -> dict:
        if transition.signer is not None:
            return {f"{transition.signer}_sig": value, f"{transition.signer}_sig_at": self._clock()}
        changes = {name: None for name in _SIGNATURE_FIELDS}
        changes["denial_note"] = value
        return changes

    def _apply(self, name: str, timesheet_id: int, actor: IdentityClaims, value: str) -> TransitionResult:
        transition = TRANSITIONS[name]
        value = require_non_empty(value, "Signature" if transition.signer else "Note")

        timesheet = self._timesheets.get(int(timesheet_id))
        if not timesheet:
            raise NotFoundError("Timesheet not found")
        owner = self._users.get_by_id(timesheet.user_id)
        if not owner:
            raise NotFoundError("Timesheet not found")

        self._guard.require(actor, transition.capability, owner, action=transition.verb)

        if timesheet.state is not transition.from_state:
            raise InvalidStateError(_STATE_MESSAGES[transition.from_state])

        event_id = self._timesheets.transition(
            timesheet_id=timesheet.timesheet_id,
            from_state=transition.from_state,
            to_state=transition.to_state,
            changes=self._changes(transition, value),
            event=NewOutboxEvent(
                event_type=transition.event_type,
                timesheet_id=timesheet.timesheet_id,
                actor_id=actor.user_id,
                note=None if transition.signer else value,
            ),
        )
        if event_id is None:
            # Lost a race: someone else moved the row between our read and write.
            if not self._timesheets.get(timesheet.timesheet_id):
                raise NotFoundError("Timesheet not found")
            raise InvalidStateError(_STATE_MESSAGES[transition.from_state])

        logger.info(
            f"Timesheet {timesheet.timesheet_id}: {transition.from_state.value} -> "
            f"{transition.to_state.value} by user {actor.user_id} ({name})"
        )
        if name == "submit" and owner.manager_id is None:
            logger.warning(f"Timesheet {timesheet.timesheet_id} submitted by user {owner.user_id} who has no manager")

        self._relay.schedule(event_id)

        updated = self._timesheets.get(timesheet.timesheet_id)
        if not updated:
            raise NotFoundError("Timesheet not found")
        return TransitionResult(timesheet=updated, outbox_event_id=event_id)

    # -------- Reads --------
    def get_for_viewer(self, *, timesheet_id: int, actor: IdentityClaims) -> TimesheetView:
        timesheet = self._timesheets.get(int(timesheet_id))
        if not timesheet:
            raise NotFoundError("Timesheet not found")
        owner = self._users.get_by_id(timesheet.user_id)
        if not owner:
            raise NotFoundError("Timesheet not found")
        self._guard.require_view(actor, owner)

        try:
            self._dispatcher.fulfill(
                acting_user_id=actor.user_id,
                resource_id=timesheet.timesheet_id,
                action=FulfillmentAction.TIMESHEET_VIEWED,
            )
        except Exception:
            logger.exception(f"Could not clear viewed notifications for timesheet {timesheet.timesheet_id}")

        return TimesheetView(
            timesheet=timesheet,
            owner=owner,
            entries=self._timesheets.list_entries(timesheet.timesheet_id),
        )

    def list_for_user(self, actor: IdentityClaims) -> Sequence[Timesheet]:
        if actor.role in HR_ROLES:
            return self._timesheets.list_all()

        found = {ts.timesheet_id: ts for ts in self._timesheets.list_for_owner(actor.user_id)}
        if actor.role is Role.MANAGER:
            for ts in self._timesheets.list_for_manager(actor.user_id):
                found.setdefault(ts.timesheet_id, ts)
        return sorted(found.values(), key=lambda ts: (ts.period_start, ts.timesheet_id), reverse=True)

    def pending_manager_approvals(self, actor: IdentityClaims) -> Sequence[Timesheet]:
        AccessGuard.require_role(actor, frozenset({Role.MANAGER}))
        return self._timesheets.list_for_manager(actor.user_id, state=TimesheetState.PENDING_MANAGER)

    def pending_hr_approvals(self, actor: IdentityClaims) -> Sequence[Timesheet]:
        AccessGuard.require_role(actor, HR_ROLES)
        return self._timesheets.list_all(state=TimesheetState.PENDING_HR)
