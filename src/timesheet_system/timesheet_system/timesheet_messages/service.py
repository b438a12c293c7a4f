"""Per-timesheet message thread.

Anyone who may view a timesheet may read and post to its thread. Posting
clears the sender's own unread message notices for that timesheet and
notifies the owner and the owner's manager.
"""
from __future__ import annotations

from typing import Sequence

from loguru import logger

from ..access.guard import AccessGuard
from ..common.validators import require_non_empty
from ..core.constants import MAX_MESSAGE_LENGTH
from ..core.enums import FulfillmentAction
from ..core.exceptions import NotFoundError, ValidationError
from ..notifications.dispatcher import NotificationDispatcher
from ..timesheets.model import Timesheet
from ..timesheets.repository import TimesheetRepository
from ..users.model import User
from ..users.repository import UserRepository
from ..users.tokens import IdentityClaims
from .model import TimesheetMessage
from .repository import MessageRepository


class MessageService:
    def __init__(
        self,
        *,
        messages: MessageRepository,
        timesheets: TimesheetRepository,
        users: UserRepository,
        guard: AccessGuard,
        dispatcher: NotificationDispatcher,
    ):
        self._messages = messages
        self._timesheets = timesheets
        self._users = users
        self._guard = guard
        self._dispatcher = dispatcher

    def _load_viewable(self, timesheet_id: int, actor: IdentityClaims) -> tuple[Timesheet, User]:
        timesheet = self._timesheets.get(int(timesheet_id))
        if not timesheet:
            raise NotFoundError("Timesheet not found")
        owner = self._users.get_by_id(timesheet.user_id)
        if not owner:
            raise NotFoundError("Timesheet not found")
        self._guard.require_view(actor, owner)
        return timesheet, owner

    def list_messages(self, *, timesheet_id: int, actor: IdentityClaims) -> Sequence[TimesheetMessage]:
        timesheet, _ = self._load_viewable(timesheet_id, actor)
        return self._messages.list_for_timesheet(timesheet.timesheet_id)

    def post_message(self, *, timesheet_id: int, actor: IdentityClaims, content: str) -> TimesheetMessage:
        content = require_non_empty(content, "Message content")
        if len(content) > MAX_MESSAGE_LENGTH:
            raise ValidationError(f"Message content must be at most {MAX_MESSAGE_LENGTH} characters")
        timesheet, owner = self._load_viewable(timesheet_id, actor)

        message_id = self._messages.add(timesheet_id=timesheet.timesheet_id, sender_id=actor.user_id, content=content)
        message = self._messages.get(message_id)
        if not message:
            raise NotFoundError("Message not found")
        logger.info(f"Message {message_id} posted on timesheet {timesheet.timesheet_id} by user {actor.user_id}")

        # The message is stored; notices are best effort.
        try:
            self._dispatcher.fulfill(
                acting_user_id=actor.user_id,
                resource_id=timesheet.timesheet_id,
                action=FulfillmentAction.MESSAGE_SENT,
            )
            self._dispatcher.notify_message(
                timesheet=timesheet,
                owner=owner,
                sender_id=actor.user_id,
                sender_name=message.sender_name or actor.name,
                content=content,
            )
        except Exception:
            logger.exception(f"Could not send notices for message {message_id} on timesheet {timesheet.timesheet_id}")
        return message
