from __future__ import annotations

from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Optional

from .access.guard import AccessGuard
from .core.constants import DEFAULT_OUTBOX_WORKERS, DEFAULT_TOKEN_MAX_AGE_SECONDS
from .database.connection import DBConfig, DatabaseConnection
from .hours.calculator.base import HoursCalculator
from .hours.calculator.standard_calculator import StandardHoursCalculator
from .mail.mailer import Mailer, build_mailer
from .notifications.dispatcher import NotificationDispatcher
from .notifications.mysql_notification_repository import MySQLNotificationRepository
from .notifications.mysql_outbox_repository import MySQLOutboxRepository
from .notifications.outbox import OutboxRelay
from .notifications.publisher import SSEBroker
from .notifications.repository import NotificationRepository, OutboxRepository
from .notifications.service import NotificationService
from .timesheet_messages.mysql_message_repository import MySQLMessageRepository
from .timesheet_messages.repository import MessageRepository
from .timesheet_messages.service import MessageService
from .timesheet_templates.mysql_template_repository import MySQLTemplateRepository
from .timesheet_templates.repository import TemplateRepository
from .timesheet_templates.service import TemplateService
from .timesheets.entry_service import EntryService
from .timesheets.mysql_timesheet_repository import MySQLTimesheetRepository
from .timesheets.repository import TimesheetRepository
from .timesheets.workflow import WorkflowEngine
from .users.mysql_user_repository import MySQLUserRepository
from .users.repository import UserRepository
from .users.service import AuthService, UserService
from .users.tokens import TokenService


@dataclass(frozen=True)
class Container:
    conn: Optional[DatabaseConnection]

    users_repo: UserRepository
    timesheets_repo: TimesheetRepository
    templates_repo: TemplateRepository
    notifications_repo: NotificationRepository
    outbox_repo: OutboxRepository
    messages_repo: MessageRepository

    calculator: HoursCalculator
    guard: AccessGuard
    tokens: TokenService
    live: SSEBroker
    mailer: Mailer
    dispatcher: NotificationDispatcher
    relay: OutboxRelay

    auth_service: AuthService
    user_service: UserService
    entry_service: EntryService
    template_service: TemplateService
    workflow: WorkflowEngine
    notification_service: NotificationService
    message_service: MessageService


def assemble_container(
    *,
    users_repo: UserRepository,
    timesheets_repo: TimesheetRepository,
    templates_repo: TemplateRepository,
    notifications_repo: NotificationRepository,
    outbox_repo: OutboxRepository,
    messages_repo: MessageRepository,
    secret_key: str,
    mailer: Mailer,
    token_max_age_seconds: int = DEFAULT_TOKEN_MAX_AGE_SECONDS,
    executor: Optional[Executor] = None,
    conn: Optional[DatabaseConnection] = None,
) -> Container:
    """Wire services on top of the given repositories.

    Without an executor the outbox is dispatched inline after each transition.
    """
    calculator = StandardHoursCalculator()
    guard = AccessGuard()
    tokens = TokenService(secret_key, max_age_seconds=token_max_age_seconds)
    live = SSEBroker()

    dispatcher = NotificationDispatcher(
        notifications=notifications_repo,
        users=users_repo,
        timesheets=timesheets_repo,
        publisher=live,
        mailer=mailer,
        calculator=calculator,
    )
    relay = OutboxRelay(outbox_repo, dispatcher, executor=executor)

    return Container(
        conn=conn,
        users_repo=users_repo,
        timesheets_repo=timesheets_repo,
        templates_repo=templates_repo,
        notifications_repo=notifications_repo,
        outbox_repo=outbox_repo,
        messages_repo=messages_repo,
        calculator=calculator,
        guard=guard,
        tokens=tokens,
        live=live,
        mailer=mailer,
        dispatcher=dispatcher,
        relay=relay,
        auth_service=AuthService(users_repo, tokens),
        user_service=UserService(users_repo),
        entry_service=EntryService(timesheets_repo, templates_repo, calculator),
        template_service=TemplateService(templates_repo, timesheets_repo, calculator),
        workflow=WorkflowEngine(
            timesheets=timesheets_repo,
            users=users_repo,
            guard=guard,
            relay=relay,
            dispatcher=dispatcher,
        ),
        notification_service=NotificationService(notifications_repo),
        message_service=MessageService(
            messages=messages_repo,
            timesheets=timesheets_repo,
            users=users_repo,
            guard=guard,
            dispatcher=dispatcher,
        ),
    )


def build_container(
    *,
    db_config: dict,
    secret_key: str,
    token_max_age_seconds: int = DEFAULT_TOKEN_MAX_AGE_SECONDS,
    outbox_workers: int = DEFAULT_OUTBOX_WORKERS,
    smtp_config: Optional[dict] = None,
    email_enabled: bool = False,
    app_base_url: str = "",
) -> Container:
    config = DBConfig(
        host=str(db_config["host"]),
        port=int(db_config.get("port", 3306)),
        user=str(db_config["user"]),
        password=str(db_config["password"]),
        database=str(db_config["database"]),
    )
    conn = DatabaseConnection.get_instance(config)

    executor = None
    if int(outbox_workers) > 0:
        executor = ThreadPoolExecutor(max_workers=int(outbox_workers), thread_name_prefix="outbox")

    return assemble_container(
        users_repo=MySQLUserRepository(conn),
        timesheets_repo=MySQLTimesheetRepository(conn),
        templates_repo=MySQLTemplateRepository(conn),
        notifications_repo=MySQLNotificationRepository(conn),
        outbox_repo=MySQLOutboxRepository(conn),
        messages_repo=MySQLMessageRepository(conn),
        secret_key=secret_key,
        mailer=build_mailer(smtp_config, enabled=email_enabled, app_base_url=app_base_url),
        token_max_age_seconds=token_max_age_seconds,
        executor=executor,
        conn=conn,
    )
