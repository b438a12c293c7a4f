from __future__ import annotations

import atexit
import importlib
from pathlib import Path

from dotenv import load_dotenv
from flask import Flask
from loguru import logger

from config import get_settings_module

from .common.http import register_error_handlers
from .container import Container, build_container
from .core.logging import configure_logging
from .database.bootstrap import apply_schema, apply_seed_sql, ensure_demo_users, list_tables
from .notifications.controller import register as register_notifications
from .timesheet_messages.controller import register as register_messages
from .timesheet_templates.controller import register as register_templates
from .timesheets.controller import register as register_timesheets
from .users.controller import register as register_users

DATABASE_DIR = Path(__file__).resolve().parents[3] / "database"


def register_routes(app: Flask, container: Container) -> None:
    register_error_handlers(app)
    register_users(app, container)
    register_timesheets(app, container)
    register_templates(app, container)
    register_messages(app, container)
    register_notifications(app, container)


def create_app() -> Flask:
    load_dotenv(override=False)
    app = Flask(__name__)

    settings_module = get_settings_module()
    settings = importlib.import_module(settings_module)
    app.secret_key = getattr(settings, "SECRET_KEY")
    db_config = getattr(settings, "DB_CONFIG")
    app.config["DEBUG"] = bool(getattr(settings, "DEBUG", False))
    app.config["TESTING"] = bool(getattr(settings, "TESTING", False))

    configure_logging(
        level=getattr(settings, "LOG_LEVEL", "INFO"),
        log_file=getattr(settings, "LOG_FILE", None),
    )
    logger.info(
        f"settings={settings_module} db={db_config.get('user')}@{db_config.get('host')}:"
        f"{db_config.get('port', 3306)}/{db_config.get('database')}"
    )

    if bool(getattr(settings, "AUTO_INIT_DB", False)):
        apply_schema(db_config, schema_path=DATABASE_DIR / "schema.sql")
        logger.info(f"Schema ready (tables={len(list_tables(db_config))})")
    if bool(getattr(settings, "AUTO_SEED_DB", False)):
        apply_seed_sql(db_config, seed_path=DATABASE_DIR / "seed.sql")
        ensure_demo_users(db_config)
        logger.info("Demo seed ready")

    container = build_container(
        db_config=db_config,
        secret_key=app.secret_key,
        token_max_age_seconds=int(getattr(settings, "TOKEN_MAX_AGE_SECONDS")),
        outbox_workers=int(getattr(settings, "OUTBOX_WORKERS")),
        smtp_config=getattr(settings, "SMTP_CONFIG", None),
        email_enabled=bool(getattr(settings, "EMAIL_NOTIFICATIONS_ENABLED", False)),
        app_base_url=getattr(settings, "APP_BASE_URL", ""),
    )
    atexit.register(container.relay.shutdown)

    # Pick up events left pending by a previous process.
    if bool(getattr(settings, "DRAIN_OUTBOX_ON_START", False)):
        container.relay.drain()

    register_routes(app, container)
    app.extensions["timesheet_container"] = container
    return app
