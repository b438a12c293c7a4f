"""Deliver workflow events that were committed but never dispatched.

Run from cron or after a crash; safe to run while the app is serving since
events are claimed before they are handled.
"""
from __future__ import annotations

import argparse
import importlib
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from dotenv import load_dotenv
from loguru import logger

from config import get_settings_module

from src.timesheet_system.timesheet_system.container import build_container
from src.timesheet_system.timesheet_system.core.constants import DEFAULT_OUTBOX_BATCH
from src.timesheet_system.timesheet_system.core.logging import configure_logging


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--limit", type=int, default=DEFAULT_OUTBOX_BATCH, help="events per batch")
    parser.add_argument("--until-empty", action="store_true", help="repeat batches until nothing is left")
    args = parser.parse_args()

    load_dotenv(override=False)
    settings = importlib.import_module(get_settings_module())
    configure_logging(level=getattr(settings, "LOG_LEVEL", "INFO"), log_file=getattr(settings, "LOG_FILE", None))

    container = build_container(
        db_config=dict(settings.DB_CONFIG),
        secret_key=settings.SECRET_KEY,
        outbox_workers=0,
        smtp_config=getattr(settings, "SMTP_CONFIG", None),
        email_enabled=bool(getattr(settings, "EMAIL_NOTIFICATIONS_ENABLED", False)),
        app_base_url=getattr(settings, "APP_BASE_URL", ""),
    )

    total = 0
    while True:
        done = container.relay.drain(limit=args.limit)
        total += done
        if not args.until_empty or done == 0:
            break
    logger.info(f"Drained {total} outbox event(s)")


if __name__ == "__main__":
    main()
