from __future__ import annotations

import argparse
import importlib
import sys
from decimal import Decimal
from getpass import getpass
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from dotenv import load_dotenv
from loguru import logger

from config import get_settings_module

from src.timesheet_system.timesheet_system.core.enums import Role
from src.timesheet_system.timesheet_system.core.exceptions import DomainError
from src.timesheet_system.timesheet_system.database.connection import DBConfig, DatabaseConnection
from src.timesheet_system.timesheet_system.users.mysql_user_repository import MySQLUserRepository
from src.timesheet_system.timesheet_system.users.service import UserService


def main() -> None:
    parser = argparse.ArgumentParser(description="Create a user account")
    parser.add_argument("email")
    parser.add_argument("full_name")
    parser.add_argument("--role", choices=[r.value for r in Role], default=Role.STAFF.value)
    parser.add_argument("--manager-id", type=int, default=None)
    parser.add_argument("--pay-rate", default="0")
    args = parser.parse_args()

    load_dotenv(override=False)
    settings = importlib.import_module(get_settings_module())
    db = dict(settings.DB_CONFIG)
    conn = DatabaseConnection.get_instance(
        DBConfig(host=db["host"], port=int(db["port"]), user=db["user"], password=db["password"], database=db["database"])
    )

    service = UserService(MySQLUserRepository(conn))
    try:
        user_id = service.create_account(
            full_name=args.full_name,
            email=args.email,
            password=getpass("Password: "),
            role=Role(args.role),
            manager_id=args.manager_id,
            pay_rate=Decimal(args.pay_rate),
        )
    except DomainError as e:
        logger.error(str(e))
        sys.exit(1)
    logger.info(f"Created user {user_id} <{args.email}> as {args.role}")


if __name__ == "__main__":
    main()
