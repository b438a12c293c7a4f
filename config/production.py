import os

SECRET_KEY = os.getenv("SECRET_KEY", "please-set-SECRET_KEY")

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "timesheet_db"),
}

DEBUG = False

TOKEN_MAX_AGE_SECONDS = int(os.getenv("TOKEN_MAX_AGE_SECONDS", str(24 * 3600)))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE", "logs/timesheet.log")

OUTBOX_WORKERS = int(os.getenv("OUTBOX_WORKERS", "4"))
DRAIN_OUTBOX_ON_START = bool(int(os.getenv("DRAIN_OUTBOX_ON_START", "1")))

SMTP_CONFIG = {
    "host": os.getenv("SMTP_HOST", ""),
    "port": int(os.getenv("SMTP_PORT", "587")),
    "user": os.getenv("SMTP_USER", ""),
    "password": os.getenv("SMTP_PASS", ""),
    "from_addr": os.getenv("SMTP_FROM", ""),
    "use_tls": os.getenv("SMTP_SECURE", "true").lower() == "true",
}
EMAIL_NOTIFICATIONS_ENABLED = bool(int(os.getenv("EMAIL_NOTIFICATIONS_ENABLED", "1")))
APP_BASE_URL = os.getenv("APP_BASE_URL", "")

AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "0")))
AUTO_SEED_DB = bool(int(os.getenv("AUTO_SEED_DB", "0")))
