import os

SECRET_KEY = "test-secret"

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "timesheet_test"),
}

DEBUG = False
TESTING = True

TOKEN_MAX_AGE_SECONDS = 3600

LOG_LEVEL = os.getenv("LOG_LEVEL", "WARNING")
LOG_FILE = None

# Inline delivery keeps tests deterministic.
OUTBOX_WORKERS = 0
DRAIN_OUTBOX_ON_START = False

SMTP_CONFIG = {}
EMAIL_NOTIFICATIONS_ENABLED = False
APP_BASE_URL = "http://localhost"

AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "0")))
AUTO_SEED_DB = bool(int(os.getenv("AUTO_SEED_DB", "0")))
