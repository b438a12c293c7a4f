"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

from decimal import Decimal

DEFAULT_TOKEN_MAX_AGE_SECONDS = 7 * 24 * 3600
DEFAULT_LIST_LIMIT = 200
DEFAULT_OUTBOX_WORKERS = 2
DEFAULT_OUTBOX_BATCH = 100

MAX_ADJUSTMENT_HOURS = Decimal("24")
MAX_PERIOD_DAYS = 31
HOURS_QUANTUM = Decimal("0.01")

ENTRY_WRITE_ATTEMPTS = 3
OUTBOX_MAX_ATTEMPTS = 10
LIVE_QUEUE_SIZE = 100
MAX_MESSAGE_LENGTH = 2000
MESSAGE_PREVIEW_LENGTH = 100
