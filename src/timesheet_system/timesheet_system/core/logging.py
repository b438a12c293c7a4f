from __future__ import annotations

import sys
from typing import Optional

from loguru import logger


def configure_logging(*, level: str = "INFO", log_file: Optional[str] = None) -> None:
    """Initialise loguru sinks once per process."""
    logger.remove()
    logger.add(sys.stderr, level=level)
    if log_file:
        logger.add(log_file, rotation="10 MB", retention="10 days", level=level)
