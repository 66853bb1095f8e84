import logging
import os
import sys
from typing import Optional

import structlog


def configure_logging(level: Optional[str] = None, json: Optional[bool] = None):
    level = (level or os.getenv("FLAGGATE_LOG_LEVEL", "INFO")).upper()
    if json is None:
        json = os.getenv("FLAGGATE_LOG_JSON", "0").lower() in ("1", "true", "yes")

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    renderer = structlog.processors.JSONRenderer() if json else structlog.dev.ConsoleRenderer()
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(level)),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
