# log.py
# structlog setup. run() calls configure_logging() once; modules grab a
# logger with get_logger(__name__) and log event names plus context:
#
#     log = get_logger(__name__)
#     log.info("rfp_sent", rfp_id=rfp.id, sent=3)

import logging
import sys
from typing import Any, Optional

import structlog

from .config import settings


def configure_logging(log_level: Optional[str] = None, log_format: Optional[str] = None) -> None:
    level = getattr(logging, (log_level or settings.log_level).upper(), logging.INFO)
    if (log_format or settings.log_format) == "json":
        renderer: Any = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    # uvicorn's own loggers go through stdlib; keep them on the same stream and level
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str, **initial_values: Any):
    logger = structlog.get_logger(name)
    return logger.bind(**initial_values) if initial_values else logger
