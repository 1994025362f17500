from __future__ import annotations

import logging
import sys

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_HANDLER_NAME = "business-backend-console"


# PUBLIC_INTERFACE
def setup_logging(level_name: str = "INFO") -> logging.Logger:
    """
    Configure the `src.api` logger hierarchy with a single console handler.

    Safe to call more than once (each application instance calls it); the
    handler is installed only the first time and the level is refreshed.
    Returns the package logger.
    """
    level = getattr(logging, level_name.upper(), logging.INFO)
    logger = logging.getLogger("src.api")
    logger.setLevel(level)

    if not any(h.get_name() == _HANDLER_NAME for h in logger.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.set_name(_HANDLER_NAME)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
        logger.addHandler(handler)

    logger.debug("Logging initialized at %s", logging.getLevelName(level))
    return logger
