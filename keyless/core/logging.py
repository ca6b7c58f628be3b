"""Process-wide logging setup."""

import logging
import sys

from keyless.core.settings import KeylessSettings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(settings: KeylessSettings) -> None:
    """Route every logger in the process to stdout at the configured level."""
    console_handler = logging.StreamHandler(stream=sys.stdout)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT))

    logging.basicConfig(handlers=[console_handler], level=settings.log_level.upper())

    # Loggers created before this call keep their own handlers otherwise
    for logger in logging.root.manager.loggerDict.values():
        if isinstance(logger, logging.Logger) and logger.name.startswith("keyless"):
            if console_handler not in logger.handlers:
                logger.handlers = [console_handler]
                logger.propagate = False
