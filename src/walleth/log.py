"""
Logging - Library logging configuration.

walleth logs through module loggers under the "walleth" namespace and never
logs key material, phrases or passwords. Applications call configure_logging()
once, or attach their own handlers.
"""

import logging
from typing import Optional, Union

LOGGER_NAME = "walleth"
LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'
LOG_DATEFMT = '%H:%M:%S'

# Library loggers stay silent unless the application configures logging
logging.getLogger(LOGGER_NAME).addHandler(logging.NullHandler())


def configure_logging(level: Union[int, str] = logging.INFO,
                      logger: Optional[logging.Logger] = None) -> logging.Logger:
    """
    Configure console logging for walleth.

    Sets up the "walleth" logger with console output. Does nothing to the
    handlers if a console handler is already attached.

    Args:
        level: Logging level (default: INFO), int or name like "DEBUG"
        logger: Logger to configure (default: the "walleth" logger)

    Returns:
        The configured logger
    """
    if isinstance(level, str):
        name = level
        level = logging.getLevelName(name.upper())
        if not isinstance(level, int):
            raise ValueError(f"Unknown logging level: {name}")

    target = logger or logging.getLogger(LOGGER_NAME)
    target.setLevel(level)

    # Only configure if not already configured
    if any(isinstance(h, logging.StreamHandler) for h in target.handlers):
        return target

    # Console handler with simple format
    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT)
    console_handler.setFormatter(formatter)
    target.addHandler(console_handler)
    return target
