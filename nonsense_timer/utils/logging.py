"""
Logging configuration for the nonsense timer command-line programs.
"""

import logging
import sys
from typing import Optional


LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def silence_external_loggers() -> None:
    """Keep library chatter out of the timer's log output."""
    logging.getLogger('asyncio').setLevel(logging.WARNING)
    logging.getLogger('rich').setLevel(logging.WARNING)


def configure_cli_logging(verbose: bool = False, handler: Optional[logging.Handler] = None) -> logging.Logger:
    """
    Configure the package logger for one of the command-line programs.

    Args:
        verbose: Log at DEBUG instead of INFO
        handler: Handler to log through; a stdout stream handler when None

    Returns:
        The configured ``nonsense_timer`` logger
    """
    level = logging.DEBUG if verbose else logging.INFO
    logger = logging.getLogger('nonsense_timer')
    logger.setLevel(level)
    logger.propagate = False

    for existing in logger.handlers[:]:
        logger.removeHandler(existing)

    if handler is None:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.setLevel(level)
    logger.addHandler(handler)

    silence_external_loggers()
    return logger
