"""
Logging setup for scripts and services embedding the optimizer.

Library modules only create module-level loggers; call setup_logging()
once at startup to route them to stdout.
"""

import logging
import sys


def setup_logging(level: int | str = logging.INFO) -> None:
    """Console logging with module names and line numbers."""
    if isinstance(level, str):
        level = getattr(logging, level.upper())

    log_format = "%(asctime)s [%(levelname)s] %(name)s %(funcName)s():%(lineno)d - %(message)s"
    date_format = "%Y-%m-%d %H:%M:%S"

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(log_format, datefmt=date_format))
    root_logger.addHandler(handler)

    logging.getLogger("asyncio").setLevel(logging.WARNING)
