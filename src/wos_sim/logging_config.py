"""
Logging setup for the command line scripts.

Library modules only create ``logging.getLogger(__name__)`` loggers under the
``wos_sim`` namespace. Nothing is printed until a script calls
``setup_logging``.
"""
import logging
import sys
from typing import Optional, Union

PACKAGE_LOGGER = "wos_sim"
LOG_FORMAT = "%(asctime)s %(processName)s %(levelname)-7s %(name)s: %(message)s"
DATE_FORMAT = "%H:%M:%S"


def _as_level(level: Union[int, str]) -> int:
    if isinstance(level, str):
        value = logging.getLevelName(level.upper())
        if not isinstance(value, int):
            raise ValueError(f"Unknown log level {level!r}")
        return value
    return int(level)


def setup_logging(level: Union[int, str] = logging.INFO, log_file: Optional[str] = None) -> logging.Logger:
    """
    Send ``wos_sim`` records to stdout, and to ``log_file`` when given.

    Args:
        level: Level number or name, e.g. ``logging.DEBUG`` or ``"debug"``.
        log_file: Optional path, truncated on each call.

    Calling again replaces the handlers installed by the previous call.
    numba's logger is kept at WARNING or above so that DEBUG runs are not
    flooded with compiler output.
    """
    level = _as_level(level)
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, mode="w", encoding="utf-8"))

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logging.getLogger("numba").setLevel(max(level, logging.WARNING))

    logger.debug("Logging at %s%s", logging.getLevelName(level), f" to {log_file}" if log_file else "")
    return logger
