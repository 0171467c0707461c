"""Logger setup for schemaweaver.

Modules log through ``logging.getLogger(__name__)``; everything ends up under
the ``schemaweaver`` logger configured here.
"""

import logging

logger = logging.getLogger("schemaweaver")
logger.addHandler(logging.NullHandler())


def set_log_level(level: int | str) -> None:
    """Set the level of the package logger.

    Args:
        level: A logging level number or name such as "DEBUG"
    """
    if isinstance(level, str):
        level = level.upper()
    logger.setLevel(level)


def enable_console_logging(level: int | str = logging.INFO) -> logging.Handler:
    """Attach a stream handler to the package logger.

    Returns:
        The handler, so callers can remove it again
    """
    handler = logging.StreamHandler()
    handler.setFormatter(
        logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    )
    logger.addHandler(handler)
    set_log_level(level)
    return handler
