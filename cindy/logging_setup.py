from __future__ import annotations

import logging


LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(message)s"


def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure the root logger with a single stream handler.

    Args:
        log_level: Logging level name (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root_logger.addHandler(handler)

    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))
