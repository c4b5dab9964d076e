"""
Runner configuration and logging setup.
"""

from __future__ import annotations

import logging
from typing import Optional

LOGGER_NAME = "branchline"


class RunnerConfig:
    """
    Configuration for a dialogue runner.

    Logging is process-wide and left to the host; see configure_logging().
    """

    def __init__(
        self,
        max_history: Optional[int] = None,
        unavailable_reason: str = "Conditions not met",
    ):
        if max_history is not None and max_history < 0:
            raise ValueError("max_history must be >= 0 or None")

        # None keeps every entry; otherwise the oldest entries are dropped
        self.max_history = max_history
        self.unavailable_reason = unavailable_reason


def configure_logging(
    level: int | str = logging.INFO,
    fmt: str = "%(asctime)s %(levelname)s %(name)s: %(message)s",
) -> logging.Logger:
    """
    Attach a stream handler to the package logger.

    Intended for hosts and scripts; the library never configures
    logging on import or when a runner is built. Calling it twice does
    not add a second handler.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)

    if not any(getattr(h, "_branchline", False) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(fmt))
        handler._branchline = True
        logger.addHandler(handler)

    return logger
