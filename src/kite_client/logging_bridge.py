"""Bridge the stdlib logging used by httpx into loguru"""

import logging

from loguru import logger

BRIDGED_LOGGERS = ("httpx",)

_installed = False


class _LoguruHandler(logging.Handler):
    """Forward stdlib log records to loguru"""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno
        logger.opt(depth=6, exception=record.exc_info).log(
            level, record.getMessage()
        )


def install_logging_bridge() -> None:
    """Bridge stdlib logging used by httpx into loguru once per process."""
    global _installed
    if _installed:
        return

    handler = _LoguruHandler()
    for name in BRIDGED_LOGGERS:
        std_logger = logging.getLogger(name)
        std_logger.setLevel(logging.DEBUG)
        std_logger.addHandler(handler)
        std_logger.propagate = False

    _installed = True
