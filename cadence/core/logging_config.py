# cadence/core/logging_config.py
import logging

from cadence.core.config import get_settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# Third-party loggers that are too chatty at INFO for a scheduler service.
NOISY_LOGGERS = ("httpx", "httpcore", "aiosqlite", "sqlalchemy.engine")


def configure_logging(level: str | None = None) -> None:
    """
    Configure root logging for the service.

    The level defaults to settings.LOG_LEVEL. Handlers are only installed if
    the root logger has none yet, so test runners and process managers that
    already configured logging keep their setup.
    """
    if level is None:
        level = get_settings().LOG_LEVEL

    root_level = getattr(logging, str(level).upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(root_level)

    if not root_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root_logger.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(root_level, logging.WARNING))
