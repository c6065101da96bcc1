from __future__ import annotations

import logging
import logging.handlers

from examnest.core.config import Settings


LOG_FORMAT = "%(asctime)s - [%(levelname)s] - %(name)s - %(message)s"
CONSOLE_FORMAT = "%(asctime)s - [%(levelname)s] - %(message)s"


def configure_logging(settings: Settings, *, console: bool = False) -> logging.Logger:
    """Attach the rotating file handler (and optionally a console handler) to the package logger.

    The TUI owns the terminal, so only CLI runs ask for the console handler.
    Calling this twice does not add duplicate handlers.
    """
    logger = logging.getLogger("examnest")
    if logger.handlers:
        return logger

    logger.setLevel(settings.log_level.upper())
    logger.propagate = False

    settings.state_path.mkdir(parents=True, exist_ok=True)
    file_handler = logging.handlers.RotatingFileHandler(
        settings.log_path,
        maxBytes=2 * 1024 * 1024,
        backupCount=3,
        encoding="utf-8",
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(file_handler)

    if console:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.WARNING)
        console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt="%H:%M:%S"))
        logger.addHandler(console_handler)

    logger.debug("Logging configured (file: %s)", settings.log_path)
    return logger
