import logging
import sys
from typing import Optional

import loguru


class InterceptHandler(logging.Handler):
    """Forwards records from the standard logging module (uvicorn, httpx) to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = loguru.logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find the caller outside the logging module so {name}:{function} stay useful.
        frame, depth = logging.currentframe(), 2
        while frame is not None and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        loguru.logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def intercept_std_logging(level: str = "INFO") -> None:
    logging.basicConfig(handlers=[InterceptHandler()], level=level, force=True)
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        std_logger = logging.getLogger(name)
        std_logger.handlers = []
        std_logger.propagate = True


def setup_logger(log_level: str = "INFO", log_file: Optional[str] = None):
    """
    Set up the application logger with a console handler and an optional file handler.

    Args:
        log_level (str): The minimum level of logs to display on the console.
        log_file (str): Optional file to which DEBUG-and-above logs are written.
    """
    loguru.logger.remove()

    loguru.logger.add(
        sys.stderr,
        level=log_level,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        colorize=True,
    )

    if log_file:
        loguru.logger.add(
            log_file,
            level="DEBUG",
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
            rotation="10 MB",
            retention="7 days",
            enqueue=True,
            backtrace=True,
            diagnose=False,  # request bodies may hold file contents and tokens
        )

    return loguru.logger


logger = setup_logger()
