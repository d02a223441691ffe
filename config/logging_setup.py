import sys
import logging
from typing import Any, Optional

from loguru import logger

from .settings import settings


SENSITIVE_KEYS = ["password", "secret", "token", "private_key"]


def sensitive_data_filter(record: dict[str, Any]) -> bool:
    """Mask sensitive values passed to the logger through bind() / extra."""
    extra = record.get("extra")
    if isinstance(extra, dict):
        for key, value in extra.items():
            if any(sk in key.lower() for sk in SENSITIVE_KEYS):
                if isinstance(value, str) and len(value) > 8:
                    extra[key] = value[:2] + "****" + value[-2:]
                else:
                    extra[key] = "********"
    return True


class InterceptHandler(logging.Handler):
    """Route standard logging records (streamlit, urllib3, gspread) into loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find caller from where originated the logged message
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def setup_logging(level: Optional[str] = None) -> None:
    """Configures Loguru logger based on application settings."""
    level = (level or settings.log_level).upper()
    logger.remove()  # Remove default handler

    logger.add(
        sys.stderr,
        level=level,
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
            "<level>{message}</level>"
        ),
        colorize=True,
        backtrace=True,
        diagnose=False,
        filter=sensitive_data_filter,
    )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    logger.debug(f"Logging initialized with level: {level}")
