import sys
import logging
from typing import Any

from loguru import logger

from raid_roster.config.settings import settings

SENSITIVE_KEYS = ["key", "token", "password", "secret", "authorization"]


def _mask(value: str) -> str:
    if len(value) > 8:
        return value[:4] + "****" + value[-4:]
    return "********"


def sensitive_data_filter(record: dict[str, Any]) -> bool:
    """Filter function to mask sensitive data in log records."""

    def mask_value(value: Any) -> Any:
        if isinstance(value, dict):
            return {
                k: (
                    _mask(v)
                    if isinstance(v, str)
                    and any(sk in k.lower() for sk in SENSITIVE_KEYS)
                    else mask_value(v)
                )
                for k, v in value.items()
            }
        if isinstance(value, list):
            return [mask_value(item) for item in value]
        return value

    if "extra" in record and isinstance(record["extra"], dict):
        record["extra"] = mask_value(record["extra"])

    # Known secrets from settings never reach a sink verbatim
    secrets = (
        settings.blizzard_client_secret,
        settings.warcraft_logs_client_secret,
    )
    for original in secrets:
        if original and original in record["message"]:
            record["message"] = record["message"].replace(original, "********")

    return True


def setup_logging() -> None:
    """Configures Loguru logger based on application settings."""
    logger.remove()

    logger.add(
        sys.stderr,
        level=settings.log_level.upper(),
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
            "<level>{message}</level>"
        ),
        colorize=True,
        backtrace=True,
        diagnose=True,
        filter=sensitive_data_filter,
    )

    logger.info(f"Logging initialized with level: {settings.log_level}")

    # Intercept standard logging messages (httpx logs through it)
    class InterceptHandler(logging.Handler):
        def emit(self, record: logging.LogRecord) -> None:
            try:
                level = logger.level(record.levelname).name
            except ValueError:
                level = record.levelno

            frame, depth = logging.currentframe(), 2
            while frame.f_code.co_filename == logging.__file__:
                frame = frame.f_back
                depth += 1

            logger.opt(depth=depth, exception=record.exc_info).log(
                level, record.getMessage()
            )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    logger.info("Standard logging intercepted.")
