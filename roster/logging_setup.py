import logging

from .config import get_settings


def _resolve_log_level(value: str) -> int:
    level = logging.getLevelName(value.upper())
    return level if isinstance(level, int) else logging.INFO


def configure_logging(level_name: str | None = None) -> logging.Logger:
    """Configure root logging once and return the package logger."""
    if level_name is None:
        level_name = get_settings().log_level
    log_level = _resolve_log_level(level_name)

    if not logging.getLogger().handlers:
        logging.basicConfig(
            level=log_level,
            format="%(asctime)s %(levelname)s %(name)s %(message)s",
        )
    logger = logging.getLogger("roster")
    logger.setLevel(log_level)
    return logger
