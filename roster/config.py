import logging
import os
import threading
from urllib.parse import urlparse

from dotenv import load_dotenv
from pydantic import BaseModel, Field


load_dotenv()

_ASYNC_DATABASE_SCHEMES = {"sqlite+aiosqlite", "postgresql+asyncpg"}
_TRUE_WORDS = {"1", "true", "yes", "on"}
_FALSE_WORDS = {"0", "false", "no", "off"}


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE_WORDS:
        return True
    if value in _FALSE_WORDS:
        return False
    raise ValueError(f"{name} must be a boolean value")


def _parse_int(name: str, raw: str) -> int:
    try:
        return int(raw.strip())
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer") from exc


class Settings(BaseModel):
    app_name: str = Field(default="Roster Core")
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")
    database_url: str = Field(default="sqlite+aiosqlite:///./roster.db")
    store_latency_ms: int = Field(default=0)
    import_error_preview_limit: int = Field(default=5)
    default_role: str = Field(default="viewer")

    @classmethod
    def from_env(cls) -> "Settings":
        from .auth.permission_catalog import Role

        fields = cls.model_fields

        debug = _parse_bool("DEBUG", os.getenv("DEBUG", str(fields["debug"].default)))

        log_level = os.getenv("LOG_LEVEL", fields["log_level"].default).strip().upper()
        if not isinstance(logging.getLevelName(log_level), int):
            raise ValueError(f"LOG_LEVEL '{log_level}' is not a logging level name")

        database_url = os.getenv("DATABASE_URL", fields["database_url"].default).strip()
        if not database_url:
            raise ValueError("DATABASE_URL must not be empty")
        parsed_db = urlparse(database_url)
        if parsed_db.scheme not in _ASYNC_DATABASE_SCHEMES:
            raise ValueError(
                "DATABASE_URL must use an async driver: "
                + ", ".join(sorted(_ASYNC_DATABASE_SCHEMES))
            )
        if parsed_db.scheme == "postgresql+asyncpg" and not parsed_db.hostname:
            raise ValueError("DATABASE_URL must include hostname")

        store_latency_ms = _parse_int(
            "STORE_LATENCY_MS",
            os.getenv("STORE_LATENCY_MS", str(fields["store_latency_ms"].default)),
        )
        if store_latency_ms < 0:
            raise ValueError("STORE_LATENCY_MS must be greater than or equal to 0")

        preview_limit = _parse_int(
            "IMPORT_ERROR_PREVIEW_LIMIT",
            os.getenv(
                "IMPORT_ERROR_PREVIEW_LIMIT",
                str(fields["import_error_preview_limit"].default),
            ),
        )
        if preview_limit <= 0:
            raise ValueError("IMPORT_ERROR_PREVIEW_LIMIT must be greater than 0")

        default_role = os.getenv("DEFAULT_ROLE", fields["default_role"].default).strip().lower()
        if default_role not in {role.value for role in Role}:
            raise ValueError(
                f"DEFAULT_ROLE '{default_role}' is not a known role. "
                f"Must be one of: {', '.join(role.value for role in Role)}"
            )

        return cls(
            app_name=os.getenv("APP_NAME", fields["app_name"].default),
            debug=debug,
            log_level=log_level,
            database_url=database_url,
            store_latency_ms=store_latency_ms,
            import_error_preview_limit=preview_limit,
            default_role=default_role,
        )


_settings_instance: Settings | None = None
_settings_lock = threading.Lock()


def get_settings() -> Settings:
    """Get settings instance, creating it on first access.

    Importing this module never validates the environment; validation happens
    the first time settings are read.

    Returns:
        Settings instance

    Raises:
        ValueError: If an environment variable is present but invalid
    """
    global _settings_instance

    if _settings_instance is not None:
        return _settings_instance

    with _settings_lock:
        if _settings_instance is None:
            _settings_instance = Settings.from_env()

    return _settings_instance


def reset_settings() -> None:
    """Drop the cached instance so the next read re-parses the environment."""
    global _settings_instance
    with _settings_lock:
        _settings_instance = None


class _SettingsProxy:
    """Proxy to defer settings creation until first attribute access."""

    def __getattr__(self, name: str):
        return getattr(get_settings(), name)


settings = _SettingsProxy()  # type: ignore[assignment]
