"""Application settings for the CardStack backend.

Settings are read from environment variables (optionally via a .env file)
and cached for the life of the process.
"""

import os
from dataclasses import dataclass, field
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()


DEFAULT_DATABASE_URL = "sqlite:///./cardstack.db"
DEFAULT_USER_HEADER = "X-Auth-User-Id"
DEFAULT_EMAIL_HEADER = "X-Auth-User-Email"
DEFAULT_CORS_ORIGINS = ("http://localhost:3000", "http://localhost:5173")


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("true", "1", "yes")


@dataclass(frozen=True)
class Settings:
    """Runtime configuration for the API service.

    Attributes:
        database_url: SQLAlchemy database URL.
        auth_user_header: Header carrying the identity provider's subject id.
        auth_email_header: Header carrying the identity provider's email.
        cors_origins: Origins allowed by the CORS middleware.
        log_level: Root logging level.
        log_to_file: Whether rotating JSON log files are written.
    """

    database_url: str = DEFAULT_DATABASE_URL
    auth_user_header: str = DEFAULT_USER_HEADER
    auth_email_header: str = DEFAULT_EMAIL_HEADER
    cors_origins: tuple[str, ...] = field(default=DEFAULT_CORS_ORIGINS)
    log_level: str = "INFO"
    log_to_file: bool = True


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings from environment variables.

    Returns:
        Settings with defaults applied for anything not set.
    """
    origins = os.getenv("CORS_ORIGINS")
    return Settings(
        database_url=os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL),
        auth_user_header=os.getenv("AUTH_USER_HEADER", DEFAULT_USER_HEADER),
        auth_email_header=os.getenv("AUTH_EMAIL_HEADER", DEFAULT_EMAIL_HEADER),
        cors_origins=(
            tuple(o.strip() for o in origins.split(",") if o.strip())
            if origins
            else DEFAULT_CORS_ORIGINS
        ),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        log_to_file=_parse_bool(os.getenv("LOG_TO_FILE", "true")),
    )


def clear_settings_cache() -> None:
    """Clear the cached settings.

    Useful for testing when environment variables change.
    """
    get_settings.cache_clear()
