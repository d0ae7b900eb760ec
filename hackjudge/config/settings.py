"""
Settings

Centralized runtime configuration for the judging backend.
Every setting is loaded from an environment variable; a .env file at the
project root is read first when present.
"""
import os
from pathlib import Path

from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
ENV_FILE = PROJECT_ROOT / ".env"

load_dotenv(dotenv_path=ENV_FILE)


def get_bool_env(key: str, default: bool = False) -> bool:
    """Get a boolean value from environment variable."""
    value = os.getenv(key, str(default)).lower()
    return value in ('true', '1', 'yes', 'on', 'enabled')


def get_int_env(key: str, default: int) -> int:
    """Get an integer value from environment variable, falling back on garbage."""
    try:
        return int(os.getenv(key, str(default)))
    except ValueError:
        return default


class Settings:
    """
    Application settings.

    To add a new setting:
    1. Add it here as a class property
    2. Load it from environment variable
    3. Use it in your code
    """

    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./hackjudge.db")
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
    ALLOWED_ORIGINS: list = [o for o in os.getenv("ALLOWED_ORIGINS", "").split(",") if o]

    # Recompute the team aggregate after every final evaluation submission
    FEATURE_AGGREGATE_ON_SUBMIT: bool = get_bool_env('FEATURE_AGGREGATE_ON_SUBMIT', True)

    # Pagination
    DEFAULT_PAGE_SIZE: int = get_int_env('DEFAULT_PAGE_SIZE', 10)
    LEADERBOARD_PAGE_SIZE: int = get_int_env('LEADERBOARD_PAGE_SIZE', 50)

    @classmethod
    def is_development(cls) -> bool:
        return cls.ENVIRONMENT == "development"


settings = Settings()
