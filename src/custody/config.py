"""Environment-driven settings.

Values are read from the process environment after loading a local
``.env`` file, if present.

Environment Variables:
    - DATABASE_URL: PostgreSQL connection string (required for the Postgres store)
    - DB_POOL_MIN_SIZE / DB_POOL_MAX_SIZE: asyncpg pool bounds
    - DB_COMMAND_TIMEOUT: default query timeout in seconds
    - IMPORT_DEFAULT_CATEGORY: category given to new items with no inferable category
    - IMPORT_WARN_ROWS: batch size above which imports report a warning
    - LOG_LEVEL: root logging level for the CLI
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from .common.exceptions import ConfigurationError

load_dotenv()

DEFAULT_CATEGORY_NAME = "General"


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the custody library and CLI."""

    database_url: Optional[str] = None
    db_pool_min_size: int = 2
    db_pool_max_size: int = 10
    db_command_timeout: float = 60.0
    import_default_category: str = DEFAULT_CATEGORY_NAME
    import_warn_rows: int = 1000
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables.

        Raises:
            ConfigurationError: If a numeric variable cannot be parsed
        """
        try:
            return cls(
                database_url=os.getenv("DATABASE_URL") or None,
                db_pool_min_size=int(os.getenv("DB_POOL_MIN_SIZE", "2")),
                db_pool_max_size=int(os.getenv("DB_POOL_MAX_SIZE", "10")),
                db_command_timeout=float(os.getenv("DB_COMMAND_TIMEOUT", "60")),
                import_default_category=os.getenv(
                    "IMPORT_DEFAULT_CATEGORY", DEFAULT_CATEGORY_NAME
                ).strip() or DEFAULT_CATEGORY_NAME,
                import_warn_rows=int(os.getenv("IMPORT_WARN_ROWS", "1000")),
                log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid numeric setting: {e}", cause=e)

    def require_database_url(self) -> str:
        """Return the database URL or fail with a configuration error."""
        if not self.database_url:
            raise ConfigurationError(
                "DATABASE_URL environment variable is required",
                missing_keys=["DATABASE_URL"],
            )
        return self.database_url
