import os
from typing import Optional, Tuple
from dotenv import load_dotenv

load_dotenv()

APP_VERSION = "1.0.0"

DEFAULT_CRITICAL_MARKERS = ("critical", "abnormal-high", "abnormal-low", "failed")

STORE_BACKENDS = ("sql", "memory")


def parse_markers(raw: Optional[str]) -> Tuple[str, ...]:
    """Split a comma separated marker list, dropping blanks."""
    if raw is None:
        return DEFAULT_CRITICAL_MARKERS
    return tuple(part.strip() for part in raw.split(",") if part.strip())


def _database_url() -> str:
    # Check if we're in testing mode
    if os.getenv("TESTING") == "True":
        return "sqlite+aiosqlite:///./test.db"
    explicit = os.getenv("DATABASE_URL")
    if explicit:
        return explicit
    user = os.getenv("POSTGRES_USER", "postgres")
    password = os.getenv("POSTGRES_PASSWORD", "postgres")
    db = os.getenv("POSTGRES_DB", "clinic_db")
    host = os.getenv("POSTGRES_HOST", "db")
    return f"postgresql+asyncpg://{user}:{password}@{host}/{db}"


class Settings:
    """Runtime settings read from the environment (and `.env`)."""

    def __init__(self):
        self.database_url = _database_url()
        self.store_backend = os.getenv("STORE_BACKEND", "sql").lower()
        if self.store_backend not in STORE_BACKENDS:
            raise ValueError(
                f"Unknown STORE_BACKEND {self.store_backend!r}, expected one of {STORE_BACKENDS}"
            )
        self.critical_markers = parse_markers(os.getenv("CRITICAL_MARKERS"))
        self.sql_echo = os.getenv("SQL_ECHO", "False") == "True"
        self.db_connect_retries = int(os.getenv("DB_CONNECT_RETRIES", "5"))
        if self.db_connect_retries < 1:
            raise ValueError(
                f"DB_CONNECT_RETRIES must be at least 1, got {self.db_connect_retries}"
            )
        self.db_retry_interval = float(os.getenv("DB_RETRY_INTERVAL", "5"))
        self.log_level = os.getenv("LOG_LEVEL", "INFO").upper()


settings = Settings()
