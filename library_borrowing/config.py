import os
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv()


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


@dataclass
class Settings:
    # Database settings
    database_file: str = os.getenv("LIBRARY_DB_FILE", "library.db")
    database_timeout: float = float(os.getenv("DATABASE_TIMEOUT", "5.0"))
    database_wal: bool = _env_flag("DATABASE_WAL", "True")

    # Borrowing rules
    max_active_borrowings: int = int(os.getenv("MAX_ACTIVE_BORROWINGS", "5"))
    default_loan_days: int = int(os.getenv("DEFAULT_LOAN_DAYS", "14"))

    # Logging
    log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()


settings = Settings()
