import os
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv()


def _flag(name: str, default: str = "False") -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


@dataclass
class Settings:
    # Database
    db_file: str = os.getenv("LENDING_DB_FILE", "lending.db")
    db_timeout: float = float(os.getenv("DB_TIMEOUT", "5"))

    # Lending rules
    borrow_limit: int = int(os.getenv("BORROW_LIMIT", "5"))
    fine_per_day: float = float(os.getenv("FINE_PER_DAY", "5000"))
    default_loan_days: int = int(os.getenv("DEFAULT_LOAN_DAYS", "14"))
    max_loan_days: int = int(os.getenv("MAX_LOAN_DAYS", "90"))

    # API
    api_host: str = os.getenv("API_HOST", "127.0.0.1")
    api_port: int = int(os.getenv("API_PORT", "8000"))
    api_key: str = os.getenv("API_KEY", "super-secret-key")

    # Application
    app_name: str = os.getenv("APP_NAME", "Library Lending Service")
    app_version: str = os.getenv("APP_VERSION", "1.0.0")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    debug: bool = _flag("DEBUG")


settings = Settings()
