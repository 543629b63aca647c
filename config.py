import os
from dataclasses import dataclass
from typing import Optional
from dotenv import load_dotenv

load_dotenv()


def _flag(name: str, default: str = "False") -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


@dataclass
class Settings:
    # API settings
    api_host: str = os.getenv("API_HOST", "127.0.0.1")
    api_port: int = int(os.getenv("API_PORT", "8000"))
    api_key: str = os.getenv("API_KEY", "super-secret-key")

    # Storage settings
    data_file: str = os.getenv("LIBRARY_DB_FILE", "library.db")
    seed_file: Optional[str] = os.getenv("LIBRARY_SEED_FILE")  # None -> bundled lib-data.json
    storage_prefix: str = os.getenv("LIBRARY_STORAGE_PREFIX", "libraryData")

    # Borrowing rules (the 1-30 day range itself is fixed in libdesk.workflow)
    default_borrow_days: int = int(os.getenv("DEFAULT_BORROW_DAYS", "14"))

    # Pagination settings
    default_page_size: int = int(os.getenv("DEFAULT_PAGE_SIZE", "10"))
    max_page_size: int = int(os.getenv("MAX_PAGE_SIZE", "100"))

    # Application settings
    app_name: str = os.getenv("APP_NAME", "Library Desk")
    app_version: str = os.getenv("APP_VERSION", "1.0.0")
    debug: bool = _flag("DEBUG")
    environment: str = os.getenv("ENVIRONMENT", "development")
    log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()


settings = Settings()
