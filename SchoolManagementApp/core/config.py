"""Environment-driven runtime settings consumed by the Django settings module."""

import os
from dataclasses import dataclass


def _env_bool(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    secret_key: str = os.getenv("SCHOOL_SECRET_KEY", "insecure-development-secret-key-change-me")
    debug: bool = _env_bool("SCHOOL_DEBUG")
    db_path: str = os.getenv("SCHOOL_DB_PATH", "school.sqlite3")
    log_level: str = os.getenv("SCHOOL_LOG_LEVEL", "INFO")
    report_ingest_rate: str = os.getenv("SCHOOL_REPORT_INGEST_RATE", "120/hour")
    allowed_hosts: tuple[str, ...] = tuple(
        h.strip() for h in os.getenv("SCHOOL_ALLOWED_HOSTS", "localhost,127.0.0.1").split(",") if h.strip()
    )

settings = Settings()
