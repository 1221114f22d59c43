import os
from functools import lru_cache
from pathlib import Path


class Settings:
    def __init__(
        self,
        database_url: str,
        timezone: str,
        auth_secret: str,
        token_max_age_hours: int,
        log_level: str,
        scheduler_enabled: bool,
        default_page_size: int,
    ) -> None:
        self.database_url = database_url
        self.timezone = timezone
        self.auth_secret = auth_secret
        self.token_max_age_hours = token_max_age_hours
        self.log_level = log_level
        self.scheduler_enabled = scheduler_enabled
        self.default_page_size = default_page_size


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("BUDGETMATE_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    data_dir = _ensure_data_dir()
    default_db = data_dir / "budgetmate.db"
    database_url = os.getenv("BUDGETMATE_DATABASE_URL", f"sqlite:///{default_db}")
    timezone = os.getenv("BUDGETMATE_TIMEZONE", "UTC")
    auth_secret = os.getenv(
        "BUDGETMATE_AUTH_SECRET",
        "3f9c1d7e52b84a06a1c2e9d44b7f18c0d25e6a93f0b1c47d8e2a5b6c9d0e1f2a",
    )
    token_max_age_hours = int(os.getenv("BUDGETMATE_TOKEN_MAX_AGE_HOURS", "24"))
    log_level = os.getenv("BUDGETMATE_LOG_LEVEL", "INFO").upper()
    scheduler_enabled = _env_flag("BUDGETMATE_SCHEDULER_ENABLED", "1")
    default_page_size = int(os.getenv("BUDGETMATE_DEFAULT_PAGE_SIZE", "10"))
    return Settings(
        database_url=database_url,
        timezone=timezone,
        auth_secret=auth_secret,
        token_max_age_hours=token_max_age_hours,
        log_level=log_level,
        scheduler_enabled=scheduler_enabled,
        default_page_size=default_page_size,
    )
