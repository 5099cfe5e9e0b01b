# carwash/config.py

from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parents[1]


class Settings(BaseSettings):
    database_url: str = "sqlite:///./carwash.db"
    redis_url: str = "redis://localhost:6379/0"
    redis_socket_timeout: float = 2.0

    # Availability cache
    cache_enabled: bool = True
    availability_cache_ttl: int = 300
    availability_refresh_threshold: int = 60
    cache_warmup_days: int = 7

    # Reservation engine
    lock_ttl_seconds: int = 10
    lock_wait_seconds: float = 3.0
    transaction_timeout_seconds: float = 10.0
    cancellation_deadline_hours: int = 24

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        extra="ignore",
    )

    @property
    def resolved_database_url(self) -> str:
        url = self.database_url
        if url.startswith("sqlite:///./"):
            # Relative SQLite paths are resolved against the project root
            relative_path = url.replace("sqlite:///./", "")
            absolute_path = BASE_DIR / relative_path
            return f"sqlite:///{absolute_path}"
        return url


settings = Settings()
