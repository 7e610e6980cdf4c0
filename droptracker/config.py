from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    env: str = "dev"
    database_url: str = "sqlite:///./data/droptracker.db"

    scheduler_enabled: bool = True
    price_check_interval_hours: int = 12
    ecredit_processing_interval_minutes: int = 60
    stale_submission_minutes: int = 30

    # Fare sources
    flightlabs_api_key: str = ""
    flightlabs_base_url: str = "https://api.flightlabs.io"
    serpapi_key: str = ""
    primary_fare_timeout_seconds: float = 5.0
    secondary_fare_timeout_seconds: float = 10.0
    fare_currency: str = "USD"

    # Airline submission channels
    api_channel_timeout_seconds: float = 15.0
    automation_channel_timeout_seconds: float = 120.0
    api_channel_success_rate: float = 0.1
    automation_channel_success_rate: float = 0.7
    ecredit_validity_days: int = 365

    ntfy_enabled: bool = False
    ntfy_url: str = "http://localhost:8080"
    ntfy_topic: str = "droptracker"
    base_url: str = "http://localhost:8000"

    def model_post_init(self, __context):
        if self.env == "prod" and self.database_url.startswith("sqlite"):
            raise ValueError(
                "Production requires explicit DATABASE_URL (not SQLite)"
            )
        for name in ("api_channel_success_rate", "automation_channel_success_rate"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be between 0 and 1, got {value}")

    class Config:
        env_file = ".env"


@lru_cache
def get_settings() -> Settings:
    return Settings()
