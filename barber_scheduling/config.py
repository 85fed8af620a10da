# barber_scheduling/config.py

import pytz
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppConfig(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="BARBER_",
        env_file=".env",
        extra="ignore",
    )

    database_url: str = "sqlite:///./barber.db"
    sql_echo: bool = False

    # Used when a request does not declare a timezone, and for the first settings row
    business_timezone: str = "America/Sao_Paulo"

    # Serializable unit of work bounds
    tx_max_wait_seconds: float = 5.0
    tx_timeout_seconds: float = 10.0

    settings_cache_ttl_seconds: float = 60.0

    log_level: str = "INFO"

    @field_validator("business_timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        if value not in pytz.all_timezones_set:
            raise ValueError(f"Unknown timezone: {value}")
        return value

    @field_validator("settings_cache_ttl_seconds")
    @classmethod
    def _bounded_ttl(cls, value: float) -> float:
        # business-hours rules must never be served staler than a minute
        if not 0 <= value <= 60:
            raise ValueError("settings_cache_ttl_seconds must be between 0 and 60")
        return value


config = AppConfig()
