from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "crewlink-api"
    environment: str = "dev"
    api_key_header: str = "X-API-Key"
    gateway_api_key: str | None = None
    database_url: str | None = None
    database_pool_min_size: int = 1
    database_pool_max_size: int = 10
    hours_per_workday: int = 8
    skill_cache_ttl_seconds: float = 3600.0
    notification_webhook_url: str | None = None
    notification_timeout_seconds: float = 5.0
    otel_enabled: bool = True
    otel_service_name: str = "crewlink-api"
    otel_exporter_otlp_endpoint: str | None = None
    otel_trace_sample_ratio: float = 1.0

    model_config = SettingsConfigDict(env_prefix="CREWLINK_", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    return Settings()
