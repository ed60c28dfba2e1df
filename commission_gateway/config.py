"""Configuration management using Pydantic Settings"""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables"""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # External Services
    bin_lookup_url: str = "https://lookup.binlist.net/"
    exchange_rates_url: str = "https://api.exchangerate.host/"
    exchange_rates_api_key: str = ""

    # Commission
    reference_currency: str = "EUR"

    # Cache
    cache_backend: Literal["filesystem", "memory"] = "filesystem"
    cache_dir: str = ".cache/commission_gateway"

    # Service
    service_name: str = "commission-gateway"
    log_level: str = "INFO"

    # HTTP Client
    http_timeout_seconds: float = 15.0


@lru_cache
def get_settings() -> Settings:
    return Settings()
