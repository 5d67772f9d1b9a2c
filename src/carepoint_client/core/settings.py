from __future__ import annotations

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    api_base_url: str = Field(
        default="http://localhost:5000/api", alias="CAREPOINT_API_BASE_URL"
    )
    timeout_seconds: float = Field(
        default=30.0,
        alias="CAREPOINT_TIMEOUT_SECONDS",
        ge=1.0,
        le=120.0,
    )
    auth_token: str | None = Field(default=None, alias="CAREPOINT_AUTH_TOKEN")
    retry_attempts: int = Field(default=3, alias="CAREPOINT_RETRY_ATTEMPTS", ge=1)
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    catalog_page_limit: int = Field(default=24, alias="CATALOG_PAGE_LIMIT", ge=1)
    orders_page_limit: int = Field(default=10, alias="ORDERS_PAGE_LIMIT", ge=1)

    # Cache settings (seconds)
    cache_catalog_ttl: float = Field(default=300, alias="CACHE_CATALOG_TTL", ge=0)
    cache_categories_ttl_factor: int = Field(
        default=5, alias="CACHE_CATEGORIES_TTL_FACTOR", ge=1
    )
    cache_catalog_maxsize: int = Field(default=32, alias="CACHE_CATALOG_MAXSIZE", ge=1)

    # Polling intervals (seconds)
    poll_unread_count_seconds: float = Field(
        default=30, alias="POLL_UNREAD_COUNT_SECONDS", gt=0
    )
    poll_orders_seconds: float = Field(default=15, alias="POLL_ORDERS_SECONDS", gt=0)
    poll_order_details_seconds: float = Field(
        default=10, alias="POLL_ORDER_DETAILS_SECONDS", gt=0
    )

    @field_validator("api_base_url", mode="before")
    @classmethod
    def normalize_api_base_url(cls, value: str) -> str:
        return str(value).rstrip("/")

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, value: str) -> str:
        return str(value).strip().upper() or "INFO"

    @property
    def cache_categories_ttl(self) -> float:
        return self.cache_catalog_ttl * self.cache_categories_ttl_factor


@lru_cache
def get_settings() -> Settings:
    return Settings()  # type: ignore[call-arg]


__all__ = ["Settings", "get_settings"]
