from __future__ import annotations

import pytest
from pydantic import ValidationError

from carepoint_client.core.settings import Settings, get_settings


def test_defaults(monkeypatch) -> None:
    monkeypatch.delenv("CAREPOINT_API_BASE_URL", raising=False)
    monkeypatch.delenv("CAREPOINT_AUTH_TOKEN", raising=False)
    settings = Settings(_env_file=None)

    assert settings.api_base_url == "http://localhost:5000/api"
    assert settings.auth_token is None
    assert settings.cache_catalog_ttl == 300
    assert settings.cache_categories_ttl == 1500
    assert settings.catalog_page_limit == 24


def test_reads_environment(monkeypatch) -> None:
    monkeypatch.setenv("CAREPOINT_API_BASE_URL", "https://clinic.example/api///")
    monkeypatch.setenv("CAREPOINT_AUTH_TOKEN", "abc")
    monkeypatch.setenv("LOG_LEVEL", " debug ")
    monkeypatch.setenv("CACHE_CATALOG_TTL", "60")

    settings = Settings(_env_file=None)

    assert settings.api_base_url == "https://clinic.example/api"
    assert settings.auth_token == "abc"
    assert settings.log_level == "DEBUG"
    assert settings.cache_categories_ttl == 300


@pytest.mark.parametrize(
    "overrides",
    [
        {"CAREPOINT_TIMEOUT_SECONDS": 0.5},
        {"CAREPOINT_RETRY_ATTEMPTS": 0},
        {"POLL_ORDERS_SECONDS": 0},
    ],
)
def test_rejects_out_of_range_values(overrides) -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, **overrides)


def test_get_settings_is_cached() -> None:
    get_settings.cache_clear()
    try:
        assert get_settings() is get_settings()
    finally:
        get_settings.cache_clear()
