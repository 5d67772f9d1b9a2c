from __future__ import annotations

import pytest

from carepoint_client.core.settings import Settings
from carepoint_client.feedback import Feedback
from tests.factories import API_BASE, FakeClock, StubClient


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        CAREPOINT_API_BASE_URL=f"{API_BASE}/",
        CAREPOINT_AUTH_TOKEN="token-123",
        CAREPOINT_RETRY_ATTEMPTS=1,
        CAREPOINT_TIMEOUT_SECONDS=5.0,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def stub_client() -> StubClient:
    return StubClient()


@pytest.fixture
def feedback() -> Feedback:
    return Feedback()
