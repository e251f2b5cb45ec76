"""Root conftest.py for the hacienda test suite.

This file contains project-wide fixtures and pytest configuration.
"""

from collections.abc import AsyncGenerator, Callable

import httpx
import pytest

from hacienda.api.http_client import HttpClient
from hacienda.auth.credentials import Credentials
from hacienda.auth.environment import SANDBOX_CONFIG, EnvironmentConfig
from hacienda.auth.token_manager import TokenManager
from tests.fixtures.hacienda_fakes import FakeClock, MockRouter, token_payload


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "unit: Unit tests that test individual components in isolation"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests that test multiple components"
    )


@pytest.fixture
def fake_clock() -> FakeClock:
    """Provide a fake clock starting at an arbitrary monotonic instant.

    Returns:
        FakeClock: Clock whose sleeps advance time without waiting.
    """
    return FakeClock()


@pytest.fixture
def env_config() -> EnvironmentConfig:
    """Provide the sandbox environment configuration."""
    return SANDBOX_CONFIG


@pytest.fixture
def idp_path(env_config: EnvironmentConfig) -> str:
    """Path of the IDP token endpoint, as seen by the mock router."""
    return httpx.URL(env_config.idp_token_url).path


@pytest.fixture
def api_path(env_config: EnvironmentConfig) -> Callable[[str], str]:
    """Build the full URL path of an endpoint relative to the API base URL."""
    base = httpx.URL(env_config.api_base_url).path.rstrip("/")

    def build(path: str) -> str:
        return f"{base}{path}"

    return build


@pytest.fixture
def router(idp_path: str) -> MockRouter:
    """Provide a mock router whose IDP endpoint issues a long-lived token."""
    mock_router = MockRouter()
    mock_router.add("POST", idp_path, httpx.Response(200, json=token_payload()))
    return mock_router


@pytest.fixture
def credentials() -> Credentials:
    """Provide valid IDP credentials."""
    return Credentials(username="cpj-02-3101234567", password="s3cret")


@pytest.fixture
async def httpx_client(router: MockRouter) -> AsyncGenerator[httpx.AsyncClient]:
    """Provide an httpx client wired to the mock router."""
    async with httpx.AsyncClient(transport=router.transport()) as client:
        yield client


@pytest.fixture
def token_manager(
    env_config: EnvironmentConfig,
    httpx_client: httpx.AsyncClient,
    fake_clock: FakeClock,
) -> TokenManager:
    """Provide an unauthenticated token manager on the fake clock."""
    return TokenManager(env_config, httpx_client, fake_clock)


@pytest.fixture
async def api_client(
    env_config: EnvironmentConfig,
    token_manager: TokenManager,
    httpx_client: httpx.AsyncClient,
    fake_clock: FakeClock,
    credentials: Credentials,
) -> HttpClient:
    """Provide an authenticated API client with rate limiting disabled."""
    await token_manager.authenticate(credentials)
    return HttpClient(
        env_config,
        token_manager,
        http_client=httpx_client,
        rate_limiter_options=False,
        clock=fake_clock,
    )
