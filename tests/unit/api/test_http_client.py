"""Unit tests for the authenticated Hacienda HTTP client."""

from collections.abc import Callable

import httpx
import orjson
import pytest

from hacienda.api.http_client import (
    NO_CONTENT,
    HttpClient,
    RequestOptions,
    parse_response_body,
)
from hacienda.api.rate_limiter import RateLimiterOptions
from hacienda.api.retry import RetryOptions
from hacienda.auth.credentials import Credentials
from hacienda.auth.environment import EnvironmentConfig
from hacienda.auth.token_manager import TokenManager
from hacienda.core.exceptions import ApiError, AuthenticationError, ErrorCode
from tests.fixtures.hacienda_fakes import FakeClock, MockRouter, json_of


@pytest.mark.unit
class TestParseResponseBody:
    """Tests for content-type driven body parsing."""

    def test_json(self) -> None:
        """Verify JSON bodies are decoded."""
        response = httpx.Response(200, json={"a": 1})
        assert parse_response_body(response) == {"a": 1}

    @pytest.mark.parametrize("content_type", ["application/xml", "text/xml"])
    def test_xml_returned_as_text(self, content_type: str) -> None:
        """Verify XML bodies are returned verbatim."""
        response = httpx.Response(
            200, content=b"<a>1</a>", headers={"Content-Type": content_type}
        )
        assert parse_response_body(response) == "<a>1</a>"

    def test_empty_body(self) -> None:
        """Verify an empty body yields the NO_CONTENT marker."""
        result = parse_response_body(httpx.Response(204))
        assert result is NO_CONTENT
        assert not result
        assert repr(result) == "NO_CONTENT"

    def test_unknown_type_tries_json(self) -> None:
        """Verify undeclared JSON is still decoded."""
        response = httpx.Response(
            200, content=b'{"ok": true}', headers={"Content-Type": "text/plain"}
        )
        assert parse_response_body(response) == {"ok": True}

    def test_unknown_type_falls_back_to_text(self) -> None:
        """Verify non-JSON text is returned as is."""
        response = httpx.Response(200, text="plain words")
        assert parse_response_body(response) == "plain words"

    def test_malformed_json_falls_back_to_text(self) -> None:
        """Verify a body declared JSON but malformed is returned as text."""
        response = httpx.Response(
            200, content=b"{broken", headers={"Content-Type": "application/json"}
        )
        assert parse_response_body(response) == "{broken"

    def test_utf8_json(self) -> None:
        """Verify JSON bodies are decoded from their UTF-8 bytes."""
        response = httpx.Response(
            200,
            content='{"nombre": "Pe\u00f1a"}'.encode(),
            headers={"Content-Type": "application/json"},
        )
        assert parse_response_body(response) == {"nombre": "Pe\u00f1a"}


@pytest.mark.unit
class TestHttpClient:
    """Tests for request building, error mapping and the pipeline."""

    @pytest.mark.asyncio
    async def test_get_injects_bearer_token(
        self,
        api_client: HttpClient,
        router: MockRouter,
        api_path: Callable[[str], str],
    ) -> None:
        """Verify GET requests carry the bearer token and Accept header."""
        router.add("GET", api_path("/comprobantes"), httpx.Response(200, json=[]))

        response = await api_client.get("/comprobantes", params={"limit": "5"})

        assert response.status == 200
        assert response.data == []
        request = router.requests[-1]
        assert request.headers["Authorization"] == "Bearer access-1"
        assert request.headers["Accept"] == "application/json"
        assert request.url.params["limit"] == "5"

    @pytest.mark.asyncio
    async def test_post_serializes_json(
        self,
        api_client: HttpClient,
        router: MockRouter,
        api_path: Callable[[str], str],
    ) -> None:
        """Verify POST bodies are sent as JSON."""
        router.add(
            "POST",
            api_path("/recepcion"),
            httpx.Response(202, headers={"Location": "/recepcion/1"}),
        )

        response = await api_client.post("/recepcion", {"clave": "1"})

        assert response.status == 202
        assert response.data is NO_CONTENT
        assert response.headers["Location"] == "/recepcion/1"
        request = router.requests[-1]
        assert request.headers["Content-Type"] == "application/json"
        assert json_of(request) == {"clave": "1"}
        assert request.content == orjson.dumps({"clave": "1"})

    @pytest.mark.asyncio
    async def test_skip_auth(
        self,
        api_client: HttpClient,
        router: MockRouter,
        api_path: Callable[[str], str],
    ) -> None:
        """Verify skip_auth omits the Authorization header."""
        router.add("GET", api_path("/public"), httpx.Response(200, json={}))

        await api_client.request(
            RequestOptions(method="GET", path="/public", skip_auth=True)
        )

        assert "Authorization" not in router.requests[-1].headers

    @pytest.mark.asyncio
    async def test_non_2xx_raises_api_error(
        self,
        api_client: HttpClient,
        router: MockRouter,
        api_path: Callable[[str], str],
    ) -> None:
        """Verify error responses raise ApiError with status and body."""
        router.add(
            "POST",
            api_path("/recepcion"),
            httpx.Response(400, json={"error": "clave invalida"}),
        )

        with pytest.raises(ApiError) as exc_info:
            await api_client.post("/recepcion", {"clave": "1"})

        error = exc_info.value
        assert error.status_code == 400
        assert error.response_body == {"error": "clave invalida"}
        assert "POST /recepcion failed (400)" in error.message
        assert "Bad request" in error.message
        assert router.count("POST", api_path("/recepcion")) == 1

    @pytest.mark.asyncio
    async def test_server_error_is_retried(
        self,
        api_client: HttpClient,
        router: MockRouter,
        api_path: Callable[[str], str],
        fake_clock: FakeClock,
    ) -> None:
        """Verify 5xx responses are retried before succeeding."""
        router.add(
            "GET",
            api_path("/recepcion/1"),
            httpx.Response(503, text="maintenance"),
            httpx.Response(200, json={"ok": True}),
        )

        response = await api_client.get("/recepcion/1")

        assert response.data == {"ok": True}
        assert router.count("GET", api_path("/recepcion/1")) == 2
        assert fake_clock.sleeps == [1.0]

    @pytest.mark.asyncio
    async def test_skip_retry(
        self,
        api_client: HttpClient,
        router: MockRouter,
        api_path: Callable[[str], str],
    ) -> None:
        """Verify skip_retry makes a single attempt."""
        router.add("GET", api_path("/x"), httpx.Response(500, text="oops"))

        with pytest.raises(ApiError) as exc_info:
            await api_client.get("/x", skip_retry=True)

        assert exc_info.value.status_code == 500
        assert router.count("GET", api_path("/x")) == 1

    @pytest.mark.asyncio
    async def test_network_error_maps_to_api_error(
        self,
        api_client: HttpClient,
        router: MockRouter,
        api_path: Callable[[str], str],
    ) -> None:
        """Verify transport failures become ApiError without status after retries."""
        router.add("GET", api_path("/x"), httpx.ConnectError("refused"))

        with pytest.raises(ApiError) as exc_info:
            await api_client.get("/x")

        assert exc_info.value.status_code is None
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)
        assert router.count("GET", api_path("/x")) == 4

    @pytest.mark.asyncio
    async def test_requires_authentication(
        self,
        env_config: EnvironmentConfig,
        token_manager: TokenManager,
        httpx_client: httpx.AsyncClient,
        fake_clock: FakeClock,
    ) -> None:
        """Verify an unauthenticated client fails before any API request."""
        client = HttpClient(
            env_config,
            token_manager,
            http_client=httpx_client,
            rate_limiter_options=False,
            clock=fake_clock,
        )

        with pytest.raises(AuthenticationError) as exc_info:
            await client.get("/comprobantes")

        assert exc_info.value.error_code == ErrorCode.NOT_AUTHENTICATED.value

    @pytest.mark.asyncio
    async def test_rate_limiter_applies(
        self,
        env_config: EnvironmentConfig,
        token_manager: TokenManager,
        httpx_client: httpx.AsyncClient,
        router: MockRouter,
        api_path: Callable[[str], str],
        fake_clock: FakeClock,
        credentials: Credentials,
    ) -> None:
        """Verify requests beyond the limit wait for the window."""
        await token_manager.authenticate(credentials)
        client = HttpClient(
            env_config,
            token_manager,
            http_client=httpx_client,
            retry_options=RetryOptions(max_retries=0),
            rate_limiter_options=RateLimiterOptions(max_requests=2, window_ms=1000),
            clock=fake_clock,
        )
        router.add("GET", api_path("/x"), httpx.Response(200, json={}))

        for _ in range(3):
            await client.get("/x")

        assert client.rate_limiter is not None
        assert fake_clock.sleeps == [pytest.approx(1.0)]

    def test_rate_limiter_disabled(self, api_client: HttpClient) -> None:
        """Verify rate_limiter_options=False disables throttling."""
        assert api_client.rate_limiter is None

    def test_base_url_trailing_slash(
        self,
        env_config: EnvironmentConfig,
        token_manager: TokenManager,
        httpx_client: httpx.AsyncClient,
    ) -> None:
        """Verify the base URL is normalized without a trailing slash."""
        config = env_config.model_copy(
            update={"api_base_url": env_config.api_base_url + "/"}
        )
        client = HttpClient(config, token_manager, http_client=httpx_client)
        assert not client.base_url.endswith("/")

    @pytest.mark.asyncio
    async def test_owned_client_closed(
        self, env_config: EnvironmentConfig, token_manager: TokenManager
    ) -> None:
        """Verify an internally created httpx client is closed on exit."""
        async with HttpClient(env_config, token_manager) as client:
            inner = client._http_client

        assert inner.is_closed
