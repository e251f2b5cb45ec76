"""Authenticated HTTP client for the Hacienda REST API.

Every call goes through the same pipeline:

1. ``Authorization: Bearer <token>`` injected from the ``TokenManager``
   (unless ``skip_auth``)
2. JSON body serialization
3. the ``RateLimiter`` around the network call (unless disabled)
4. the ``RetryPolicy`` around the whole attempt (unless ``skip_retry``)

Responses are parsed by content type. Non-2xx responses raise ``ApiError``
with the status code, the parsed body and a description from the HTTP status
registry. Transport failures raise ``ApiError`` with ``status_code=None``,
which the retry policy treats as retryable.
"""

from dataclasses import dataclass, field
from typing import Any, Final, Literal

import httpx
import orjson
from loguru import logger

from hacienda.api.error_codes import get_http_status_description
from hacienda.api.rate_limiter import RateLimiter, RateLimiterOptions
from hacienda.api.retry import RetryOptions, RetryPolicy
from hacienda.auth.environment import EnvironmentConfig
from hacienda.auth.token_manager import TokenManager
from hacienda.core.clock import SYSTEM_CLOCK, Clock
from hacienda.core.error_context import sanitize_headers
from hacienda.core.exceptions import ApiError
from hacienda.core.types import JsonValue

type HttpMethod = Literal["GET", "POST", "PUT", "DELETE", "PATCH"]


class _NoContent:
    """Marker for a response without a body (e.g. 204 No Content)."""

    _instance: "_NoContent | None" = None

    def __new__(cls) -> "_NoContent":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NO_CONTENT"


NO_CONTENT: Final = _NoContent()


@dataclass(frozen=True)
class RequestOptions:
    """Options for a single HTTP request."""

    method: HttpMethod
    path: str
    body: JsonValue = None
    headers: dict[str, str] = field(default_factory=dict)
    params: dict[str, str] | None = None
    skip_auth: bool = False
    skip_retry: bool = False


@dataclass(frozen=True)
class HttpResponse:
    """Status, headers and parsed body of a successful response."""

    status: int
    headers: httpx.Headers
    data: Any


class HttpClient:
    """Typed HTTP client for the Hacienda REST API.

    Args:
        env_config: Environment providing the API base URL.
        token_manager: Source of bearer tokens.
        http_client: Underlying httpx client; created (and owned) when omitted.
        retry_options: Backoff configuration for retryable failures.
        rate_limiter_options: Limiter configuration, or ``False`` to disable.
        clock: Time source shared by the limiter and the retry policy.
        timeout: Per-request timeout in seconds for an owned client.
    """

    def __init__(
        self,
        env_config: EnvironmentConfig,
        token_manager: TokenManager,
        http_client: httpx.AsyncClient | None = None,
        retry_options: RetryOptions | None = None,
        rate_limiter_options: RateLimiterOptions | Literal[False] | None = None,
        clock: Clock = SYSTEM_CLOCK,
        timeout: float = 30.0,
    ) -> None:
        self.base_url = env_config.api_base_url.rstrip("/")
        self._token_manager = token_manager
        self._owns_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(timeout=timeout)
        self._retry_policy = RetryPolicy(retry_options, clock)
        self._rate_limiter: RateLimiter | None = None
        if rate_limiter_options is not False:
            self._rate_limiter = RateLimiter(rate_limiter_options, clock)

    @property
    def rate_limiter(self) -> RateLimiter | None:
        """The limiter in use, or None when rate limiting is disabled."""
        return self._rate_limiter

    async def get(
        self,
        path: str,
        *,
        params: dict[str, str] | None = None,
        headers: dict[str, str] | None = None,
        skip_auth: bool = False,
        skip_retry: bool = False,
    ) -> HttpResponse:
        """Send a GET request to ``path`` (relative to the API base URL)."""
        return await self.request(
            RequestOptions(
                method="GET",
                path=path,
                params=params,
                headers=headers or {},
                skip_auth=skip_auth,
                skip_retry=skip_retry,
            )
        )

    async def post(
        self,
        path: str,
        body: JsonValue = None,
        *,
        headers: dict[str, str] | None = None,
        skip_auth: bool = False,
        skip_retry: bool = False,
    ) -> HttpResponse:
        """Send a POST request with a JSON body to ``path``."""
        return await self.request(
            RequestOptions(
                method="POST",
                path=path,
                body=body,
                headers=headers or {},
                skip_auth=skip_auth,
                skip_retry=skip_retry,
            )
        )

    async def request(self, options: RequestOptions) -> HttpResponse:
        """Send a request with auth injection, throttling and retry.

        Args:
            options: Full request options.

        Returns:
            HttpResponse: Status, headers and parsed body.

        Raises:
            ApiError: If the server answers with a non-2xx status or cannot be
                reached after retries.
            AuthenticationError: If no valid token can be obtained.
        """

        async def attempt() -> HttpResponse:
            return await self._send(options)

        if options.skip_retry:
            return await attempt()
        return await self._retry_policy.execute(attempt)

    async def aclose(self) -> None:
        """Close the underlying httpx client if this instance created it."""
        if self._owns_client:
            await self._http_client.aclose()

    async def __aenter__(self) -> "HttpClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def _send(self, options: RequestOptions) -> HttpResponse:
        url = f"{self.base_url}{options.path}"
        headers = {"Accept": "application/json", **options.headers}

        if not options.skip_auth:
            token = await self._token_manager.get_access_token()
            headers["Authorization"] = f"Bearer {token}"

        content: bytes | None = None
        if options.body is not None:
            if not any(name.lower() == "content-type" for name in headers):
                headers["Content-Type"] = "application/json"
            content = orjson.dumps(options.body)

        logger.debug(
            "Sending {} {}",
            options.method,
            options.path,
            method=options.method,
            path=options.path,
            headers=sanitize_headers(headers),
        )

        async def send() -> httpx.Response:
            return await self._http_client.request(
                options.method,
                url,
                headers=headers,
                content=content,
                params=options.params,
            )

        try:
            if self._rate_limiter is not None:
                response = await self._rate_limiter.execute(send)
            else:
                response = await send()
        except httpx.HTTPError as e:
            raise ApiError(
                f"Network error calling {options.method} {options.path}: {e!r}",
                cause=e,
            ) from e

        data = parse_response_body(response)

        if not response.is_success:
            status = response.status_code
            description = get_http_status_description(status)
            raise ApiError(
                f"{options.method} {options.path} failed ({status}): {description}",
                status_code=status,
                response_body=data,
            )

        return HttpResponse(
            status=response.status_code, headers=response.headers, data=data
        )


def parse_response_body(response: httpx.Response) -> Any:
    """Parse a response body according to its declared content type.

    JSON is decoded, XML is returned as text, an empty body yields
    ``NO_CONTENT`` and anything else is tried as JSON before falling back
    to the raw text.
    """
    content_type = response.headers.get("Content-Type", "").lower()
    text = response.text

    if not text:
        return NO_CONTENT

    if "application/xml" in content_type or "text/xml" in content_type:
        return text

    try:
        return orjson.loads(response.content)
    except orjson.JSONDecodeError:
        if "application/json" in content_type:
            logger.warning(
                "Response declared JSON but could not be decoded",
                status_code=response.status_code,
            )
        return text
