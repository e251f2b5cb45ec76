"""High-level client wiring the submission core together from ``Settings``."""

from collections.abc import Callable

import httpx
from loguru import logger

from hacienda.api.http_client import HttpClient
from hacienda.api.models import (
    ParsedStatusResponse,
    SubmissionRequest,
    SubmitAndWaitOptions,
    SubmitAndWaitResult,
)
from hacienda.api.orchestrator import submit_and_wait
from hacienda.api.rate_limiter import RateLimiterOptions
from hacienda.api.retry import RetryOptions
from hacienda.api.submission import get_status
from hacienda.auth.credentials import Credentials
from hacienda.auth.environment import Environment, get_environment_config
from hacienda.auth.token_manager import TokenManager
from hacienda.core.clock import SYSTEM_CLOCK, Clock
from hacienda.core.config import Settings, get_settings
from hacienda.infrastructure.sequence_store import SequenceStore


class HaciendaClient:
    """Single entry point for authenticating, submitting and polling.

    Args:
        settings: Configuration; the cached process settings when omitted.
        transport: httpx transport shared by the IDP and API clients
            (e.g. ``httpx.MockTransport`` in tests).
        clock: Time source for throttling, backoff, token expiry and polling.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Clock = SYSTEM_CLOCK,
    ) -> None:
        self.settings = settings or get_settings()
        self.env_config = get_environment_config(Environment(self.settings.environment))
        self._clock = clock

        self._http = httpx.AsyncClient(
            transport=transport, timeout=self.settings.http_timeout_seconds
        )
        self.token_manager = TokenManager(self.env_config, self._http, clock)

        retry = self.settings.retry_config
        rate = self.settings.rate_limit_config
        self.http_client = HttpClient(
            self.env_config,
            self.token_manager,
            http_client=self._http,
            retry_options=RetryOptions(
                max_retries=retry.max_retries,
                initial_delay_ms=retry.initial_delay_ms,
                backoff_multiplier=retry.backoff_multiplier,
                max_delay_ms=retry.max_delay_ms,
            ),
            rate_limiter_options=(
                RateLimiterOptions(
                    max_requests=rate.max_requests, window_ms=rate.window_ms
                )
                if rate.enabled
                else False
            ),
            clock=clock,
        )

        seq = self.settings.sequence_config
        self.sequence_store = SequenceStore(
            self.settings.data_dir,
            lock_timeout_ms=seq.lock_timeout_ms,
            lock_retry_ms=seq.lock_retry_ms,
            clock=clock,
        )

    @property
    def is_authenticated(self) -> bool:
        return self.token_manager.is_authenticated

    async def authenticate(self, credentials: Credentials) -> None:
        await self.token_manager.authenticate(credentials)

    async def submit_and_wait(
        self,
        request: SubmissionRequest,
        on_poll: Callable[[ParsedStatusResponse, int], None] | None = None,
    ) -> SubmitAndWaitResult:
        """Submit a document and wait for its terminal status.

        Poll interval and timeout come from ``settings.polling_config``.
        """
        polling = self.settings.polling_config
        options = SubmitAndWaitOptions(
            poll_interval_ms=polling.poll_interval_ms,
            timeout_ms=polling.timeout_ms,
            on_poll=on_poll,
        )
        return await submit_and_wait(self.http_client, request, options, self._clock)

    async def get_status(self, clave: str) -> ParsedStatusResponse:
        return await get_status(self.http_client, clave)

    async def aclose(self) -> None:
        """Close the shared httpx client."""
        await self._http.aclose()
        logger.debug("Hacienda client closed")

    async def __aenter__(self) -> "HaciendaClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
