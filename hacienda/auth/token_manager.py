"""OAuth2 token lifecycle against the Hacienda identity provider.

The manager performs the Resource Owner Password Credentials grant, caches the
resulting tokens in memory and refreshes the access token shortly before it
expires. Concurrent callers that find the token due for refresh share a single
in-flight refresh, so at most one token request reaches the network.

Refresh rules:
- If the refresh token itself expired, a full password grant is issued
  (when credentials are stored).
- If a refresh-token grant fails and credentials are stored, one full
  password grant is attempted before the original failure is surfaced.
"""

import asyncio
from dataclasses import dataclass
from typing import Any

import httpx
from loguru import logger
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from hacienda.auth.credentials import Credentials
from hacienda.auth.environment import EnvironmentConfig
from hacienda.core.clock import SYSTEM_CLOCK, Clock
from hacienda.core.constants import TOKEN_REFRESH_BUFFER_SECONDS
from hacienda.core.error_context import sanitize_dict
from hacienda.core.exceptions import AuthenticationError, ErrorCode


class TokenResponse(BaseModel):
    """Token payload returned by the IDP."""

    access_token: str = Field(min_length=1)
    refresh_token: str = Field(min_length=1)
    expires_in: float = Field(gt=0)
    refresh_expires_in: float = Field(gt=0)
    token_type: str


@dataclass(frozen=True)
class TokenState:
    """Cached tokens with absolute expiry instants on the manager's clock."""

    access_token: str
    refresh_token: str
    access_expires_at: float
    refresh_expires_at: float


class TokenManager:
    """Manages the OAuth2 ROPC token lifecycle for one session.

    Args:
        env_config: Environment providing the IDP token URL and client id.
        http_client: Client used for token requests. When omitted the manager
            creates one and closes it in ``aclose``.
        clock: Time source for expiry checks.
    """

    def __init__(
        self,
        env_config: EnvironmentConfig,
        http_client: httpx.AsyncClient | None = None,
        clock: Clock = SYSTEM_CLOCK,
    ) -> None:
        self._env_config = env_config
        self._owns_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient()
        self._clock = clock
        self._token_state: TokenState | None = None
        self._credentials: Credentials | None = None
        self._refresh_lock = asyncio.Lock()
        self._refresh_task: asyncio.Task[None] | None = None
        self._generation = 0

    @property
    def is_authenticated(self) -> bool:
        """True if a token is held (it may still be due for refresh)."""
        return self._token_state is not None

    async def authenticate(self, credentials: Credentials) -> None:
        """Authenticate with the password grant and cache the tokens.

        Args:
            credentials: Username and password for the IDP.

        Raises:
            AuthenticationError: If the request fails or the response is invalid.
        """
        self._credentials = credentials
        await self._request_token(self._password_grant(credentials))
        logger.info("Authenticated with Hacienda IDP", username=credentials.username)

    async def get_access_token(self) -> str:
        """Return a valid access token, refreshing it first when it is due.

        Raises:
            AuthenticationError: If not authenticated or the refresh fails.
        """
        if self._token_state is None:
            raise AuthenticationError(
                "No token available. Call authenticate() first.",
                ErrorCode.NOT_AUTHENTICATED,
            )

        refresh_at = self._token_state.access_expires_at - TOKEN_REFRESH_BUFFER_SECONDS
        if self._clock.now() >= refresh_at:
            await self._refresh()

        if self._token_state is None:
            raise AuthenticationError(
                "Token was invalidated during refresh.",
                ErrorCode.NOT_AUTHENTICATED,
            )
        return self._token_state.access_token

    def invalidate(self) -> None:
        """Clear cached tokens and stored credentials.

        A token request still in flight is discarded when it completes.
        """
        self._generation += 1
        self._token_state = None
        self._credentials = None
        self._refresh_task = None

    async def aclose(self) -> None:
        """Close the HTTP client if this manager created it."""
        if self._owns_client:
            await self._http_client.aclose()

    async def _refresh(self) -> None:
        """Join the in-flight refresh, starting one if none is pending."""
        async with self._refresh_lock:
            task = self._refresh_task
            if task is None:
                task = asyncio.ensure_future(self._do_refresh())
                task.add_done_callback(self._clear_refresh_task)
                self._refresh_task = task
        # shield: one cancelled caller must not cancel the shared refresh
        await asyncio.shield(task)

    def _clear_refresh_task(self, task: "asyncio.Task[None]") -> None:
        if self._refresh_task is task:
            self._refresh_task = None

    async def _do_refresh(self) -> None:
        state = self._token_state
        if state is None:
            raise AuthenticationError(
                "Cannot refresh: no token state.", ErrorCode.NOT_AUTHENTICATED
            )

        if self._clock.now() >= state.refresh_expires_at:
            if self._credentials is not None:
                logger.info("Refresh token expired, re-authenticating")
                await self._request_token(self._password_grant(self._credentials))
                return

            self._token_state = None
            raise AuthenticationError(
                "Refresh token has expired and no credentials are stored "
                "for re-authentication.",
                ErrorCode.REFRESH_TOKEN_EXPIRED,
            )

        logger.debug("Refreshing access token")
        try:
            await self._request_token(
                {
                    "grant_type": "refresh_token",
                    "client_id": self._env_config.client_id,
                    "refresh_token": state.refresh_token,
                }
            )
        except AuthenticationError as error:
            if error.error_code == ErrorCode.NOT_AUTHENTICATED.value:
                raise
            if self._credentials is not None:
                logger.warning(
                    "Token refresh failed, attempting full re-authentication",
                    error_code=error.error_code,
                )
                try:
                    await self._request_token(self._password_grant(self._credentials))
                except AuthenticationError as reauth_error:
                    logger.error(
                        "Re-authentication after refresh failure also failed",
                        error_code=reauth_error.error_code,
                    )
                else:
                    return

            self._token_state = None
            raise AuthenticationError(
                "Token refresh failed.", ErrorCode.TOKEN_REFRESH_FAILED, cause=error
            ) from error

    def _password_grant(self, credentials: Credentials) -> dict[str, str]:
        return {
            "grant_type": "password",
            "client_id": self._env_config.client_id,
            "username": credentials.username,
            "password": credentials.password.get_secret_value(),
        }

    async def _request_token(self, form: dict[str, str]) -> None:
        """Send a token request to the IDP and store the resulting state."""
        generation = self._generation
        try:
            response = await self._http_client.post(
                self._env_config.idp_token_url,
                data=form,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )
        except httpx.HTTPError as e:
            raise AuthenticationError(
                f"Token request failed: network error ({e.__class__.__name__}).",
                ErrorCode.TOKEN_REQUEST_FAILED,
                cause=e,
            ) from e

        if not response.is_success:
            detail = response.reason_phrase
            try:
                body: Any = response.json()
            except ValueError:
                body = None
            if isinstance(body, dict):
                detail = body.get("error_description") or body.get("error") or detail
                logger.debug(
                    "IDP rejected token request",
                    status_code=response.status_code,
                    body=sanitize_dict(body),
                )
            raise AuthenticationError(
                f"Token request failed with status {response.status_code} - {detail}",
                ErrorCode.TOKEN_REQUEST_FAILED,
            )

        try:
            token = TokenResponse.model_validate(response.json())
        except (ValueError, PydanticValidationError) as e:
            raise AuthenticationError(
                f"Invalid token response from IDP: {e}",
                ErrorCode.INVALID_TOKEN_RESPONSE,
                cause=e,
            ) from e

        if generation != self._generation:
            logger.debug("Discarding token issued before invalidate()")
            raise AuthenticationError(
                "Token manager was invalidated while the token request was in flight.",
                ErrorCode.NOT_AUTHENTICATED,
            )

        now = self._clock.now()
        self._token_state = TokenState(
            access_token=token.access_token,
            refresh_token=token.refresh_token,
            access_expires_at=now + token.expires_in,
            refresh_expires_at=now + token.refresh_expires_in,
        )
