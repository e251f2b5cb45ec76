"""Endpoints and OAuth2 client ids for the Hacienda API environments."""

from enum import Enum

from pydantic import BaseModel, ConfigDict


class Environment(Enum):
    """Hacienda API environments."""

    SANDBOX = "sandbox"
    PRODUCTION = "production"


class EnvironmentConfig(BaseModel):
    """Immutable configuration for one Hacienda API environment."""

    model_config = ConfigDict(frozen=True)

    name: str
    api_base_url: str
    idp_token_url: str
    client_id: str


SANDBOX_CONFIG = EnvironmentConfig(
    name="Sandbox",
    api_base_url="https://api.comprobanteselectronicos.go.cr/recepcion-sandbox/v1",
    idp_token_url=(
        "https://idp.comprobanteselectronicos.go.cr/auth/realms/rut-stag"
        "/protocol/openid-connect/token"
    ),
    client_id="api-stag",
)

PRODUCTION_CONFIG = EnvironmentConfig(
    name="Production",
    api_base_url="https://api.comprobanteselectronicos.go.cr/recepcion/v1",
    idp_token_url=(
        "https://idp.comprobanteselectronicos.go.cr/auth/realms/rut"
        "/protocol/openid-connect/token"
    ),
    client_id="api-prod",
)

ENVIRONMENT_CONFIGS: dict[Environment, EnvironmentConfig] = {
    Environment.SANDBOX: SANDBOX_CONFIG,
    Environment.PRODUCTION: PRODUCTION_CONFIG,
}

# Public economic activity lookup; not part of the recepcion API, no auth
ECONOMIC_ACTIVITY_API_URL = "https://api.hacienda.go.cr/fe/ae"


def get_environment_config(env: Environment | str) -> EnvironmentConfig:
    """Return the endpoint configuration for ``env``.

    Args:
        env: An Environment member or its string value ("sandbox", "production").

    Returns:
        EnvironmentConfig: URLs and client id for the environment.
    """
    return ENVIRONMENT_CONFIGS[Environment(env)]
