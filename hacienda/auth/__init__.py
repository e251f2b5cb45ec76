"""Authentication against the Hacienda identity provider.

- **credentials**: username construction and credential validation
- **environment**: sandbox and production endpoints
- **token_manager**: cached, single-flight refreshed OAuth2 tokens
"""

from hacienda.auth.credentials import (
    Credentials,
    IdType,
    build_username,
    load_credentials,
)
from hacienda.auth.environment import (
    Environment,
    EnvironmentConfig,
    get_environment_config,
)
from hacienda.auth.token_manager import TokenManager, TokenState

__all__ = [
    "Credentials",
    "Environment",
    "EnvironmentConfig",
    "IdType",
    "TokenManager",
    "TokenState",
    "build_username",
    "get_environment_config",
    "load_credentials",
]
