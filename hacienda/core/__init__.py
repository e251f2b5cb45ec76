"""Core infrastructure shared by the auth, api and infrastructure packages.

- **clock**: injectable time source for deterministic tests
- **config**: Pydantic Settings with environment variable support
- **constants**: sequence limits, token refresh buffer, redaction marker
- **error_context**: redaction of secrets before logging
- **exceptions**: structured exception hierarchy with error codes
- **logging**: Loguru sink configuration
- **types**: type aliases for JSON payloads and counters
"""
