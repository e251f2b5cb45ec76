"""Core application constants."""

# Time constants
MILLISECONDS_PER_SECOND = 1000

# Security and redaction
REDACTED = "[REDACTED]"

# Sequence numbers are 10 digits inside the clave numerica
MAX_SEQUENCE = 9_999_999_999
DEFAULT_BRANCH = "001"
DEFAULT_POS = "00001"
SEQUENCES_FILE_NAME = "sequences.json"
SEQUENCES_LOCK_NAME = ".sequences.lock"

# Seconds before access token expiry at which a refresh is triggered
TOKEN_REFRESH_BUFFER_SECONDS = 30

CLAVE_LENGTH = 50
