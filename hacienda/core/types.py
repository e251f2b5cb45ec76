"""Type aliases for dynamic data structures throughout the package.

All types defined here should be JSON-serializable to support logging and
the wire payloads exchanged with the Hacienda API.
"""

from typing import Any

# JSON-compatible type that represents any valid JSON value
type JsonValue = (
    dict[str, "JsonValue"] | list["JsonValue"] | str | int | float | bool | None
)

# Context dictionary for logging additional information
type LogContext = dict[str, Any]

# Compound sequence key to counter value, as persisted in sequences.json
type SequenceMapping = dict[str, int]
