"""
Vectorsmith Errors

The core degrades instead of failing wherever tracing allows it. The only
error raised on purpose is InvalidInputError, for bad buffers and bad
configuration values.
"""


class VectorizerError(Exception):
    """Base class for all vectorsmith errors."""


class InvalidInputError(VectorizerError, ValueError):
    """Raised when a pixel buffer, palette or option is outside its domain."""


def require(condition: bool, message: str) -> None:
    """Raise InvalidInputError with ``message`` unless ``condition`` holds."""
    if not condition:
        raise InvalidInputError(message)


def require_non_negative(name: str, value) -> None:
    if value is None or value < 0:
        raise InvalidInputError(f"{name} must be >= 0, got {value!r}")


def require_choice(name: str, value, choices) -> None:
    if value not in choices:
        options = ", ".join(repr(c) for c in choices)
        raise InvalidInputError(f"{name} must be one of {options}, got {value!r}")
