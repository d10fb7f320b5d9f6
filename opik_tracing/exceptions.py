"""Exception hierarchy for the Opik tracing client.

All exceptions inherit from OpikError, so callers can catch a single base type.
Errors raised on the background delivery thread are logged, never propagated.
"""


class OpikError(Exception):
    """Base exception for all Opik tracing client errors."""


class ConfigurationError(OpikError):
    """Raised when credentials or client options are missing or invalid."""


class NetworkError(OpikError):
    """Raised on transport failure or timeout talking to the backend."""


class AuthError(OpikError):
    """Raised when the backend rejects the API key or workspace."""


class NotFoundError(OpikError):
    """Raised when the backend reports the requested resource does not exist."""


class LifecycleError(OpikError):
    """Raised when an operation is invalid for the entity's current state."""


class ValidationError(OpikError):
    """Raised on malformed input such as a non-numeric feedback value."""
