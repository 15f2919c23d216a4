"""
Error kinds shared by tools, services and routers.

Tools raise these; routers turn them into ``{"error": ...}`` JSON responses.
"""


class AgriMateError(Exception):
    """Base class for every error the service raises on purpose."""


class ConfigurationError(AgriMateError):
    """A credential required for an external service is missing."""


class UpstreamUnavailable(AgriMateError):
    """Network failure, non-success status, timeout or malformed upstream payload."""


class ProvidersExhausted(AgriMateError):
    """Every configured LLM provider failed for a single request."""

    def __init__(self, last_error: str):
        self.last_error = last_error
        super().__init__(f"All AI providers failed. Last error: {last_error or 'Unknown'}")


class ConversationNotFound(AgriMateError):
    """No stored conversation has the requested id."""
