"""Custom exception hierarchy for turnloop.

All exceptions inherit from TurnloopError for easy catching at the top level.
Only transport failures of the main streaming exchange are meant to reach the
user; router, tool and extraction failures degrade into text instead.
"""


class TurnloopError(Exception):
    """Base exception for all turnloop errors."""


class ConfigurationError(TurnloopError):
    """Configuration-related errors."""


class ProviderError(TurnloopError):
    """LLM provider errors."""


class ProviderConfigError(ProviderError):
    """Provider configuration is invalid (e.g. no API key)."""


class TransportError(ProviderError):
    """Network-level failure talking to the provider (DNS, connect, timeout)."""


class APIStatusError(ProviderError):
    """The provider answered with a non-2xx status."""

    def __init__(self, status_code: int, body: str = "") -> None:
        self.status_code = status_code
        self.body = body
        message = f"HTTP {status_code}"
        if body:
            message = f"{message}: {body}"
        super().__init__(message)


class ResponseParseError(ProviderError):
    """A non-streaming response did not have the expected shape."""


class OrchestrationError(TurnloopError):
    """Turn orchestration errors."""


class TurnInProgressError(OrchestrationError):
    """A new turn was submitted while another one is still running."""


class PersistenceError(TurnloopError):
    """Conversation storage errors."""


class SessionNotFoundError(PersistenceError):
    """Requested session does not exist."""
