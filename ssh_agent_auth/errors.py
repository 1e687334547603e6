"""Exception taxonomy for SSH agent request signing."""

from __future__ import annotations


class AgentAuthError(Exception):
    """Base class for every error raised by this package."""


class ConfigError(AgentAuthError):
    """Raised when the agent endpoint is not configured."""


class AgentConnectionError(AgentAuthError):
    """Raised when the connection to the SSH agent cannot be established."""


class AgentProtocolError(AgentAuthError):
    """Raised when the agent replies with a failure or a malformed message."""


class AgentListError(AgentAuthError):
    """Raised when the agent's key list cannot be retrieved."""


class KeyNotFoundError(AgentAuthError):
    """Raised when no agent key matches the requested fingerprint."""

    def __init__(self, fingerprint: str) -> None:
        super().__init__(f"No key in the SSH agent matches fingerprint: {fingerprint}")
        self.fingerprint = fingerprint


class SigningError(AgentAuthError):
    """Raised when a signature cannot be produced."""


class UnsupportedAlgorithmError(SigningError):
    """Raised when the agent returns a signature format we cannot render."""

    def __init__(self, format: str) -> None:
        super().__init__(f"Unsupported algorithm from SSH agent: {format}")
        self.format = format


class SignatureDecodeError(SigningError):
    """Raised when a signature blob does not decode for its claimed format."""
