"""Exception hierarchy for the session engine.

Transport and malformed-data problems are handled where they occur and
never leave the stream client, reconciler or status service. The
exceptions below are for user-initiated actions and configuration.
"""
from __future__ import annotations


class DeckError(Exception):
    """Base exception for all AgentDeck errors."""


class ConfigError(DeckError):
    """Configuration file could not be parsed."""
    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Invalid config {path}: {reason}")


class TransportError(DeckError):
    """The backend could not be reached."""
    def __init__(self, endpoint: str, reason: str):
        self.endpoint = endpoint
        self.reason = reason
        super().__init__(f"{endpoint}: {reason}")


class ApiError(DeckError):
    """The backend answered with a non-success status."""
    def __init__(self, endpoint: str, status: int, message: str):
        self.endpoint = endpoint
        self.status = status
        self.message = message
        super().__init__(f"{endpoint} returned {status}: {message}")


class SendError(DeckError):
    """A message could not be sent to a session."""
    def __init__(self, session_id: str, reason: str):
        self.session_id = session_id
        self.reason = reason
        super().__init__(reason)


class ApprovalError(DeckError):
    """Approving a permission request failed."""
    def __init__(self, session_id: str, reason: str):
        self.session_id = session_id
        self.reason = reason
        super().__init__(reason)


class SessionActionError(DeckError):
    """Kill, rename or delete of a session failed."""
    def __init__(self, session_id: str, action: str, reason: str):
        self.session_id = session_id
        self.action = action
        self.reason = reason
        super().__init__(f"Failed to {action} session: {reason}")
