"""Exceptions shared by the session, configuration and upload layers."""
from __future__ import annotations


class SessionError(RuntimeError):
    """Base exception raised for session lifecycle issues."""


class InvalidTransitionError(SessionError):
    """Raised when a trigger is fired in a state that does not accept it."""

    def __init__(self, action: str, state: object) -> None:
        state_name = getattr(state, "value", state)
        super().__init__(f"Cannot {action} while session is in state {state_name}")
        self.action = action
        self.state = state


class QueryInFlightError(SessionError):
    """Raised when a query is submitted while a previous one is still pending."""


class SessionNotFoundError(SessionError):
    """Raised when a session identifier is unknown to the registry."""


class ConfigurationError(ValueError):
    """Raised when a pipeline configuration value is out of range."""


class UploadValidationError(ValueError):
    """Raised when an uploaded file is rejected; the message is user-facing."""
