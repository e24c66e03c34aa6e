"""Exception hierarchy shared by collectors, senders and the agent."""

from __future__ import annotations


class MonifyError(Exception):
    """Base class for all agent errors."""


class ConfigError(MonifyError):
    """Raised when configuration values are missing or invalid."""


class CollectionError(MonifyError):
    """Raised when a reducer cannot produce its result."""


class SendError(MonifyError):
    """Raised when a payload could not be delivered."""


class AuthenticationError(SendError):
    """Raised when the server rejects the agent token (HTTP 401).

    This is the only terminal send failure.
    """
