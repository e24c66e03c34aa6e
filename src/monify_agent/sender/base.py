"""Base interface for payload senders."""

from __future__ import annotations

import abc

from ..models import MetricPayload, ServerResponse


class Sender(abc.ABC):
    """Abstract base for transports that deliver one payload per cycle."""

    @abc.abstractmethod
    def send(self, payload: MetricPayload, timeout: float | None = None) -> ServerResponse:
        """Deliver *payload*.

        Raises :class:`~monify_agent.errors.AuthenticationError` when the
        collector rejects the credentials and
        :class:`~monify_agent.errors.SendError` on any other failure.
        """

    @abc.abstractmethod
    def close(self) -> None:
        """Flush and release resources."""
