"""Payload senders: HTTP (default), local JSONL files and OTLP."""

from __future__ import annotations

from ..config import AgentConfig
from .base import Sender


def create_sender(config: AgentConfig) -> Sender:
    """Build the sender selected by ``config.mode``."""
    if config.mode == "local":
        from .local import LocalSender
        return LocalSender(config.local_sender)
    if config.mode == "otlp":
        from .otel import OtelSender
        return OtelSender(config.otel)
    from .http import HttpSender
    return HttpSender(config.server)


__all__ = ["Sender", "create_sender"]
