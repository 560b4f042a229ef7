"""Outcome event system for steptrail."""

from __future__ import annotations

from steptrail.events.emitter import EventEmitter, EventListener, OutcomeEvent, create_cli_emitter
from steptrail.events.log import EventLog
from steptrail.events.webhook import WebhookListener

__all__ = [
    "EventEmitter",
    "EventListener",
    "EventLog",
    "OutcomeEvent",
    "WebhookListener",
    "create_cli_emitter",
]
