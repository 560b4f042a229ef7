"""Event emitter, listener protocol, and outcome event dataclass."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from steptrail.config.models import StepTrailConfig

logger = logging.getLogger(__name__)


@dataclass
class OutcomeEvent:
    """A typed event emitted while a test runs."""

    event_type: str  # "test.started", "test.completed", "failure.detected"
    timestamp: datetime
    identifier: str
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_type": self.event_type,
            "timestamp": self.timestamp.isoformat(),
            "identifier": self.identifier,
            "data": self.data,
        }


class EventListener(Protocol):
    """Protocol for consuming outcome events."""

    async def on_event(self, event: OutcomeEvent) -> None: ...


class EventEmitter:
    """Dispatches events to listeners. A failing listener never breaks a run."""

    def __init__(self) -> None:
        self._listeners: list[EventListener] = []

    def add_listener(self, listener: EventListener) -> None:
        self._listeners.append(listener)

    async def emit(self, event: OutcomeEvent) -> None:
        for listener in self._listeners:
            try:
                await listener.on_event(event)
            except Exception:
                logger.exception("Event listener error")

    async def drain(self) -> None:
        """Let listeners with background work (webhooks) finish it."""
        for listener in self._listeners:
            drain = getattr(listener, "drain", None)
            if drain is not None:
                await drain()


def create_cli_emitter(config: StepTrailConfig) -> EventEmitter:
    """Create an emitter for CLI runs.

    Events are stored in the history database, where the API serves them,
    and posted to any configured webhooks.
    """
    from steptrail.events.log import EventLog

    emitter = EventEmitter()
    emitter.add_listener(EventLog(config.history_db_path, config.event_log_size))
    if config.webhooks:
        from steptrail.events.webhook import WebhookListener

        emitter.add_listener(WebhookListener(config.webhooks))
    return emitter
