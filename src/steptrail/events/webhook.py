"""Fire-and-forget webhook delivery listener."""

from __future__ import annotations

import asyncio
import hashlib
import hmac
import json
import logging
from fnmatch import fnmatchcase
from typing import TYPE_CHECKING

import httpx

from steptrail.events.emitter import OutcomeEvent

if TYPE_CHECKING:
    from steptrail.config.models import WebhookConfig

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Steptrail-Signature"
DELIVERY_TIMEOUT = 10.0


def subscribes_to(wh: WebhookConfig, event_type: str) -> bool:
    """True if any of the webhook's event patterns (``test.*``, ``*``) matches."""
    return any(fnmatchcase(event_type, pattern) for pattern in wh.events)


def sign(secret: str, body: bytes) -> str:
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


class WebhookListener:
    """Posts matching events to configured URLs. Implements EventListener protocol.

    Delivery runs in background tasks so a slow endpoint never holds up a
    test run; :meth:`drain` waits for whatever is still in flight.
    """

    def __init__(self, webhooks: list[WebhookConfig]) -> None:
        self._webhooks = webhooks
        self._pending: set[asyncio.Task[None]] = set()

    async def on_event(self, event: OutcomeEvent) -> None:
        body = json.dumps(event.to_dict()).encode()
        for wh in self._webhooks:
            if not subscribes_to(wh, event.event_type):
                continue
            task = asyncio.create_task(self._deliver(wh, event.event_type, body), name=f"webhook-{wh.url}")
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        """Wait for in-flight deliveries (used before a CLI process exits)."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

    async def _deliver(self, wh: WebhookConfig, event_type: str, body: bytes) -> None:
        headers = {"Content-Type": "application/json"}
        if wh.secret:
            # Signature covers the exact bytes sent
            headers[SIGNATURE_HEADER] = sign(wh.secret, body)
        try:
            async with httpx.AsyncClient(timeout=DELIVERY_TIMEOUT) as client:
                response = await client.post(wh.url, content=body, headers=headers)
            if not response.is_success:
                logger.warning("Webhook %s answered %s (event: %s)", wh.url, response.status_code, event_type)
        except Exception:
            logger.exception("Webhook delivery failed for %s (event: %s)", wh.url, event_type)
