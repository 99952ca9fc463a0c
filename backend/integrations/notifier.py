"""
Webhook notifier for booking status changes
Posts each lifecycle event as JSON to an external endpoint
"""

import os
import logging
import httpx
from typing import Any, Dict, Optional

from ..models import StatusChange

logger = logging.getLogger(__name__)


class WebhookNotifier:
    """Delivers status change events to NOTIFY_WEBHOOK_URL."""

    def __init__(
        self,
        url: Optional[str] = None,
        dry_run: Optional[bool] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url if url is not None else os.getenv("NOTIFY_WEBHOOK_URL")
        if dry_run is None:
            dry_run = os.getenv("DRY_RUN", "true").lower() == "true"
        self.dry_run = dry_run
        self.timeout = timeout
        self.transport = transport

        if not self.url and not self.dry_run:
            logger.warning("⚠️ Notifier enabled but NOTIFY_WEBHOOK_URL not configured")

    async def __call__(self, event: StatusChange) -> Dict[str, Any]:
        return await self.send(event)

    async def send(self, event: StatusChange) -> Dict[str, Any]:
        """
        Send one status change.

        Never raises: delivery problems are logged and reported in the result.
        """
        payload = event.model_dump(mode="json")
        transition = f"{payload.get('fromStatus')} -> {payload['toStatus']}"

        if self.dry_run:
            logger.info(f"🔔 DRY_RUN - would notify {event.bookingId}: {transition}")
            return {"status": "dry_run", "payload": payload}

        if not self.url:
            return {"status": "disabled", "message": "Webhook not configured"}

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    self.url,
                    json=payload,
                    headers={"Content-Type": "application/json"},
                )

            if response.status_code < 300:
                logger.info(f"✅ Notified {event.bookingId}: {transition}")
                return {"status": "sent", "status_code": response.status_code}

            logger.error(f"❌ Webhook rejected {event.bookingId}: {response.status_code} - {response.text}")
            return {"status": "error", "status_code": response.status_code}

        except httpx.HTTPError as e:
            logger.error(f"❌ Webhook error for {event.bookingId}: {e}")
            return {"status": "error", "message": str(e)}
