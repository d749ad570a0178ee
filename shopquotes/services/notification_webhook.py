"""
Quote Notification Webhook Service

Posts saved quotes to the workflow-automation webhook that messages the
customer. The payload is {"event": ..., "quote": {...}} authenticated with
the configured token.
"""

from dataclasses import dataclass
from typing import Optional

import httpx
import logging

from shopquotes.config import Settings
from shopquotes.schemas.quote import QuoteBase

logger = logging.getLogger(__name__)

EVENT_CREATED = "quote.created"
EVENT_RESENT = "quote.resent"

NOT_CONFIGURED = "Webhook de notificação não configurado. Defina NOTIFY_WEBHOOK_URL."


@dataclass
class NotificationResult:
    notified: bool
    error: Optional[str] = None


class NotificationWebhookService:
    """Send quote notifications to the automation webhook."""

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return self.settings.webhook_configured

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        token = self.settings.NOTIFY_WEBHOOK_TOKEN
        if token:
            headers["Authorization"] = f"Bearer {token}"
            headers["X-Webhook-Token"] = token
        return headers

    async def send(self, quote: QuoteBase, event: str = EVENT_CREATED) -> NotificationResult:
        """POST the quote to the webhook.

        Never raises: failures come back as NotificationResult(False, error)
        so a saved quote is not turned into a failed request.
        """
        if not self.is_configured:
            logger.debug("Notification webhook not configured, skipping")
            return NotificationResult(notified=False, error=NOT_CONFIGURED)

        payload = {
            "event": event,
            "quote": quote.model_dump(mode="json", by_alias=True),
        }

        try:
            async with httpx.AsyncClient(
                transport=self._transport,
                timeout=self.settings.NOTIFY_WEBHOOK_TIMEOUT,
            ) as client:
                resp = await client.post(
                    self.settings.NOTIFY_WEBHOOK_URL,
                    json=payload,
                    headers=self._headers(),
                )
                resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(
                "Notification webhook returned %s for %s", e.response.status_code, quote.number
            )
            return NotificationResult(
                notified=False,
                error=f"Webhook respondeu com status {e.response.status_code}",
            )
        except httpx.HTTPError as e:
            logger.error("Notification webhook failed for %s: %s", quote.number, type(e).__name__)
            return NotificationResult(notified=False, error=str(e) or type(e).__name__)

        logger.info("Notification sent: %s (%s)", quote.number, event)
        return NotificationResult(notified=True)

    async def notify_quote_created(self, quote: QuoteBase) -> NotificationResult:
        return await self.send(quote, EVENT_CREATED)

    async def notify_quote_resent(self, quote: QuoteBase) -> NotificationResult:
        return await self.send(quote, EVENT_RESENT)
