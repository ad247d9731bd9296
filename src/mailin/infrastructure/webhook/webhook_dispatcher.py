"""Webhook dispatcher backed by httpx.

Posts the envelope, serialized as JSON, in one form-encoded field. One attempt
per message: no retry, no queue. Only HTTP 200 counts as delivered.
"""

import logging
from typing import Optional

import httpx

from ...domain.mail.envelope import MailEnvelope
from ...domain.mail.ports.webhook_port import DeliveryOutcome, WebhookDispatcherPort
from ...observability.metrics import webhook_deliveries_total

logger = logging.getLogger(__name__)

DEFAULT_FIELD = "mailinMsg"


class HttpWebhookDispatcher(WebhookDispatcherPort):
    """Deliver envelopes to a configured URL.

    A client is opened per delivery so the dispatcher can be shared by
    sessions without tying a connection pool to one event loop.

    Args:
        url: Webhook endpoint
        timeout: Seconds allowed for the whole request (httpx semantics)
        field_name: Form field carrying the JSON envelope
        transport: Optional httpx transport (tests use httpx.MockTransport)
    """

    def __init__(
        self,
        url: str,
        timeout: float = 30.0,
        field_name: str = DEFAULT_FIELD,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url
        self.timeout = timeout
        self.field_name = field_name
        self.transport = transport

    async def dispatch(self, envelope: MailEnvelope) -> DeliveryOutcome:
        form = {self.field_name: envelope.to_payload()}

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(self.url, data=form)
        except httpx.HTTPError as e:
            logger.error(f"Error in posting to webhook {self.url}: {e!r}")
            webhook_deliveries_total.labels(status="error").inc()
            return DeliveryOutcome(delivered=False, error=str(e) or type(e).__name__)

        webhook_deliveries_total.labels(status=str(response.status_code)).inc()

        if response.status_code != 200:
            logger.error(
                f"Error in posting to webhook {self.url}: "
                f"response status code {response.status_code}, body={response.text[:500]}"
            )
            return DeliveryOutcome(delivered=False, status_code=response.status_code)

        logger.info(f"Successfully posted to webhook {self.url}")
        logger.info(f"Webhook response: {response.text[:2000]}")
        return DeliveryOutcome(delivered=True, status_code=response.status_code)
