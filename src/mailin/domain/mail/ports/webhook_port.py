"""Webhook Dispatcher Port - single-attempt envelope delivery."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from ..envelope import MailEnvelope


@dataclass(frozen=True)
class DeliveryOutcome:
    """Result of the one delivery attempt.

    Attributes:
        delivered: True iff the endpoint answered HTTP 200
        status_code: Response status, None on transport errors
        error: Transport error description, None when a response arrived
    """
    delivered: bool
    status_code: Optional[int] = None
    error: Optional[str] = None


class WebhookDispatcherPort(ABC):
    """Port interface for envelope delivery."""

    @abstractmethod
    async def dispatch(self, envelope: MailEnvelope) -> DeliveryOutcome:
        """POST the envelope once. Never raises for delivery failures."""
        pass
