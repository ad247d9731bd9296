"""Webhook dispatcher adapters."""

from .webhook_dispatcher import HttpWebhookDispatcher

__all__ = ["HttpWebhookDispatcher"]
