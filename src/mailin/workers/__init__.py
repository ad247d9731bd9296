"""Background processing of received messages.

Every message accepted over SMTP is processed by the SessionOrchestrator on
the listener's event loop, after the client has been acknowledged.
"""

from .session_orchestrator import SessionOrchestrator

__all__ = ["SessionOrchestrator"]
