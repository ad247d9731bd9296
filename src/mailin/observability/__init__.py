"""Observability module for the gateway.

Provides structured logging, session correlation and metrics.
"""

from .logging_config import configure_logging, JSONFormatter, SessionIDFilter
from .metrics import (
    auth_verdicts_total,
    messages_received_total,
    pipeline_duration_seconds,
    pipeline_outcomes_total,
    start_metrics_server,
    webhook_deliveries_total,
)
from .session_id import session_id_var, get_session_id, set_session_id, reset_session_id

__all__ = [
    # Logging
    "configure_logging",
    "JSONFormatter",
    "SessionIDFilter",
    # Metrics
    "auth_verdicts_total",
    "messages_received_total",
    "pipeline_duration_seconds",
    "pipeline_outcomes_total",
    "start_metrics_server",
    "webhook_deliveries_total",
    # Session ID
    "session_id_var",
    "get_session_id",
    "set_session_id",
    "reset_session_id",
]
