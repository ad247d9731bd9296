"""Prometheus metrics for the gateway.

Defines operational metrics for monitoring and alerting.
"""

from prometheus_client import Counter, Histogram, start_http_server

messages_received_total = Counter(
    "mailin_messages_received_total",
    "Total number of messages accepted over SMTP",
)

pipeline_outcomes_total = Counter(
    "mailin_pipeline_outcomes_total",
    "Finished pipelines by outcome",
    ["outcome"]  # delivered|delivery_failed|aborted
)

pipeline_duration_seconds = Histogram(
    "mailin_pipeline_duration_seconds",
    "Time from data-complete to staging disposal in seconds",
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0]
)

webhook_deliveries_total = Counter(
    "mailin_webhook_deliveries_total",
    "Webhook delivery attempts by HTTP status",
    ["status"]  # status code, or "error" for transport failures
)

auth_verdicts_total = Counter(
    "mailin_auth_verdicts_total",
    "Authentication verdicts",
    ["check", "verdict"]  # check: dkim|spf, verdict: pass|failed
)


def start_metrics_server(port: int) -> None:
    """Expose the default registry over HTTP. Port 0 disables exposition."""
    if port:
        start_http_server(port)
