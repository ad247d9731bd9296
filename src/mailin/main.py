"""Gateway entry point.

Wires the adapters into a SessionOrchestrator, starts the SMTP listener and
serves until interrupted.

Usage:
    mailin --port 2500 --tmp .tmp --webhook http://localhost:3000/webhook
"""

import argparse
import logging
import signal
import threading
from typing import List, Optional

from .config import PipelineConfig, Settings, get_settings
from .domain.mail.ports.staging_store_port import StagingError
from .infrastructure.auth.dkim_spf_validator import DkimSpfValidator, is_validator_runtime_available
from .infrastructure.ingest.smtp_server import ListenerStartError, SmtpListener
from .infrastructure.language.langdetect_detector import LangdetectLanguageDetector
from .infrastructure.storage.local_staging_store import LocalStagingStore
from .infrastructure.webhook.webhook_dispatcher import HttpWebhookDispatcher
from .observability.logging_config import configure_logging
from .observability.metrics import start_metrics_server
from .workers.session_orchestrator import SessionOrchestrator

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="mailin",
        description="Receive mail over SMTP and forward it, parsed, to a webhook.",
    )
    parser.add_argument("--host", help="bind address")
    parser.add_argument("--port", type=int, help="SMTP port to listen on")
    parser.add_argument("--tmp", help="staging directory")
    parser.add_argument("--webhook", help="URL receiving the parsed messages")
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING or ERROR")
    return parser.parse_args(argv)


def apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    """Return settings with command line values taking precedence."""
    overrides = {
        "HOST": args.host,
        "PORT": args.port,
        "TMP": args.tmp,
        "WEBHOOK": args.webhook,
        "LOG_LEVEL": args.log_level,
    }
    return settings.model_copy(update={k: v for k, v in overrides.items() if v is not None})


def build_listener(settings: Settings) -> SmtpListener:
    """Create the staging directory, detect the validator runtime and wire everything.

    Raises:
        StagingError: If the staging directory cannot be created
    """
    staging_store = LocalStagingStore(settings.TMP)
    staging_store.ensure_directory()

    validator_available = is_validator_runtime_available()
    config = PipelineConfig.from_settings(settings, validator_available=validator_available)

    orchestrator = SessionOrchestrator(
        staging_store=staging_store,
        validator=DkimSpfValidator() if validator_available else None,
        language_detector=LangdetectLanguageDetector(),
        dispatcher=HttpWebhookDispatcher(
            url=settings.WEBHOOK,
            timeout=settings.WEBHOOK_TIMEOUT,
            field_name=settings.WEBHOOK_FIELD,
        ),
        config=config,
    )

    return SmtpListener(
        orchestrator,
        host=settings.HOST,
        port=settings.PORT,
        banner=settings.SMTP_BANNER,
        max_message_size=settings.SMTP_MAX_SIZE,
    )


def main(argv: Optional[List[str]] = None) -> int:
    settings = apply_overrides(get_settings(), parse_args(argv))
    configure_logging(settings.LOG_LEVEL, json_format=settings.LOG_JSON)

    logger.info("=== Mailin SMTP Gateway Starting ===")
    logger.info(f"SMTP Bind: {settings.HOST}:{settings.PORT}")
    logger.info(f"Staging directory: {settings.TMP}")
    logger.info(f"Webhook: {settings.WEBHOOK}")

    try:
        listener = build_listener(settings)
        listener.start()
    except (ListenerStartError, StagingError) as e:
        logger.error(f"Gateway failed to start: {e}")
        return 1

    start_metrics_server(settings.METRICS_PORT)

    stop = threading.Event()
    signal.signal(signal.SIGTERM, lambda *_: stop.set())

    try:
        while not stop.wait(1.0):
            pass
    except KeyboardInterrupt:
        logger.info("Received interrupt signal")
    finally:
        logger.info("Shutting down SMTP server...")
        listener.stop(grace_seconds=settings.SHUTDOWN_GRACE_SECONDS)

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
