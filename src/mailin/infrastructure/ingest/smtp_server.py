"""SMTP listener built on the aiosmtpd Controller.

The Controller runs the protocol engine on its own event loop in a background
thread; every session pipeline runs on that same loop.
"""

import asyncio
import logging
from typing import List, Optional

from aiosmtpd.controller import Controller
from aiosmtpd.smtp import SMTP

from ...workers.session_orchestrator import SessionOrchestrator
from .smtp_handler import STREAM_CHUNK_SIZE, MailinSMTPHandler

logger = logging.getLogger(__name__)

PRIVILEGED_PORT_LIMIT = 1024


class ListenerStartError(Exception):
    """Raised when the listening socket cannot be bound."""
    pass


def describe_bind_failure(port: int, error: BaseException) -> List[str]:
    """Log lines explaining why the listener could not start.

    Example:
        >>> describe_bind_failure(25, PermissionError(13, "Permission denied"))[1]
        'Ports under 1024 require root privileges.'
    """
    lines = [f"Could not start server on port {port}."]
    if port < PRIVILEGED_PORT_LIMIT:
        lines.append(f"Ports under {PRIVILEGED_PORT_LIMIT} require root privileges.")
    lines.append(str(error))
    return lines


class MailinSMTP(SMTP):
    """SMTP protocol instance that logs connection open and close."""

    def connection_made(self, transport):
        super().connection_made(transport)
        logger.info(f"Connection opened: peer={self.session.peer}")

    def connection_lost(self, error):
        peer = self.session.peer if self.session is not None else None
        logger.info(f"Connection closed: peer={peer}")
        super().connection_lost(error)


class MailinController(Controller):
    """Controller producing MailinSMTP protocol instances."""

    def factory(self):
        return MailinSMTP(self.handler, **self.SMTP_kwargs)


class SmtpListener:
    """Accepts SMTP connections and feeds the orchestrator.

    Example:
        listener = SmtpListener(orchestrator, host="0.0.0.0", port=2500)
        listener.start()
        ...
        listener.stop(grace_seconds=30)
    """

    def __init__(
        self,
        orchestrator: SessionOrchestrator,
        host: str = "0.0.0.0",
        port: int = 2500,
        banner: str = "Mailin Smtp Server",
        max_message_size: int = 26_214_400,
        chunk_size: int = STREAM_CHUNK_SIZE,
        ready_timeout: float = 5.0,
    ):
        self.orchestrator = orchestrator
        self.host = host
        self.port = port
        self.handler = MailinSMTPHandler(orchestrator, chunk_size=chunk_size)
        self.controller = MailinController(
            self.handler,
            hostname=host,
            port=port,
            ready_timeout=ready_timeout,
            ident=banner,
            data_size_limit=max_message_size,
            enable_SMTPUTF8=True,
        )
        self._running = False

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self.controller.loop

    def start(self) -> None:
        """Bind and start serving.

        Raises:
            ListenerStartError: If the socket cannot be bound
        """
        try:
            self.controller.start()
        except OSError as e:
            for line in describe_bind_failure(self.port, e):
                logger.error(line)
            raise ListenerStartError(f"Could not start server on port {self.port}: {e}") from e

        self._running = True
        logger.info(f"Mailin Smtp server listening on port {self.port}")

    def drain(self, timeout: Optional[float] = None) -> bool:
        """Block until in-flight pipelines finish (called from another thread)."""
        if not self._running:
            return True
        future = asyncio.run_coroutine_threadsafe(self.orchestrator.drain(timeout), self.loop)
        return future.result(None if timeout is None else timeout + 5)

    def stop(self, grace_seconds: Optional[float] = None) -> None:
        """Stop accepting connections, letting in-flight pipelines finish first."""
        if not self._running:
            return
        if not self.drain(grace_seconds):
            logger.warning("Stopping with pipelines still in flight")
        self.controller.stop()
        self._running = False
        logger.info("SMTP server stopped")
