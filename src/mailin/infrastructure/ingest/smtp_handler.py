"""SMTP Handler for inbound mail.

Implements the aiosmtpd handler that turns one DATA transaction into the
session events consumed by the SessionOrchestrator:

1. session start (envelope-from, peer address, HELO host)
2. body chunks, in arrival order
3. data complete, whose return value is the reply sent to the client

The reply is issued as soon as the bytes are staged. Authentication, parsing
and webhook delivery happen afterwards in the background, so the sender is
never told about their outcome.
"""

import asyncio
import logging
from typing import Union

from aiosmtpd.smtp import Envelope, Session, SMTP

from ...workers.session_orchestrator import SessionOrchestrator

logger = logging.getLogger(__name__)

STREAM_CHUNK_SIZE = 8192


class MailinSMTPHandler:
    """aiosmtpd handler relaying DATA transactions to the orchestrator.

    aiosmtpd hands over the whole DATA payload at once; it is relayed in
    STREAM_CHUNK_SIZE slices so staging writes stay bounded.
    """

    def __init__(self, orchestrator: SessionOrchestrator, chunk_size: int = STREAM_CHUNK_SIZE):
        """Initialize SMTP handler.

        Args:
            orchestrator: Session orchestrator receiving the session events
            chunk_size: Size of the slices appended to staging
        """
        self.orchestrator = orchestrator
        self.chunk_size = chunk_size

    @staticmethod
    def remote_address(session: Session) -> str:
        """Peer IP address (empty for non-IP transports)."""
        peer = session.peer
        if isinstance(peer, (tuple, list)) and peer:
            return str(peer[0])
        return str(peer or "")

    @staticmethod
    def raw_content(envelope: Envelope) -> bytes:
        content: Union[bytes, str, None] = envelope.original_content
        if content is None:
            content = envelope.content or b""
        if isinstance(content, str):
            content = content.encode("utf-8", errors="surrogateescape")
        return content

    async def handle_DATA(
        self,
        server: SMTP,
        session: Session,
        envelope: Envelope,
    ) -> str:
        """Handle email DATA command (main SMTP handler entry point).

        Args:
            server: SMTP server instance
            session: SMTP session
            envelope: Email envelope (content, sender, recipients)

        Returns:
            str: SMTP reply
                '250 OK: queued as <staging_id>' - Message accepted
                '451 Requested action aborted ...' - Message could not be staged
        """
        content = self.raw_content(envelope)

        mail_session = await self.orchestrator.on_session_start(
            envelope_from=envelope.mail_from or "",
            remote_address=self.remote_address(session),
            remote_host=session.host_name or "",
            rcpt_tos=envelope.rcpt_tos,
        )

        try:
            for offset in range(0, len(content), self.chunk_size):
                await self.orchestrator.on_data_chunk(
                    mail_session, content[offset:offset + self.chunk_size]
                )
        except asyncio.CancelledError:
            # Client went away while the body was being staged
            await self.orchestrator.on_connection_lost(mail_session)
            raise

        return self.orchestrator.on_data_complete(mail_session)
