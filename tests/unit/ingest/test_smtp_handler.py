"""Unit tests for the aiosmtpd DATA handler"""

import asyncio

import pytest
from aiosmtpd.smtp import Envelope, Session

from conftest import HTML_ONLY_MESSAGE, FakeValidator
from mailin.infrastructure.ingest.smtp_handler import MailinSMTPHandler
from mailin.infrastructure.storage.local_staging_store import LocalStagingStore
from mailin.workers.session_orchestrator import ACK_LOCAL_ERROR


def _smtp_objects(content: bytes):
    session = Session(asyncio.get_running_loop())
    session.peer = ("203.0.113.5", 40123)
    session.host_name = "mx.example.com"

    envelope = Envelope()
    envelope.mail_from = "alice@example.com"
    envelope.rcpt_tos = ["bob@example.org"]
    envelope.original_content = content
    envelope.content = content
    return session, envelope


class TestHandlerHelpers:
    """Test extraction of peer address and raw content"""

    def test_remote_address_from_peer_tuple(self):
        session = Session(None)
        session.peer = ("198.51.100.7", 25)
        assert MailinSMTPHandler.remote_address(session) == "198.51.100.7"

    def test_raw_content_prefers_original_bytes(self):
        envelope = Envelope()
        envelope.original_content = b"raw"
        envelope.content = "decoded"
        assert MailinSMTPHandler.raw_content(envelope) == b"raw"

    def test_raw_content_encodes_text(self):
        envelope = Envelope()
        envelope.content = "Subject: hi\r\n\r\nbody"
        assert MailinSMTPHandler.raw_content(envelope) == b"Subject: hi\r\n\r\nbody"


class TestHandleData:
    """Test DATA transactions relayed to the orchestrator"""

    @pytest.mark.asyncio
    async def test_acknowledges_with_staging_id(self, make_orchestrator, dispatcher):
        orchestrator = make_orchestrator()
        handler = MailinSMTPHandler(orchestrator)
        session, envelope = _smtp_objects(HTML_ONLY_MESSAGE)

        reply = await handler.handle_DATA(None, session, envelope)
        assert await orchestrator.drain(timeout=10)

        assert reply.startswith("250 OK: queued as ")
        assert len(reply.rsplit(" ", 1)[1]) == 40
        assert len(dispatcher.envelopes) == 1

    @pytest.mark.asyncio
    async def test_chunks_staged_in_order(self, make_orchestrator):
        """Test the message is staged byte for byte across small chunks"""
        validator = FakeValidator()
        orchestrator = make_orchestrator(validator=validator, validator_available=True)
        handler = MailinSMTPHandler(orchestrator, chunk_size=16)
        session, envelope = _smtp_objects(HTML_ONLY_MESSAGE)

        await handler.handle_DATA(None, session, envelope)
        assert await orchestrator.drain(timeout=10)

        assert validator.dkim_calls == [HTML_ONLY_MESSAGE]
        assert validator.spf_calls == [("203.0.113.5", "alice@example.com", "mx.example.com")]

    @pytest.mark.asyncio
    async def test_staging_failure_answers_451(self, tmp_path, make_orchestrator, dispatcher):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        orchestrator = make_orchestrator(store=LocalStagingStore(blocker / "staging"))
        handler = MailinSMTPHandler(orchestrator)
        session, envelope = _smtp_objects(HTML_ONLY_MESSAGE)

        reply = await handler.handle_DATA(None, session, envelope)
        assert await orchestrator.drain(timeout=10)

        assert reply == ACK_LOCAL_ERROR
        assert dispatcher.envelopes == []
        assert orchestrator.live_session_ids == set()

    @pytest.mark.asyncio
    async def test_cancel_while_opening_staging_cleans_up(self, staging_store, make_orchestrator, dispatcher):
        """Test a connection dropped during the staging open leaves no session or artifact"""

        class SlowOpenStore(LocalStagingStore):
            async def begin(self, staging_id):
                writer = await super().begin(staging_id)
                await asyncio.sleep(0.3)
                return writer

        store = SlowOpenStore(staging_store.directory)
        orchestrator = make_orchestrator(store=store)
        handler = MailinSMTPHandler(orchestrator)
        session, envelope = _smtp_objects(HTML_ONLY_MESSAGE)

        task = asyncio.ensure_future(handler.handle_DATA(None, session, envelope))
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert orchestrator.live_session_ids == set()
        assert orchestrator.pending_pipelines == 0
        assert store.list_artifacts() == []
        assert dispatcher.envelopes == []
