"""Pytest fixtures for gateway testing.

Provides reusable test fixtures for:
- Fake implementations of the domain ports (validator, language detector, dispatcher)
- A filesystem staging store rooted in tmp_path
- An orchestrator factory and a helper running one message through it
- Sample raw messages

Usage:
    @pytest.mark.asyncio
    async def test_something(make_orchestrator, run_message):
        orchestrator = make_orchestrator()
        session, ack = await run_message(orchestrator, HTML_ONLY_MESSAGE)
"""

import sys
from pathlib import Path
from typing import List, Optional

import pytest

# Make src/ importable when running from a source checkout
SRC_DIR = Path(__file__).resolve().parent.parent / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from mailin.config import PipelineConfig
from mailin.domain.mail.envelope import LanguageCandidate, MailEnvelope
from mailin.domain.mail.ports import (
    AuthenticationValidatorPort,
    DeliveryOutcome,
    LanguageDetectorPort,
    WebhookDispatcherPort,
)
from mailin.infrastructure.storage.local_staging_store import LocalStagingStore
from mailin.workers.session_orchestrator import SessionOrchestrator


REMOTE_ADDRESS = "203.0.113.5"
REMOTE_HOST = "mx.example.com"
ENVELOPE_FROM = "alice@example.com"


class FakeValidator(AuthenticationValidatorPort):
    """Validator returning fixed verdicts and recording its calls."""

    def __init__(self, dkim: bool = True, spf: bool = True):
        self.dkim = dkim
        self.spf = spf
        self.dkim_calls: List[bytes] = []
        self.spf_calls: List[tuple] = []

    async def validate_dkim(self, raw_message: bytes) -> bool:
        self.dkim_calls.append(raw_message)
        return self.dkim

    async def validate_spf(self, remote_address: str, envelope_from: str, remote_host: str) -> bool:
        self.spf_calls.append((remote_address, envelope_from, remote_host))
        return self.spf


class FakeLanguageDetector(LanguageDetectorPort):
    """Detector returning fixed candidates."""

    def __init__(self, candidates: Optional[List[LanguageCandidate]] = None):
        self.candidates = candidates if candidates is not None else [
            LanguageCandidate("en", 0.5969),
            LanguageCandidate("hu", 0.40563),
        ]
        self.calls: List[tuple] = []

    async def detect(self, text: str, max_candidates: int = 2) -> List[LanguageCandidate]:
        self.calls.append((text, max_candidates))
        return self.candidates[:max_candidates]


class RecordingDispatcher(WebhookDispatcherPort):
    """Dispatcher recording envelopes instead of posting them."""

    def __init__(self, outcome: Optional[DeliveryOutcome] = None):
        self.outcome = outcome or DeliveryOutcome(delivered=True, status_code=200)
        self.envelopes: List[MailEnvelope] = []

    async def dispatch(self, envelope: MailEnvelope) -> DeliveryOutcome:
        self.envelopes.append(envelope)
        return self.outcome


HTML_ONLY_MESSAGE = (
    b"From: Alice <alice@example.com>\r\n"
    b"To: bob@example.org\r\n"
    b"Subject: Greetings\r\n"
    b"Message-ID: <html-only@example.com>\r\n"
    b"Date: Mon, 19 Oct 2026 10:00:00 +0000\r\n"
    b"MIME-Version: 1.0\r\n"
    b"Content-Type: text/html; charset=utf-8\r\n"
    b"\r\n"
    b"<p>Hello</p>\r\n"
)

TEXT_ONLY_MESSAGE = (
    b"From: Alice <alice@example.com>\r\n"
    b"To: bob@example.org\r\n"
    b"Subject: Plain\r\n"
    b"MIME-Version: 1.0\r\n"
    b"Content-Type: text/plain; charset=utf-8\r\n"
    b"\r\n"
    b"\r\n"
    b"Hello\r\n"
    b"World\r\n"
    b"\r\n"
)

NO_BODY_MESSAGE = (
    b"From: Alice <alice@example.com>\r\n"
    b"To: bob@example.org\r\n"
    b"Subject: Nothing to say\r\n"
    b"MIME-Version: 1.0\r\n"
    b"Content-Type: text/plain; charset=utf-8\r\n"
    b"\r\n"
)

MULTIPART_MESSAGE = (
    b"From: Alice <alice@example.com>\r\n"
    b"To: bob@example.org\r\n"
    b"Cc: carol@example.org\r\n"
    b"Subject: Report\r\n"
    b"Received: from a.example.com by b.example.com\r\n"
    b"Received: from b.example.com by c.example.com\r\n"
    b"MIME-Version: 1.0\r\n"
    b"Content-Type: multipart/mixed; boundary=\"outer\"\r\n"
    b"\r\n"
    b"--outer\r\n"
    b"Content-Type: multipart/alternative; boundary=\"inner\"\r\n"
    b"\r\n"
    b"--inner\r\n"
    b"Content-Type: text/plain; charset=utf-8\r\n"
    b"\r\n"
    b"See attached report.\r\n"
    b"--inner\r\n"
    b"Content-Type: text/html; charset=utf-8\r\n"
    b"\r\n"
    b"<p>See attached <b>report</b>.</p>\r\n"
    b"--inner--\r\n"
    b"--outer\r\n"
    b"Content-Type: text/csv; name=\"report.csv\"\r\n"
    b"Content-Disposition: attachment; filename=\"report.csv\"\r\n"
    b"Content-Transfer-Encoding: base64\r\n"
    b"\r\n"
    b"YSxiCjEsMgo=\r\n"
    b"--outer--\r\n"
)


@pytest.fixture
def staging_store(tmp_path):
    """Staging store rooted in a fresh temporary directory"""
    store = LocalStagingStore(tmp_path / "staging")
    store.ensure_directory()
    return store


@pytest.fixture
def validator():
    return FakeValidator()


@pytest.fixture
def language_detector():
    return FakeLanguageDetector()


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def make_orchestrator(staging_store, language_detector, dispatcher):
    """Factory building an orchestrator wired to the fakes"""

    def _make(
        validator: Optional[AuthenticationValidatorPort] = None,
        validator_available: bool = False,
        store=None,
        **kwargs,
    ) -> SessionOrchestrator:
        mail_parser = kwargs.pop("mail_parser", None)
        config = PipelineConfig(
            validator_available=validator_available,
            **kwargs,
        )
        extra = {"mail_parser": mail_parser} if mail_parser is not None else {}
        return SessionOrchestrator(
            staging_store=store or staging_store,
            validator=validator,
            language_detector=language_detector,
            dispatcher=dispatcher,
            config=config,
            **extra,
        )

    return _make


@pytest.fixture
def run_message():
    """Drive one message through the listener events and wait for its pipeline"""

    async def _run(orchestrator: SessionOrchestrator, raw_message: bytes, chunk_size: int = 64):
        session = await orchestrator.on_session_start(
            envelope_from=ENVELOPE_FROM,
            remote_address=REMOTE_ADDRESS,
            remote_host=REMOTE_HOST,
            rcpt_tos=["bob@example.org"],
        )
        for offset in range(0, len(raw_message), chunk_size):
            await orchestrator.on_data_chunk(session, raw_message[offset:offset + chunk_size])
        ack = orchestrator.on_data_complete(session)
        assert await orchestrator.drain(timeout=10)
        return session, ack

    return _run
