"""Session Orchestrator for SMTP-received messages.

Owns one MailSession per message from DATA to staging disposal:

1. on_session_start: allocate a unique staging id and open the artifact
2. on_data_chunk: append body bytes in arrival order
3. on_data_complete: hand the session to a background pipeline and return the
   SMTP acknowledgment right away (the client never waits for the pipeline)
4. process: run the task graph

       dkim ─┐
       spf  ─┼─────────────────────────┐
       mail ─┴─> language ──> envelope ──> delivery

   then dispose the staging artifact, whatever happened.

With PipelineConfig.normalize_after_auth the mail step also waits for both
verdicts, reproducing the historical ordering. Any step raising stops
composition and delivery for that session only.
"""

import asyncio
import logging
import time
from functools import partial
from typing import AsyncIterator, Awaitable, Callable, Dict, Iterable, Optional, Set, Tuple

from ..config import PipelineConfig
from ..domain.mail.body_policy import complete_bodies
from ..domain.mail.envelope import AuthenticationResult, MailEnvelope, NormalizedMail, ParsedMail, verdict_label
from ..domain.mail.ports.authentication_port import AuthenticationValidatorPort
from ..domain.mail.ports.language_detector_port import LanguageDetectorPort
from ..domain.mail.ports.staging_store_port import StagedArtifact, StagingError, StagingStorePort
from ..domain.mail.ports.webhook_port import DeliveryOutcome, WebhookDispatcherPort
from ..domain.mail.session import MailSession, SessionState, make_staging_id
from ..domain.pipeline.task_graph import GraphRun, TaskGraph
from ..infrastructure.ingest.mime_parser import parse_staged_mail
from ..observability.metrics import (
    auth_verdicts_total,
    messages_received_total,
    pipeline_duration_seconds,
    pipeline_outcomes_total,
)
from ..observability.session_id import reset_session_id, set_session_id

logger = logging.getLogger(__name__)

MailParser = Callable[[AsyncIterator[bytes]], Awaitable[ParsedMail]]

ACK_QUEUED = "250 OK: queued as {staging_id}"
ACK_LOCAL_ERROR = "451 Requested action aborted: local error in processing"


class SessionOrchestrator:
    """Drives staging and the per-message pipeline.

    Args:
        staging_store: Where raw message bytes wait for the pipeline
        validator: DKIM/SPF validator, required when config.validator_available
        language_detector: Language guessing for the text body
        dispatcher: Webhook delivery
        config: Process-wide pipeline parameters fixed at startup
        mail_parser: Coroutine turning staged chunks into a ParsedMail
    """

    def __init__(
        self,
        staging_store: StagingStorePort,
        validator: Optional[AuthenticationValidatorPort],
        language_detector: LanguageDetectorPort,
        dispatcher: WebhookDispatcherPort,
        config: PipelineConfig,
        mail_parser: MailParser = parse_staged_mail,
    ):
        if config.validator_available and validator is None:
            raise ValueError("A validator is required when the validator runtime is available")

        self.staging_store = staging_store
        self.validator = validator
        self.language_detector = language_detector
        self.dispatcher = dispatcher
        self.config = config
        self.mail_parser = mail_parser

        self._live: Dict[str, MailSession] = {}
        self._background: Set[asyncio.Task] = set()

    @property
    def live_session_ids(self) -> Set[str]:
        return set(self._live)

    @property
    def pending_pipelines(self) -> int:
        return len(self._background)

    def _new_staging_id(self) -> str:
        staging_id = make_staging_id()
        while staging_id in self._live:
            staging_id = make_staging_id()
        return staging_id

    # ------------------------------------------------------------------
    # Listener events
    # ------------------------------------------------------------------

    async def on_session_start(
        self,
        envelope_from: str,
        remote_address: str,
        remote_host: str,
        rcpt_tos: Iterable[str] = (),
    ) -> MailSession:
        """Create the session and open its staging artifact.

        A staging failure is recorded on the session, never raised: the
        session still runs to DONE so its cleanup happens in one place.
        """
        session = MailSession(
            staging_id=self._new_staging_id(),
            envelope_from=envelope_from,
            remote_address=remote_address,
            remote_host=remote_host,
            rcpt_tos=list(rcpt_tos),
        )
        self._live[session.staging_id] = session
        logger.info(
            f"Receiving message from {envelope_from}: staging_id={session.staging_id}",
            extra={"remote_address": remote_address},
        )

        opening = asyncio.ensure_future(self.staging_store.begin(session.staging_id))
        try:
            session.writer = await asyncio.shield(opening)
        except StagingError as e:
            logger.error(f"Cannot stage message from {envelope_from}: {e}")
            session.error = e
        except asyncio.CancelledError:
            # Connection dropped while the artifact was being opened
            await self._abandon(session, opening)
            raise

        return session

    async def on_data_chunk(self, session: MailSession, chunk: bytes) -> None:
        if session.failed:
            return
        try:
            await self.staging_store.append(session.writer, chunk)
        except StagingError as e:
            logger.error(f"Staging write failed for {session.staging_id}: {e}")
            session.error = e
            return
        session.bytes_received += len(chunk)

    def on_data_complete(self, session: MailSession) -> str:
        """Schedule the pipeline and return the acknowledgment for the client.

        Must be called from a coroutine running on the event loop.
        """
        logger.info(
            f"Processing message from {session.envelope_from}: "
            f"staging_id={session.staging_id}, size={session.bytes_received} bytes"
        )
        messages_received_total.inc()

        task = asyncio.create_task(self.process(session))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

        if session.failed:
            return ACK_LOCAL_ERROR
        return ACK_QUEUED.format(staging_id=session.staging_id)

    async def on_connection_lost(self, session: MailSession) -> None:
        """End a session whose connection dropped before data-complete."""
        logger.warning(f"Connection lost while receiving message {session.staging_id}")
        await self._finish(session)

    async def _abandon(self, session: MailSession, opening: asyncio.Future) -> None:
        """Let a half-done staging open settle, then end the session."""
        logger.warning(f"Connection lost while opening staging for {session.staging_id}")
        try:
            session.writer = await opening
        except StagingError as e:
            session.error = e
        await self._finish(session)

    async def drain(self, timeout: Optional[float] = None) -> bool:
        """Wait for background pipelines.

        Returns:
            bool: True if all pipelines finished within timeout
        """
        pending = set(self._background)
        if not pending:
            return True
        _, not_done = await asyncio.wait(pending, timeout=timeout)
        if not_done:
            logger.warning(f"{len(not_done)} pipeline(s) still running after {timeout}s")
        return not not_done

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def process(self, session: MailSession) -> Optional[MailEnvelope]:
        """Run the pipeline for one session and always dispose its staging.

        Returns:
            Optional[MailEnvelope]: The composed envelope, None if a step failed
        """
        token = set_session_id(session.staging_id)
        started = time.monotonic()
        outcome = "aborted"
        envelope = None

        try:
            if session.failed:
                logger.error(
                    f"Dropping message from {session.envelope_from}: staging failed ({session.error})"
                )
            else:
                envelope, delivery = await self._run_pipeline(session)
                if delivery is not None:
                    outcome = "delivered" if delivery.delivered else "delivery_failed"
        except Exception as e:
            session.error = session.error or e
            logger.error(f"Pipeline error for {session.staging_id}: {e}", exc_info=True)
        finally:
            await self._finish(session)
            pipeline_outcomes_total.labels(outcome=outcome).inc()
            pipeline_duration_seconds.observe(time.monotonic() - started)
            logger.info("End processing message.")
            reset_session_id(token)

        return envelope

    async def _run_pipeline(
        self, session: MailSession
    ) -> Tuple[Optional[MailEnvelope], Optional[DeliveryOutcome]]:
        artifact = await self.staging_store.finalize(session.writer)
        session.transition(SessionState.STAGED)

        graph = self.build_graph(session, artifact)
        session.transition(SessionState.ANALYZING)
        run = await graph.run()

        if run.failures:
            self._report_failures(session, run)
            return None, None

        return run.results["envelope"], run.results["delivery"]

    def build_graph(self, session: MailSession, artifact: StagedArtifact) -> TaskGraph:
        """Declare the per-message task graph."""
        mail_after = ("dkim", "spf") if self.config.normalize_after_auth else ()

        graph = TaskGraph()
        graph.add("dkim", partial(self._validate_dkim, artifact))
        graph.add("spf", partial(self._validate_spf, session))
        graph.add("mail", partial(self._normalize, artifact), after=mail_after)
        graph.add("language", self._detect_language, requires=("mail",))
        graph.add(
            "envelope",
            partial(self._compose, session),
            requires=("dkim", "spf", "mail", "language"),
        )
        graph.add("delivery", partial(self._deliver, session), requires=("envelope",))
        return graph

    async def _validate_dkim(self, artifact: StagedArtifact) -> bool:
        if not self.config.validator_available:
            verdict = False
        else:
            raw_message = await self.staging_store.read(artifact)
            verdict = await self.validator.validate_dkim(raw_message)

        auth_verdicts_total.labels(check="dkim", verdict=verdict_label(verdict)).inc()
        return verdict

    async def _validate_spf(self, session: MailSession) -> bool:
        if not self.config.validator_available:
            verdict = False
        else:
            verdict = await self.validator.validate_spf(
                session.remote_address, session.envelope_from, session.remote_host
            )

        auth_verdicts_total.labels(check="spf", verdict=verdict_label(verdict)).inc()
        return verdict

    async def _normalize(self, artifact: StagedArtifact) -> NormalizedMail:
        parsed = await self.mail_parser(self.staging_store.stream(artifact))
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"Parsed mail: {parsed.model_dump_json(by_alias=True)}")
        return complete_bodies(parsed)

    async def _detect_language(self, mail: NormalizedMail) -> str:
        candidates = await self.language_detector.detect(mail.text, self.config.language_candidates)
        if not candidates:
            logger.info("Unable to detect language for the current message.")
            return ""

        logger.info(f"Potential languages: {[(c.language, c.confidence) for c in candidates]}")
        return max(candidates, key=lambda candidate: candidate.confidence).language

    async def _compose(
        self,
        session: MailSession,
        dkim: bool,
        spf: bool,
        mail: NormalizedMail,
        language: str,
    ) -> MailEnvelope:
        session.transition(SessionState.COMPOSING)
        logger.info(f"Verdicts: dkim={verdict_label(dkim)}, spf={verdict_label(spf)}, language={language!r}")
        return MailEnvelope.compose(mail, AuthenticationResult(dkim=dkim, spf=spf), language)

    async def _deliver(self, session: MailSession, envelope: MailEnvelope) -> DeliveryOutcome:
        session.transition(SessionState.DELIVERING)
        return await self.dispatcher.dispatch(envelope)

    def _report_failures(self, session: MailSession, run: GraphRun) -> None:
        for name, error in run.failures.items():
            logger.error(f"Step {name} failed for {session.staging_id}: {error}", exc_info=error)
        if run.skipped:
            logger.warning(f"Not run after failure: {', '.join(sorted(run.skipped))}")
        session.error = session.error or next(iter(run.failures.values()))

    async def _finish(self, session: MailSession) -> None:
        if session.state is SessionState.DONE:
            return

        if session.writer is not None and not session.writer.closed:
            await self.staging_store.release(session.writer)

        try:
            await self.staging_store.dispose(session.staging_id)
        except Exception as e:
            logger.error(f"Cleanup failed for {session.staging_id}: {e}")

        session.transition(SessionState.DONE)
        self._live.pop(session.staging_id, None)
