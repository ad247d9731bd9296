"""Mail session state machine.

One session per message accepted over SMTP. The orchestrator drives it:

RECEIVING → STAGED → ANALYZING → COMPOSING → DELIVERING → DONE

DONE is reachable from every non-terminal state so that a failure at any
step still ends the session (and disposes its staging artifact) exactly once.
"""

import re
import secrets
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

STAGING_ID_BYTES = 20  # 160-bit identifier
STAGING_ID_PATTERN = re.compile(r"^[0-9a-f]{40}$")


class SessionState(str, Enum):
    """Session lifecycle states."""
    RECEIVING = "RECEIVING"    # Body bytes are being appended to staging
    STAGED = "STAGED"          # Staging artifact closed for writing
    ANALYZING = "ANALYZING"    # Authentication, parsing and language detection in flight
    COMPOSING = "COMPOSING"    # Verdicts, bodies and language merged into the envelope
    DELIVERING = "DELIVERING"  # Webhook POST in flight
    DONE = "DONE"              # Staging disposed (terminal)


ALLOWED_TRANSITIONS: Dict[SessionState, List[SessionState]] = {
    SessionState.RECEIVING: [SessionState.STAGED, SessionState.DONE],
    SessionState.STAGED: [SessionState.ANALYZING, SessionState.DONE],
    SessionState.ANALYZING: [SessionState.COMPOSING, SessionState.DONE],
    SessionState.COMPOSING: [SessionState.DELIVERING, SessionState.DONE],
    SessionState.DELIVERING: [SessionState.DONE],
    SessionState.DONE: [],
}


class InvalidTransitionError(Exception):
    """Raised when a session is moved along an edge the state machine lacks."""
    pass


def can_transition(from_state: SessionState, to_state: SessionState) -> bool:
    """Validate if a state transition is allowed

    Example:
        >>> can_transition(SessionState.RECEIVING, SessionState.STAGED)
        True
        >>> can_transition(SessionState.DONE, SessionState.RECEIVING)
        False
    """
    return to_state in ALLOWED_TRANSITIONS.get(from_state, [])


def make_staging_id() -> str:
    """Generate a random 160-bit staging identifier as 40 hex characters."""
    return secrets.token_hex(STAGING_ID_BYTES)


@dataclass
class MailSession:
    """One message in flight, from DATA to staging disposal.

    Attributes:
        staging_id: Identifier of the staging artifact owned by this session
        envelope_from: Sender address declared in MAIL FROM
        remote_address: Peer IP address
        remote_host: Host name the client announced in HELO/EHLO
        rcpt_tos: Envelope recipients
        writer: Open staging write handle while RECEIVING
        state: Current lifecycle state
        error: First staging/pipeline error, if any
    """
    staging_id: str
    envelope_from: str
    remote_address: str
    remote_host: str
    rcpt_tos: List[str] = field(default_factory=list)
    writer: Optional[Any] = None
    state: SessionState = SessionState.RECEIVING
    error: Optional[BaseException] = None
    bytes_received: int = 0

    @property
    def failed(self) -> bool:
        return self.error is not None

    def transition(self, to_state: SessionState) -> None:
        if not can_transition(self.state, to_state):
            raise InvalidTransitionError(
                f"Session {self.staging_id}: cannot move {self.state.value} -> {to_state.value}"
            )
        self.state = to_state
