"""Mail domain: session lifecycle, envelope schema and body policy."""

from .body_policy import EMPTY_HTML, complete_bodies, convert_html_to_text, convert_text_to_html
from .envelope import (
    FAILED,
    PASS,
    AttachmentMetadata,
    AuthenticationResult,
    LanguageCandidate,
    MailEnvelope,
    NormalizedMail,
    ParsedMail,
    verdict_label,
)
from .session import (
    ALLOWED_TRANSITIONS,
    InvalidTransitionError,
    MailSession,
    SessionState,
    can_transition,
    make_staging_id,
)

__all__ = [
    "EMPTY_HTML",
    "complete_bodies",
    "convert_html_to_text",
    "convert_text_to_html",
    "FAILED",
    "PASS",
    "AttachmentMetadata",
    "AuthenticationResult",
    "LanguageCandidate",
    "MailEnvelope",
    "NormalizedMail",
    "ParsedMail",
    "verdict_label",
    "ALLOWED_TRANSITIONS",
    "InvalidTransitionError",
    "MailSession",
    "SessionState",
    "can_transition",
    "make_staging_id",
]
