"""Session ID management for log correlation.

Carries the staging identifier of the message being processed across the
async tasks of its pipeline, so interleaved sessions keep separate ids.
"""

from contextvars import ContextVar, Token
from typing import Optional

# Context variable for session_id (async-safe)
session_id_var: ContextVar[Optional[str]] = ContextVar("session_id", default=None)


def get_session_id() -> str:
    """Get current session ID from context.

    Returns:
        str: Current session ID or "no-session" if not set
    """
    return session_id_var.get() or "no-session"


def set_session_id(session_id: str) -> Token:
    """Set session ID in current context.

    Args:
        session_id: Staging identifier of the session being processed

    Returns:
        Token: Token usable with reset_session_id()
    """
    return session_id_var.set(session_id)


def reset_session_id(token: Token) -> None:
    session_id_var.reset(token)
