"""Codex sessions: the per-thread state machine and the registry that owns them."""

from codexbridge.core.session.models import DisplaySnapshot, Session, SessionPhase
from codexbridge.core.session.registry import (
    SessionRegistry,
    make_session_key,
    parse_session_key,
)
from codexbridge.core.session.runtime import CodexSession

__all__ = [
    "CodexSession",
    "DisplaySnapshot",
    "Session",
    "SessionPhase",
    "SessionRegistry",
    "make_session_key",
    "parse_session_key",
]
