"""
Session domain models.

A Session is one Codex invocation bound to one Slack thread. It owns the
output pipeline for that invocation:

    raw chunk → StreamNormalizer → LineAssembler → ContentExtractor
                                                 → input-wait detector

and the phase derived from it. The model does no I/O; the process handle and
timers live in ``CodexSession`` (runtime.py).

Phases::

    STARTING ─→ RUNNING ⇄ AWAITING_INPUT ─→ CLOSED
        │          └──────────┴────────────→ STOPPED
        └─→ ERRORED
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum

from codexbridge.core.output.extractor import ContentExtractor, LineAssembler
from codexbridge.core.output.normalizer import StreamNormalizer
from codexbridge.core.prompt.detector import detect_input_wait
from codexbridge.core.prompt.models import NOT_WAITING, InputWaitState, PromptType


class SessionPhase(StrEnum):
    STARTING = "starting"
    RUNNING = "running"
    AWAITING_INPUT = "awaiting_input"
    STOPPED = "stopped"  # Terminated by the user
    CLOSED = "closed"  # Process exited on its own
    ERRORED = "errored"  # Process never started

    @property
    def is_terminal(self) -> bool:
        return self in (SessionPhase.STOPPED, SessionPhase.CLOSED, SessionPhase.ERRORED)


@dataclass(frozen=True)
class DisplaySnapshot:
    """Everything a renderer needs to draw one session, frozen at one instant."""

    session_key: str
    thread_id: str
    conversation_id: str
    anchor_message_id: str
    phase: SessionPhase
    display_text: str
    is_waiting_for_input: bool = False
    prompt_type: PromptType | None = None
    suggestion: str | None = None
    exit_code: int | None = None
    inactive: bool = False
    error: str = ""


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


@dataclass
class Session:
    """State of one Codex invocation."""

    session_key: str
    thread_id: str
    conversation_id: str = ""
    anchor_message_id: str = ""
    task: str = ""
    phase: SessionPhase = SessionPhase.STARTING
    exit_code: int | None = None
    inactive: bool = False
    error: str = ""
    started_at: str = field(default_factory=_now_iso)
    ended_at: str = ""
    last_activity_at: float = field(default_factory=time.monotonic)
    input_wait: InputWaitState = NOT_WAITING

    _raw: list[str] = field(default_factory=list, repr=False)
    _stream: StreamNormalizer = field(default_factory=StreamNormalizer, repr=False)
    _lines: LineAssembler = field(default_factory=LineAssembler, repr=False)
    _extractor: ContentExtractor = field(default_factory=ContentExtractor, repr=False)

    # ------------------------------------------------------------------
    # Buffers
    # ------------------------------------------------------------------

    @property
    def raw_buffer(self) -> str:
        """Everything the process has written, undecoded by the pipeline."""
        return "".join(self._raw)

    @property
    def display_buffer(self) -> str:
        """The extracted reply text, one captured line per ``\\n``."""
        return self._extractor.display_buffer

    @property
    def display_text(self) -> str:
        return self.display_buffer.rstrip()

    @property
    def partial_line(self) -> str:
        return self._lines.partial

    @property
    def expecting_content(self) -> bool:
        return self._extractor.expecting_content

    @property
    def ignore_rest(self) -> bool:
        return self._extractor.ignore_rest

    # ------------------------------------------------------------------
    # Phase
    # ------------------------------------------------------------------

    @property
    def is_terminal(self) -> bool:
        return self.phase.is_terminal

    @property
    def is_live(self) -> bool:
        return not self.phase.is_terminal

    def short_key(self) -> str:
        """Trailing part of the key, enough to tell sessions apart in logs."""
        return self.session_key[-12:]

    # ------------------------------------------------------------------
    # Data
    # ------------------------------------------------------------------

    def feed(self, chunk: str) -> bool:
        """
        Append a chunk of process output and re-derive display state.

        Returns False (and changes nothing) once the session is terminal.
        """
        if self.is_terminal:
            return False

        self._raw.append(chunk)
        self.last_activity_at = time.monotonic()
        self.inactive = False

        self._extract(self._stream.feed(chunk))
        self._reevaluate()
        return True

    def drain(self) -> None:
        """Push held-back output through the pipeline when the stream ends."""
        self._extract(self._stream.flush())
        if self.is_live:
            self._reevaluate()

    def _extract(self, text: str) -> None:
        if text:
            self._extractor.feed_lines(self._lines.feed(text))

    def _reevaluate(self) -> None:
        self.input_wait = detect_input_wait(self.display_text)
        if self.phase.is_terminal:
            return
        if self.input_wait.is_waiting_for_input:
            self.phase = SessionPhase.AWAITING_INPUT
        else:
            self.phase = SessionPhase.RUNNING

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def mark_running(self) -> bool:
        if self.phase != SessionPhase.STARTING:
            return False
        self.phase = SessionPhase.RUNNING
        return True

    def mark_inactive(self) -> None:
        if self.is_live:
            self.inactive = True

    def mark_errored(self, reason: str) -> bool:
        if self.is_terminal:
            return False
        self.error = reason
        self._end(SessionPhase.ERRORED)
        return True

    def mark_closed(self, exit_code: int | None) -> bool:
        if self.is_terminal:
            self.record_exit(exit_code)
            return False
        self.exit_code = exit_code
        self._end(SessionPhase.CLOSED)
        return True

    def mark_stopped(self) -> bool:
        if self.is_terminal:
            return False
        self._end(SessionPhase.STOPPED)
        return True

    def record_exit(self, exit_code: int | None) -> None:
        """Keep the exit code of a process that exited after being stopped."""
        if self.exit_code is None:
            self.exit_code = exit_code

    def _end(self, phase: SessionPhase) -> None:
        self.phase = phase
        self.inactive = False
        self.ended_at = _now_iso()

    # ------------------------------------------------------------------
    # Snapshot
    # ------------------------------------------------------------------

    def snapshot(self) -> DisplaySnapshot:
        return DisplaySnapshot(
            session_key=self.session_key,
            thread_id=self.thread_id,
            conversation_id=self.conversation_id,
            anchor_message_id=self.anchor_message_id,
            phase=self.phase,
            display_text=self.display_text,
            is_waiting_for_input=self.input_wait.is_waiting_for_input,
            prompt_type=self.input_wait.prompt_type,
            suggestion=self.input_wait.suggestion,
            exit_code=self.exit_code,
            inactive=self.inactive,
            error=self.error,
        )
