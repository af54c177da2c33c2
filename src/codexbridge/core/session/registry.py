"""
Session registry.

The SessionRegistry owns every live CodexSession. It is constructed
explicitly by the daemon and handed to the Slack bot; there is no module
level instance.

Invariants:
  - At most one live session per Slack thread. A task for a thread that
    already has one is typed into it instead of spawning a new process.
  - A session leaves the registry when it ends (exit, stop or spawn
    failure). Late events for it never bring it back.

All methods must be called from the event loop thread.
"""

from __future__ import annotations

import asyncio

import structlog

from codexbridge.adapters.codex import CodexAdapter
from codexbridge.core.config import StreamingConfig
from codexbridge.core.exceptions import SessionError
from codexbridge.core.scheduler.updates import Renderer, UpdateScheduler
from codexbridge.core.session.models import DisplaySnapshot, Session
from codexbridge.core.session.runtime import CodexSession
from codexbridge.os.tty.base import Spawner

logger = structlog.get_logger()

_KEY_SEP = "-"


def make_session_key(conversation_id: str, anchor_message_id: str) -> str:
    """Key for the session reporting to *anchor_message_id* in *conversation_id*."""
    return f"{conversation_id}{_KEY_SEP}{anchor_message_id}"


def parse_session_key(session_key: str) -> tuple[str, str]:
    """
    Split a session key back into (conversation_id, anchor_message_id).

    Slack channel ids never contain the separator; message timestamps do not
    either, so the first separator is the boundary.
    """
    conversation_id, sep, anchor = session_key.partition(_KEY_SEP)
    if not sep or not conversation_id or not anchor:
        raise ValueError(f"Malformed session key: {session_key!r}")
    return conversation_id, anchor


class SessionRegistry:
    """In-memory registry of live Codex sessions."""

    def __init__(
        self,
        spawner: Spawner,
        renderer: Renderer,
        *,
        adapter: CodexAdapter | None = None,
        streaming: StreamingConfig | None = None,
    ) -> None:
        self._spawner = spawner
        self._renderer = renderer
        self._adapter = adapter or CodexAdapter()
        self._streaming = streaming or StreamingConfig()
        self._sessions: dict[str, CodexSession] = {}
        self._by_thread: dict[str, str] = {}
        self._draining: set[UpdateScheduler] = set()

    # ------------------------------------------------------------------
    # Start / resume
    # ------------------------------------------------------------------

    def start_or_resume(
        self,
        thread_id: str,
        message: str,
        *,
        conversation_id: str,
        anchor_message_id: str,
    ) -> CodexSession:
        """
        Return the live session for *thread_id*, typing *message* into it, or
        spawn a new session with *message* as its task.

        Raises SpawnFailure if the new process could not be started; the
        session has then already ended ``errored`` and is not registered.
        """
        existing = self.find_by_thread(thread_id)
        if existing is not None:
            existing.send_input(message)
            logger.info(
                "session_resumed",
                session_key=existing.session_key,
                thread_id=thread_id,
            )
            return existing

        key = make_session_key(conversation_id, anchor_message_id)
        if key in self._sessions:
            raise SessionError(f"Session {key!r} already registered")

        session = Session(
            session_key=key,
            thread_id=thread_id,
            conversation_id=conversation_id,
            anchor_message_id=anchor_message_id,
            task=message,
        )
        runtime = CodexSession(
            session,
            self._adapter,
            self._renderer,
            streaming=self._streaming,
            on_end=self._on_session_end,
        )
        self._sessions[key] = runtime
        self._by_thread[thread_id] = key
        logger.info("session_registered", session_key=key, thread_id=thread_id)

        runtime.start(self._spawner)
        return runtime

    # ------------------------------------------------------------------
    # Operations by key
    # ------------------------------------------------------------------

    def stop(self, session_key: str) -> bool:
        """Stop the session; False if no live session has this key."""
        runtime = self._sessions.get(session_key)
        if runtime is None:
            return False
        return runtime.stop()

    def send_input(self, session_key: str, text: str) -> bool:
        runtime = self._sessions.get(session_key)
        if runtime is None:
            return False
        return runtime.send_input(text)

    def is_live(self, session_key: str) -> bool:
        runtime = self._sessions.get(session_key)
        return runtime is not None and runtime.is_live

    def get(self, session_key: str) -> CodexSession | None:
        return self._sessions.get(session_key)

    def get_display_snapshot(self, session_key: str) -> DisplaySnapshot | None:
        runtime = self._sessions.get(session_key)
        return runtime.snapshot() if runtime is not None else None

    def find_by_thread(self, thread_id: str) -> CodexSession | None:
        """Return the live session bound to *thread_id*, or None."""
        key = self._by_thread.get(thread_id)
        if key is None:
            return None
        runtime = self._sessions.get(key)
        if runtime is None or not runtime.is_live:
            return None
        return runtime

    def active_sessions(self) -> list[CodexSession]:
        return [r for r in self._sessions.values() if r.is_live]

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_key: object) -> bool:
        return session_key in self._sessions

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    def stop_all(self) -> int:
        """Stop every live session. Returns how many were stopped."""
        stopped = sum(1 for runtime in list(self._sessions.values()) if runtime.stop())
        if stopped:
            logger.info("sessions_stopped_all", count=stopped)
        return stopped

    async def join(self) -> None:
        """Wait for the renders of live and ended sessions to complete."""
        schedulers = [r.scheduler for r in self._sessions.values()] + list(self._draining)
        await asyncio.gather(*(s.join() for s in schedulers))

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _on_session_end(self, runtime: CodexSession) -> None:
        key = runtime.session_key
        if self._sessions.get(key) is runtime:
            del self._sessions[key]
        if self._by_thread.get(runtime.thread_id) == key:
            del self._by_thread[runtime.thread_id]
        self._track_final_render(runtime.scheduler)
        logger.info(
            "session_unregistered",
            session_key=key,
            phase=runtime.phase,
            exit_code=runtime.session.exit_code,
        )

    def _track_final_render(self, scheduler: UpdateScheduler) -> None:
        """Hold *scheduler* for join() only until its last render has finished."""
        final = scheduler.final_render
        if final is None or final.done():
            return
        self._draining.add(scheduler)
        final.add_done_callback(lambda _: self._draining.discard(scheduler))
