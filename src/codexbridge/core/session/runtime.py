"""
CodexSession — a Session bound to its live process and update scheduler.

The model in ``models.py`` knows how output changes state; this class knows
where output comes from and where renders go:

    ProcessHandle.on_data ─→ Session.feed ─→ UpdateScheduler.touch
    ProcessHandle.on_exit ─→ Session.drain + mark_closed ─→ flush_final
    stop()                ─→ mark_stopped + SIGTERM ─→ flush_final

Once the session is terminal the handle's callbacks stay wired but do
nothing: late output and a late exit after a stop are no-ops.
"""

from __future__ import annotations

import signal
from collections.abc import Callable

import structlog

from codexbridge.adapters.codex import CodexAdapter
from codexbridge.core.config import StreamingConfig
from codexbridge.core.exceptions import ProcessNotRunning, SpawnFailure
from codexbridge.core.scheduler.timer import ResettableTimer
from codexbridge.core.scheduler.updates import Renderer, UpdateScheduler
from codexbridge.core.session.models import DisplaySnapshot, Session, SessionPhase
from codexbridge.os.tty.base import ProcessHandle, Spawner

logger = structlog.get_logger()

EndCallback = Callable[["CodexSession"], None]


class CodexSession:
    """One running Codex process and the Slack thread it reports to."""

    def __init__(
        self,
        session: Session,
        adapter: CodexAdapter,
        renderer: Renderer,
        *,
        streaming: StreamingConfig | None = None,
        on_end: EndCallback | None = None,
    ) -> None:
        streaming = streaming or StreamingConfig()
        self.session = session
        self.scheduler = UpdateScheduler(
            session,
            renderer,
            debounce_s=streaming.debounce_s,
            inactivity_s=streaming.inactivity_s,
        )
        self._adapter = adapter
        self._start_timeout_s = streaming.start_timeout_s
        self._start_timer = ResettableTimer(self._on_start_timeout)
        self._handle: ProcessHandle | None = None
        self._on_end = on_end
        self._ended = False

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def session_key(self) -> str:
        return self.session.session_key

    @property
    def thread_id(self) -> str:
        return self.session.thread_id

    @property
    def phase(self) -> SessionPhase:
        return self.session.phase

    @property
    def is_live(self) -> bool:
        return self.session.is_live

    @property
    def handle(self) -> ProcessHandle | None:
        return self._handle

    def snapshot(self) -> DisplaySnapshot:
        return self.session.snapshot()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self, spawner: Spawner) -> None:
        """
        Spawn the Codex process for this session's task.

        On failure the session ends ``errored`` (with a final render) and
        SpawnFailure is raised carrying the session key.
        """
        config = self._adapter.pty_config(self.session.task)
        try:
            handle = spawner(config)
        except SpawnFailure as exc:
            logger.error("session_spawn_failed", session_key=self.session_key, error=str(exc))
            if self.session.mark_errored(str(exc)):
                self._finish()
            raise SpawnFailure(str(exc), session_key=self.session_key) from exc

        self._handle = handle
        handle.set_callbacks(self._on_data, self._on_exit)
        self._start_timer.arm(self._start_timeout_s)
        logger.info(
            "session_started",
            session_key=self.session_key,
            thread_id=self.thread_id,
            pid=handle.pid,
        )

    def send_input(self, text: str) -> bool:
        """Type *text* into the process. False if the session is not live."""
        if not self.session.is_live or self._handle is None:
            return False
        try:
            self._handle.write(self._adapter.encode_input(text))
        except ProcessNotRunning:
            logger.debug("session_input_rejected", session_key=self.session_key)
            return False
        logger.info("session_input_sent", session_key=self.session_key, length=len(text))
        return True

    def stop(self) -> bool:
        """
        Stop the session at the user's request.

        The buffer so far is kept for the final "stopped" render; the process
        is sent SIGTERM and its eventual exit only records the exit code.
        Returns False if the session was already terminal.
        """
        if not self.session.mark_stopped():
            return False
        if self._handle is not None:
            try:
                self._handle.kill(signal.SIGTERM)
            except ProcessNotRunning:
                logger.debug("session_stop_process_gone", session_key=self.session_key)
        logger.info("session_stopped", session_key=self.session_key)
        self._finish()
        return True

    # ------------------------------------------------------------------
    # Process callbacks
    # ------------------------------------------------------------------

    def _on_data(self, chunk: str) -> None:
        if not self.session.feed(chunk):
            return
        self._start_timer.cancel()
        self.scheduler.touch()

    def _on_exit(self, code: int | None, sig: int | None) -> None:
        exit_code = code if code is not None else (128 + sig if sig else None)
        if self.session.is_terminal:
            self.session.record_exit(exit_code)
            logger.debug("session_late_exit", session_key=self.session_key, exit_code=exit_code)
            return
        self.session.drain()
        self.session.mark_closed(exit_code)
        logger.info("session_closed", session_key=self.session_key, exit_code=exit_code)
        self._finish()

    def _on_start_timeout(self) -> None:
        if self.session.phase != SessionPhase.STARTING:
            return
        if self._handle is not None:
            # A handle that already died is reported by on_exit with its code.
            if self._handle.is_alive():
                self.session.mark_running()
                self.scheduler.request()
            return
        logger.warning("session_start_timeout", session_key=self.session_key)
        if self.session.mark_errored("Codex process did not start"):
            self._finish()

    # ------------------------------------------------------------------
    # End
    # ------------------------------------------------------------------

    def _finish(self) -> None:
        if self._ended:
            return
        self._ended = True
        self._start_timer.cancel()
        self.scheduler.flush_final()
        if self._on_end is not None:
            self._on_end(self)
