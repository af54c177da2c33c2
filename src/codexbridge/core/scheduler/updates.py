"""
UpdateScheduler — turns a stream of data events into discrete renders.

Codex can emit dozens of PTY chunks per second; Slack allows roughly one
message update per second. Each session gets two timers:

  debounce   (~1 s) — re-armed on every data event; fires one render for the
                      whole burst
  inactivity (~5 s) — re-armed on every data event; when it fires on a live
                      session that is not waiting for input, the session is
                      marked inactive and rendered with a "still working"
                      indicator

Terminal phases call ``flush_final()``: both timers are cleared and exactly
one last render is issued with the final buffer.

Renders run as tasks and are serialised by a lock, so updates reach the
renderer in the order they were scheduled. A failing render is logged and
dropped; the next flush carries the latest state anyway.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Protocol

import structlog

from codexbridge.core.constants import DEBOUNCE_SECONDS, INACTIVITY_SECONDS
from codexbridge.core.scheduler.timer import ResettableTimer

if TYPE_CHECKING:
    from codexbridge.core.session.models import DisplaySnapshot, Session

logger = structlog.get_logger()


class Renderer(Protocol):
    """Sink that turns a session snapshot into chat-platform updates."""

    async def render(self, snapshot: DisplaySnapshot) -> None: ...


class UpdateScheduler:
    """Debounced, inactivity-aware render scheduling for one session."""

    def __init__(
        self,
        session: Session,
        renderer: Renderer,
        *,
        debounce_s: float = DEBOUNCE_SECONDS,
        inactivity_s: float = INACTIVITY_SECONDS,
    ) -> None:
        self._session = session
        self._renderer = renderer
        self._debounce_s = debounce_s
        self._inactivity_s = inactivity_s
        self._debounce = ResettableTimer(self._on_debounce)
        self._inactivity = ResettableTimer(self._on_inactivity)
        self._render_lock = asyncio.Lock()
        self._tasks: set[asyncio.Task[None]] = set()
        self._closed = False
        self._final: asyncio.Task[None] | None = None
        self.render_count = 0

    # ------------------------------------------------------------------
    # Triggers
    # ------------------------------------------------------------------

    def touch(self) -> None:
        """Record activity: restart both timers."""
        if self._closed:
            return
        self._debounce.arm(self._debounce_s)
        self._inactivity.arm(self._inactivity_s)

    def request(self) -> None:
        """Schedule a render without counting as output activity."""
        if self._closed:
            return
        self._debounce.arm(self._debounce_s)

    def flush_final(self) -> None:
        """Clear both timers and issue the last render for this session."""
        if self._closed:
            return
        self.close()
        self._final = self._schedule_render()

    def close(self) -> None:
        """Clear both timers; later triggers are ignored."""
        self._closed = True
        self._debounce.cancel()
        self._inactivity.cancel()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def final_render(self) -> asyncio.Task[None] | None:
        """The task of the last render, once flush_final() has been called."""
        return self._final

    @property
    def pending(self) -> bool:
        """True while a debounced render is waiting to fire."""
        return self._debounce.armed

    async def join(self) -> None:
        """Wait for all in-flight renders to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ------------------------------------------------------------------
    # Timer callbacks
    # ------------------------------------------------------------------

    def _on_debounce(self) -> None:
        self._schedule_render()

    def _on_inactivity(self) -> None:
        session = self._session
        if session.is_terminal:
            return
        if session.input_wait.is_waiting_for_input:
            # Waiting on the user is not "busy"; no spinner.
            return
        session.mark_inactive()
        logger.info("session_inactive", session_key=session.session_key)
        self._debounce.cancel()
        self._schedule_render()

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def _schedule_render(self) -> asyncio.Task[None]:
        snapshot = self._session.snapshot()
        task = asyncio.get_running_loop().create_task(
            self._render(snapshot), name=f"render:{snapshot.session_key}"
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _render(self, snapshot: DisplaySnapshot) -> None:
        async with self._render_lock:
            self.render_count += 1
            try:
                await self._renderer.render(snapshot)
            except Exception as exc:  # noqa: BLE001
                logger.warning(
                    "render_flush_failed",
                    session_key=snapshot.session_key,
                    phase=snapshot.phase,
                    error=str(exc),
                )
