"""
SlackRenderer — draws session snapshots into their Slack anchor messages.

The UpdateScheduler is the only caller. Each render replaces the whole
anchor message (``chat.update``) with blocks chosen by the session phase.
"""

from __future__ import annotations

from typing import Any

import structlog

from codexbridge.channels.base import BaseChannel
from codexbridge.channels.slack import blocks as b
from codexbridge.core.constants import MAX_OUTPUT_CHARS
from codexbridge.core.exceptions import RenderFlushFailure
from codexbridge.core.prompt.models import PromptType
from codexbridge.core.session.models import DisplaySnapshot, SessionPhase

logger = structlog.get_logger()

_FALLBACK_TEXT = {
    SessionPhase.STARTING: "Codex is starting...",
    SessionPhase.RUNNING: "Codex is running...",
    SessionPhase.AWAITING_INPUT: "Codex is waiting for your input.",
    SessionPhase.STOPPED: "Codex was stopped.",
    SessionPhase.CLOSED: "Codex has finished.",
    SessionPhase.ERRORED: "Codex could not be started.",
}


def build_blocks(
    snapshot: DisplaySnapshot, max_chars: int = MAX_OUTPUT_CHARS
) -> list[dict[str, Any]]:
    """Choose the message layout for *snapshot*."""
    output = snapshot.display_text
    key = snapshot.session_key
    phase = snapshot.phase

    if phase == SessionPhase.CLOSED:
        return b.completed_blocks(output, snapshot.exit_code, max_chars=max_chars)
    if phase == SessionPhase.STOPPED:
        return b.stopped_blocks(output, max_chars=max_chars)
    if phase == SessionPhase.ERRORED:
        return b.errored_blocks(output, snapshot.error, max_chars=max_chars)
    if snapshot.is_waiting_for_input:
        return b.input_prompt_blocks(
            output,
            key,
            snapshot.prompt_type or PromptType.GENERAL,
            snapshot.suggestion,
            max_chars=max_chars,
        )
    if snapshot.inactive:
        return b.inactivity_blocks(output, key, max_chars=max_chars)
    return b.output_blocks(output, key, running=True, max_chars=max_chars)


class SlackRenderer:
    """Renderer sink backed by a chat channel."""

    def __init__(self, channel: BaseChannel, *, max_output_chars: int = MAX_OUTPUT_CHARS) -> None:
        self._channel = channel
        self._max_chars = max_output_chars

    async def render(self, snapshot: DisplaySnapshot) -> None:
        ok = await self._channel.update_message(
            snapshot.conversation_id,
            snapshot.anchor_message_id,
            text=_FALLBACK_TEXT[snapshot.phase],
            blocks=build_blocks(snapshot, self._max_chars),
        )
        if not ok:
            raise RenderFlushFailure(f"chat.update failed for {snapshot.session_key}")
        logger.debug(
            "session_rendered",
            session_key=snapshot.session_key,
            phase=snapshot.phase,
            chars=len(snapshot.display_text),
        )
