"""
SlackBot — routes Slack conversation events to the session registry.

  @mention with a task  → post an anchor message in the thread, then
                          start a session (or type into the thread's live one)
  Stop button           → stop the session
  Suggestion button     → type the suggested reply
  Reply button          → open the reply modal
  Reply modal submitted → type the reply

Threads are identified as "{channel}:{thread_ts}" so that equal timestamps in
different channels never share a session.
"""

from __future__ import annotations

from typing import Any

import structlog

from codexbridge.channels.slack import blocks as b
from codexbridge.channels.slack.channel import SlackChannel
from codexbridge.core.exceptions import SpawnFailure
from codexbridge.core.session.registry import SessionRegistry, make_session_key, parse_session_key

logger = structlog.get_logger()

MSG_NO_TASK = (
    "❌ No task given. Mention me followed by what you want Codex to do, "
    "e.g. `@codex explain this codebase`."
)
MSG_NOT_ALLOWED = "❌ You are not allowed to use this bot."
MSG_NOT_RUNNING = "❌ The process was not found or has already stopped."
MSG_RESUMED = ":arrows_counterclockwise: Sent to the running Codex session (`{key}`)."


def thread_key(conversation_id: str, thread_ts: str) -> str:
    return f"{conversation_id}:{thread_ts}"


class SlackBot:
    """Slack event handlers for one SessionRegistry."""

    def __init__(self, registry: SessionRegistry, channel: SlackChannel) -> None:
        self._registry = registry
        self._channel = channel

    # ------------------------------------------------------------------
    # Mentions
    # ------------------------------------------------------------------

    async def handle_app_mention(self, event: dict[str, Any]) -> None:
        conversation_id = event.get("channel", "")
        ts = event.get("ts", "")
        user_id = event.get("user", "")
        thread_ts = event.get("thread_ts") or ts
        logger.info(
            "slack_mention_received",
            conversation_id=conversation_id,
            user_id=user_id,
            thread_ts=thread_ts,
        )

        if not self._channel.is_allowed(user_id):
            logger.warning("slack_mention_rejected", user_id=user_id, reason="not_allowed")
            await self._channel.post_ephemeral(conversation_id, user_id, MSG_NOT_ALLOWED)
            return

        task = b.extract_mention_text(event.get("text", ""))
        if not task:
            logger.warning("slack_empty_task", conversation_id=conversation_id, user_id=user_id)
            await self._channel.post_message(conversation_id, MSG_NO_TASK, thread_id=ts)
            return

        anchor = await self._channel.post_message(
            conversation_id, "Processing...", thread_id=thread_ts, blocks=b.loading_blocks()
        )
        if not anchor:
            logger.error("slack_anchor_post_failed", conversation_id=conversation_id)
            return

        try:
            runtime = self._registry.start_or_resume(
                thread_key(conversation_id, thread_ts),
                task,
                conversation_id=conversation_id,
                anchor_message_id=anchor,
            )
        except SpawnFailure as exc:
            # The errored session has already rendered its notice into the anchor.
            logger.warning("slack_session_spawn_failed", session_key=exc.session_key)
            return

        if runtime.session_key != make_session_key(conversation_id, anchor):
            await self._channel.update_message(
                conversation_id,
                anchor,
                text=MSG_RESUMED.format(key=runtime.session_key),
                blocks=[],
            )

    # ------------------------------------------------------------------
    # Buttons
    # ------------------------------------------------------------------

    async def handle_block_action(self, payload: dict[str, Any], action: dict[str, Any]) -> None:
        user_id = payload.get("user", {}).get("id", "")
        conversation_id = payload.get("channel", {}).get("id", "")
        action_id = action.get("action_id", "")
        value = action.get("value", "")

        if not self._channel.is_allowed(user_id):
            logger.warning("slack_action_rejected", user_id=user_id, action_id=action_id)
            await self._channel.post_ephemeral(conversation_id, user_id, MSG_NOT_ALLOWED)
            return

        if not value:
            # Buttons posted before values were attached carry only the message.
            message_ts = payload.get("message", {}).get("ts", "")
            value = make_session_key(conversation_id, message_ts)

        if action_id == b.ACTION_STOP:
            await self._stop(value, conversation_id, user_id)
        elif action_id == b.ACTION_SEND_SUGGESTION:
            session_key, suggestion = b.split_suggestion_value(value)
            await self._send(session_key, suggestion, conversation_id, user_id)
        elif action_id == b.ACTION_OPEN_INPUT_MODAL:
            trigger_id = payload.get("trigger_id", "")
            if not await self._channel.open_view(trigger_id, b.input_modal_view(value)):
                logger.warning("slack_modal_open_failed", session_key=value)
        else:
            logger.debug("slack_action_ignored", action_id=action_id)

    # ------------------------------------------------------------------
    # Modal
    # ------------------------------------------------------------------

    async def handle_view_submission(self, payload: dict[str, Any]) -> None:
        view = payload.get("view", {})
        if view.get("callback_id") != b.INPUT_MODAL_CALLBACK_ID:
            return
        user_id = payload.get("user", {}).get("id", "")
        session_key = view.get("private_metadata", "")
        try:
            conversation_id, _ = parse_session_key(session_key)
        except ValueError:
            logger.warning("slack_modal_bad_session_key", session_key=session_key)
            return

        if not self._channel.is_allowed(user_id):
            logger.warning("slack_modal_rejected", user_id=user_id)
            await self._channel.post_ephemeral(conversation_id, user_id, MSG_NOT_ALLOWED)
            return

        values = view.get("state", {}).get("values", {})
        text = values.get(b.INPUT_BLOCK_ID, {}).get(b.INPUT_ACTION_ID, {}).get("value") or ""
        if not text.strip():
            return
        await self._send(session_key, text, conversation_id, user_id)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _stop(self, session_key: str, conversation_id: str, user_id: str) -> None:
        if self._registry.stop(session_key):
            logger.info("slack_stop_requested", session_key=session_key, user_id=user_id)
            return
        await self._channel.post_ephemeral(conversation_id, user_id, MSG_NOT_RUNNING)

    async def _send(self, session_key: str, text: str, conversation_id: str, user_id: str) -> None:
        if self._registry.send_input(session_key, text):
            return
        await self._channel.post_ephemeral(conversation_id, user_id, MSG_NOT_RUNNING)
