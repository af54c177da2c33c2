"""Unit tests for Slack Block Kit builders and the snapshot renderer."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from codexbridge.channels.slack import blocks as b
from codexbridge.channels.slack.renderer import SlackRenderer, build_blocks
from codexbridge.core.exceptions import RenderFlushFailure
from codexbridge.core.prompt.models import PromptType
from codexbridge.core.session.models import DisplaySnapshot, SessionPhase

KEY = "C123-1700000000.000200"


def _snapshot(phase: SessionPhase = SessionPhase.RUNNING, **kwargs) -> DisplaySnapshot:
    fields = {
        "session_key": KEY,
        "thread_id": "C123:1700000000.000100",
        "conversation_id": "C123",
        "anchor_message_id": "1700000000.000200",
        "phase": phase,
        "display_text": "Looking at the repository",
    }
    fields.update(kwargs)
    return DisplaySnapshot(**fields)


def _texts(blocks: list[dict]) -> list[str]:
    return [blk["text"]["text"] for blk in blocks if blk["type"] == "section"]


def _buttons(blocks: list[dict]) -> list[dict]:
    return [el for blk in blocks if blk["type"] == "actions" for el in blk["elements"]]


# ---------------------------------------------------------------------------
# Text helpers
# ---------------------------------------------------------------------------


class TestExtractMentionText:
    def test_strips_bot_mention(self) -> None:
        assert b.extract_mention_text("<@U012ABCDEF> fix the build") == "fix the build"

    def test_strips_channel_and_broadcasts(self) -> None:
        text = "<!here> <@W999> look at <#C0123|general> please <!channel>"
        assert b.extract_mention_text(text) == "look at  please"

    def test_only_mention_is_empty(self) -> None:
        assert b.extract_mention_text("  <@U012ABCDEF>  ") == ""


class TestTruncateOutput:
    def test_short_output_unchanged(self) -> None:
        assert b.truncate_output("short") == "short"

    def test_keeps_the_tail(self) -> None:
        output = "HEAD" + "x" * 3000 + "TAIL"
        truncated = b.truncate_output(output)
        assert truncated.startswith("...\n")
        assert truncated.endswith("TAIL")
        assert "HEAD" not in truncated
        assert len(truncated) == 4 + 2890

    def test_custom_limit(self) -> None:
        assert b.truncate_output("abcdefghijklmnopqrstuvwxyz", 20) == "...\nqrstuvwxyz"


class TestFormatOutput:
    def test_command_line(self) -> None:
        assert b.format_output("codex --model o4-mini") == "💻 codex --model o4-mini"

    def test_error_line(self) -> None:
        assert b.format_output("Build failed") == "❌ Build failed"

    def test_success_line(self) -> None:
        assert b.format_output("Tests completed") == "✅ Tests completed"

    def test_plain_lines_untouched_and_trimmed(self) -> None:
        assert b.format_output("\n\nhello\n\n\n\nworld\n") == "hello\n\nworld"

    def test_extract_command(self) -> None:
        assert b.extract_command("intro\n  codex --provider openai\n") == "codex --provider openai"
        assert b.extract_command("no command here") is None


# ---------------------------------------------------------------------------
# Message builders
# ---------------------------------------------------------------------------


class TestBuilders:
    def test_output_has_stop_button(self) -> None:
        blocks = b.output_blocks("working", KEY)
        (stop,) = _buttons(blocks)
        assert stop["action_id"] == b.ACTION_STOP == "stop_codex"
        assert stop["value"] == KEY
        assert stop["style"] == "danger"

    def test_output_not_running_has_no_buttons(self) -> None:
        assert _buttons(b.output_blocks("done", KEY, running=False)) == []

    def test_empty_output_section_is_not_empty(self) -> None:
        assert all(text for text in _texts(b.output_blocks("", KEY)))

    def test_input_prompt_with_suggestion(self) -> None:
        suggestion_text = "explain this codebase to me"
        blocks = b.input_prompt_blocks(
            f"Try: {suggestion_text}", KEY, PromptType.EXPLANATION, suggestion_text
        )
        action_ids = [el["action_id"] for el in _buttons(blocks)]
        assert action_ids == ["send_suggestion", "open_input_modal", "stop_codex"]
        suggestion = _buttons(blocks)[0]
        assert b.split_suggestion_value(suggestion["value"]) == (KEY, "explain this codebase to me")

    def test_input_prompt_without_suggestion(self) -> None:
        blocks = b.input_prompt_blocks("> ", KEY, PromptType.GENERAL)
        action_ids = [el["action_id"] for el in _buttons(blocks)]
        assert action_ids == ["open_input_modal", "stop_codex"]

    def test_completed_success_and_failure(self) -> None:
        assert "✅" in _texts(b.completed_blocks("ok", 0))[-1]
        assert "❌" in _texts(b.completed_blocks("ok", 2))[-1]
        assert "❌" in _texts(b.completed_blocks("ok", None))[-1]

    def test_stopped(self) -> None:
        assert "Stopped" in _texts(b.stopped_blocks("partial"))[-1]

    def test_errored(self) -> None:
        texts = _texts(b.errored_blocks("", "codex not found"))
        assert texts == ["❌ Codex could not be started: codex not found"]

    def test_command_header(self) -> None:
        texts = _texts(b.output_blocks("codex --approval-mode full-auto\nhi", KEY))
        assert texts[0] == "💻 Running: `codex --approval-mode full-auto`"

    def test_input_modal_view(self) -> None:
        view = b.input_modal_view(KEY)
        assert view["callback_id"] == "codex_input_modal"
        assert view["private_metadata"] == KEY
        (input_block,) = view["blocks"]
        assert input_block["block_id"] == b.INPUT_BLOCK_ID
        assert input_block["element"]["action_id"] == b.INPUT_ACTION_ID


# ---------------------------------------------------------------------------
# Snapshot → blocks
# ---------------------------------------------------------------------------


class TestBuildBlocks:
    def test_running(self) -> None:
        blocks = build_blocks(_snapshot())
        assert [el["action_id"] for el in _buttons(blocks)] == ["stop_codex"]

    def test_inactive_shows_still_working(self) -> None:
        blocks = build_blocks(_snapshot(inactive=True))
        assert any(blk["type"] == "context" for blk in blocks)

    def test_waiting(self) -> None:
        snapshot = _snapshot(
            SessionPhase.AWAITING_INPUT,
            is_waiting_for_input=True,
            prompt_type=PromptType.GENERAL,
        )
        action_ids = [el["action_id"] for el in _buttons(build_blocks(snapshot))]
        assert "open_input_modal" in action_ids

    def test_closed(self) -> None:
        blocks = build_blocks(_snapshot(SessionPhase.CLOSED, exit_code=0))
        assert _buttons(blocks) == []
        assert "✅" in _texts(blocks)[-1]

    def test_stopped_ignores_stale_wait_flag(self) -> None:
        snapshot = _snapshot(SessionPhase.STOPPED, is_waiting_for_input=True)
        assert _buttons(build_blocks(snapshot)) == []

    def test_output_is_truncated(self) -> None:
        blocks = build_blocks(_snapshot(display_text="y" * 5000), max_chars=100)
        assert len(_texts(blocks)[0]) == 4 + 90

    @pytest.mark.parametrize(
        "phase", [SessionPhase.RUNNING, SessionPhase.CLOSED, SessionPhase.STOPPED]
    )
    def test_prefixed_lines_stay_within_limit(self, phase: SessionPhase) -> None:
        output = "\n".join(["Build failed"] * 400)
        blocks = build_blocks(_snapshot(phase, display_text=output, exit_code=1))
        output_text = _texts(blocks)[0]
        assert output_text.startswith("...\n")
        assert output_text.endswith("❌ Build failed")
        assert all(len(text) <= 2900 for text in _texts(blocks))


class TestSlackRenderer:
    @pytest.mark.asyncio
    async def test_updates_anchor_message(self) -> None:
        channel = MagicMock()
        channel.update_message = AsyncMock(return_value=True)
        await SlackRenderer(channel).render(_snapshot())
        channel.update_message.assert_awaited_once()
        args, kwargs = channel.update_message.call_args
        assert args == ("C123", "1700000000.000200")
        assert kwargs["text"] == "Codex is running..."
        assert kwargs["blocks"]

    @pytest.mark.asyncio
    async def test_failed_update_raises(self) -> None:
        channel = MagicMock()
        channel.update_message = AsyncMock(return_value=False)
        with pytest.raises(RenderFlushFailure):
            await SlackRenderer(channel).render(_snapshot())
