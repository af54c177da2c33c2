"""
Slack Block Kit builders for Codex session messages.

Every session renders into one "anchor" message in its thread. Depending on
the session phase the anchor shows:

  running      — output + Stop button
  inactive     — output + "still working" context line + Stop button
  waiting      — output + suggestion / reply buttons + Stop button
  completed    — output + ✅ or ❌ by exit code
  stopped      — output + stopped notice
  errored      — error notice

Action ids (routed by SlackBot):
  stop_codex         — value: session key
  send_suggestion    — value: "{session key}|{suggestion}"
  open_input_modal   — value: session key
  codex_input_modal  — callback id of the reply modal; private_metadata: session key

All builders are pure and testable without a Slack connection.
"""

from __future__ import annotations

import re
from typing import Any

from codexbridge.core.constants import MAX_OUTPUT_CHARS
from codexbridge.core.output.normalizer import normalize
from codexbridge.core.prompt.models import PromptType

ACTION_STOP = "stop_codex"
ACTION_SEND_SUGGESTION = "send_suggestion"
ACTION_OPEN_INPUT_MODAL = "open_input_modal"
INPUT_MODAL_CALLBACK_ID = "codex_input_modal"
INPUT_BLOCK_ID = "codex_input_block"
INPUT_ACTION_ID = "codex_input_text"

SUGGESTION_SEP = "|"

_EMPTY_SECTION_TEXT = " "  # Slack rejects an empty section

_MENTION_RES = (
    re.compile(r"<@[UW][A-Z0-9]+>"),  # user and bot mentions
    re.compile(r"<#[A-Z0-9]+\|[^>]+>"),  # channel links
    re.compile(r"<!here>"),
    re.compile(r"<!channel>"),
)

Block = dict[str, Any]


# ---------------------------------------------------------------------------
# Text helpers
# ---------------------------------------------------------------------------


def extract_mention_text(text: str) -> str:
    """Strip mentions of the bot, users, channels and @here/@channel from *text*."""
    for pattern in _MENTION_RES:
        text = pattern.sub("", text)
    return text.strip()


def truncate_output(output: str, max_chars: int = MAX_OUTPUT_CHARS) -> str:
    """Keep the tail of *output*: the newest text is what the user is waiting for."""
    if len(output) <= max_chars:
        return output
    return "...\n" + output[-(max_chars - 10) :]


def extract_command(output: str) -> str | None:
    """Return the first echoed ``codex --…`` command line in *output*, if any."""
    for line in output.split("\n"):
        if "codex" in line.lower() and "--" in line:
            return line.strip()
    return None


def format_output(output: str) -> str:
    """
    Decorate Codex output for Slack.

    Command lines get 💻, lines mentioning an error or failure get ❌ and
    lines reporting success or completion get ✅.
    """
    lines = normalize(output, complete=True).split("\n")
    formatted: list[str] = []
    for line in lines:
        lower = line.lower()
        if "codex" in lower and ("--" in line or ">" in line):
            formatted.append(f"💻 {line}")
        elif "error" in lower or "failed" in lower:
            formatted.append(f"❌ {line}")
        elif "success" in lower or "completed" in lower:
            formatted.append(f"✅ {line}")
        else:
            formatted.append(line)
    return "\n".join(formatted)


# ---------------------------------------------------------------------------
# Block fragments
# ---------------------------------------------------------------------------


def _section(text: str) -> Block:
    return {"type": "section", "text": {"type": "mrkdwn", "text": text or _EMPTY_SECTION_TEXT}}


def _context(text: str) -> Block:
    return {"type": "context", "elements": [{"type": "mrkdwn", "text": text}]}


def _button(text: str, action_id: str, value: str, style: str = "") -> Block:
    button: Block = {
        "type": "button",
        "text": {"type": "plain_text", "text": text, "emoji": True},
        "action_id": action_id,
        "value": value,
    }
    if style:
        button["style"] = style
    return button


def _stop_button(session_key: str) -> Block:
    return _button("⏹️ Stop", ACTION_STOP, session_key, style="danger")


def _command_blocks(output: str, status: str) -> list[Block]:
    command = extract_command(output)
    if not command:
        return []
    return [_section(f"💻 {status}: `{command}`")]


def _output_blocks(output: str, status: str, max_chars: int) -> list[Block]:
    # Emoji prefixes lengthen the text, so the limit applies after formatting.
    text = truncate_output(format_output(output), max_chars)
    return [*_command_blocks(output, status), _section(text)]


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------


def loading_blocks() -> list[Block]:
    return [_section("Processing...")]


def output_blocks(
    output: str,
    session_key: str,
    *,
    running: bool = True,
    max_chars: int = MAX_OUTPUT_CHARS,
) -> list[Block]:
    blocks = _output_blocks(output, "Running", max_chars)
    if running:
        blocks.append({"type": "actions", "elements": [_stop_button(session_key)]})
    return blocks


def inactivity_blocks(
    output: str, session_key: str, *, max_chars: int = MAX_OUTPUT_CHARS
) -> list[Block]:
    """Output of a session that has been silent for a while but is still alive."""
    return [
        *_output_blocks(output, "Running", max_chars),
        _context(":hourglass_flowing_sand: Codex is still working..."),
        {"type": "actions", "elements": [_stop_button(session_key)]},
    ]


def input_prompt_blocks(
    output: str,
    session_key: str,
    prompt_type: PromptType,
    suggestion: str | None = None,
    *,
    max_chars: int = MAX_OUTPUT_CHARS,
) -> list[Block]:
    """Output of a session waiting for the user, with ways to answer it."""
    if prompt_type == PromptType.EXPLANATION:
        notice = ":speech_balloon: Codex is ready for your request."
    else:
        notice = ":speech_balloon: Codex is waiting for your input."

    elements: list[Block] = []
    if suggestion:
        elements.append(
            _button(
                f"Send “{suggestion}”",
                ACTION_SEND_SUGGESTION,
                f"{session_key}{SUGGESTION_SEP}{suggestion}",
                style="primary",
            )
        )
    elements.append(_button("✏️ Reply", ACTION_OPEN_INPUT_MODAL, session_key))
    elements.append(_stop_button(session_key))

    return [
        *_output_blocks(output, "Running", max_chars),
        _section(notice),
        {"type": "actions", "elements": elements},
    ]


def completed_blocks(
    output: str, exit_code: int | None, *, max_chars: int = MAX_OUTPUT_CHARS
) -> list[Block]:
    return [
        *_output_blocks(output, "Finished", max_chars),
        _section("✅ Completed" if exit_code == 0 else f"❌ Exited with code {exit_code}"),
    ]


def stopped_blocks(output: str, *, max_chars: int = MAX_OUTPUT_CHARS) -> list[Block]:
    return [*_output_blocks(output, "Stopped", max_chars), _section("⏹️ Stopped")]


def errored_blocks(
    output: str, error: str, *, max_chars: int = MAX_OUTPUT_CHARS
) -> list[Block]:
    blocks = _output_blocks(output, "Failed", max_chars) if output else []
    blocks.append(_section(f"❌ Codex could not be started: {error}" if error else "❌ Error"))
    return blocks


def input_modal_view(session_key: str) -> dict[str, Any]:
    """The modal opened by the Reply button."""
    return {
        "type": "modal",
        "callback_id": INPUT_MODAL_CALLBACK_ID,
        "private_metadata": session_key,
        "title": {"type": "plain_text", "text": "Reply to Codex"},
        "submit": {"type": "plain_text", "text": "Send"},
        "close": {"type": "plain_text", "text": "Cancel"},
        "blocks": [
            {
                "type": "input",
                "block_id": INPUT_BLOCK_ID,
                "label": {"type": "plain_text", "text": "Your reply"},
                "element": {
                    "type": "plain_text_input",
                    "action_id": INPUT_ACTION_ID,
                    "multiline": True,
                },
            }
        ],
    }


def split_suggestion_value(value: str) -> tuple[str, str]:
    """Split a send_suggestion button value into (session key, suggestion)."""
    session_key, _, suggestion = value.partition(SUGGESTION_SEP)
    return session_key, suggestion
