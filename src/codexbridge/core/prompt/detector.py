"""
Input-wait detector.

Decides from the tail of a session's display buffer whether Codex is sitting
at a prompt waiting for the user, or still working. Rules are evaluated in
order and the first match wins:

  1. "try:" + "explain this codebase"  → explanation prompt, with suggestion
  2. "enter to send"                   → general prompt
  3. generic waiting heuristics        → general prompt
  4. otherwise                         → not waiting

This is a heuristic over free-form terminal text. A missed prompt only means
the bot keeps showing the session as running, so the rules stay narrow rather
than clever.
"""

from __future__ import annotations

import re
from re import Pattern

from codexbridge.core.constants import INPUT_WAIT_TAIL_LINES
from codexbridge.core.prompt.models import NOT_WAITING, InputWaitState, PromptType

EXPLANATION_SUGGESTION = "explain this codebase to me"

# Last line ends in a bare prompt glyph, e.g. "> " or "❯".
_PROMPT_GLYPH_RE: Pattern[str] = re.compile(r"(?:^|\s)[>❯›$]\s*$")

_WAITING_PHRASES: tuple[str, ...] = (
    "press enter",
    "waiting for input",
    "enter your response",
    "type your message",
)


def _tail(display_text: str, lines: int = INPUT_WAIT_TAIL_LINES) -> list[str]:
    return display_text.rstrip().split("\n")[-lines:]


def detect_input_wait(display_text: str) -> InputWaitState:
    """Classify whether *display_text* ends at a Codex input prompt."""
    if not display_text.strip():
        return NOT_WAITING

    tail_lines = _tail(display_text)
    tail = "\n".join(tail_lines).lower()

    if "try:" in tail and "explain this codebase" in tail:
        return InputWaitState(
            is_waiting_for_input=True,
            prompt_type=PromptType.EXPLANATION,
            suggestion=EXPLANATION_SUGGESTION,
        )

    if "enter to send" in tail:
        return InputWaitState(is_waiting_for_input=True, prompt_type=PromptType.GENERAL)

    if _PROMPT_GLYPH_RE.search(tail_lines[-1]) or any(p in tail for p in _WAITING_PHRASES):
        return InputWaitState(is_waiting_for_input=True, prompt_type=PromptType.GENERAL)

    return NOT_WAITING
