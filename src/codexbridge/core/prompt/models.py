"""
Input-wait domain models.

InputWaitState — the detector's verdict on whether Codex is blocked on the
user, and what kind of answer it is waiting for.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class PromptType(StrEnum):
    EXPLANATION = "explanation"  # Codex offers "Try: explain this codebase to me"
    GENERAL = "general"  # Any other input prompt


@dataclass(frozen=True)
class InputWaitState:
    """Result of running the input-wait detector over a display buffer."""

    is_waiting_for_input: bool = False
    prompt_type: PromptType | None = None
    suggestion: str | None = None


NOT_WAITING = InputWaitState()
