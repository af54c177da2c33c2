"""Input-wait detection for Codex sessions."""

from codexbridge.core.prompt.detector import EXPLANATION_SUGGESTION, detect_input_wait
from codexbridge.core.prompt.models import NOT_WAITING, InputWaitState, PromptType

__all__ = [
    "EXPLANATION_SUGGESTION",
    "NOT_WAITING",
    "InputWaitState",
    "PromptType",
    "detect_input_wait",
]
