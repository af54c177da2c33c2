"""Unit tests for the input-wait detector."""

from __future__ import annotations

import pytest

from codexbridge.core.prompt.detector import EXPLANATION_SUGGESTION, detect_input_wait
from codexbridge.core.prompt.models import NOT_WAITING, PromptType


class TestExplanationPrompt:
    def test_try_explain_this_codebase(self) -> None:
        state = detect_input_wait("Welcome to Codex\nTry: explain this codebase to me\n")
        assert state.is_waiting_for_input is True
        assert state.prompt_type == PromptType.EXPLANATION
        assert state.suggestion == EXPLANATION_SUGGESTION == "explain this codebase to me"

    def test_case_insensitive(self) -> None:
        state = detect_input_wait("TRY: Explain This Codebase To Me")
        assert state.prompt_type == PromptType.EXPLANATION

    def test_parts_on_separate_lines(self) -> None:
        state = detect_input_wait("try:\n  explain this codebase")
        assert state.prompt_type == PromptType.EXPLANATION

    def test_only_the_tail_is_inspected(self) -> None:
        text = "Try: explain this codebase to me\n" + "\n".join(f"step {i}" for i in range(6))
        assert detect_input_wait(text) == NOT_WAITING


class TestGeneralPrompt:
    def test_enter_to_send(self) -> None:
        state = detect_input_wait("Ask me anything\n  ⏎ Enter to send")
        assert state.is_waiting_for_input is True
        assert state.prompt_type == PromptType.GENERAL
        assert state.suggestion is None

    def test_explanation_wins_over_enter_to_send(self) -> None:
        state = detect_input_wait("Try: explain this codebase to me\nenter to send")
        assert state.prompt_type == PromptType.EXPLANATION

    @pytest.mark.parametrize("glyph", [">", "❯", "›", "$"])
    def test_bare_prompt_glyph_on_last_line(self, glyph: str) -> None:
        state = detect_input_wait(f"Done.\n{glyph} ")
        assert state.is_waiting_for_input is True
        assert state.prompt_type == PromptType.GENERAL

    def test_glyph_after_text(self) -> None:
        assert detect_input_wait("user@host ~/repo $").is_waiting_for_input is True

    @pytest.mark.parametrize(
        "phrase",
        [
            "Press Enter to continue",
            "Waiting for input...",
            "Enter your response:",
            "Type your message",
        ],
    )
    def test_waiting_phrases(self, phrase: str) -> None:
        state = detect_input_wait(f"Some output\n{phrase}")
        assert state.is_waiting_for_input is True
        assert state.prompt_type == PromptType.GENERAL


class TestNotWaiting:
    def test_still_working(self) -> None:
        state = detect_input_wait("Building...\nStill working\n")
        assert state.is_waiting_for_input is False
        assert state.prompt_type is None

    def test_empty(self) -> None:
        assert detect_input_wait("") == NOT_WAITING
        assert detect_input_wait("   \n\n") == NOT_WAITING

    def test_glyph_inside_a_word_is_not_a_prompt(self) -> None:
        assert detect_input_wait("a->b").is_waiting_for_input is False

    def test_glyph_on_earlier_line_only(self) -> None:
        assert detect_input_wait(">\nrunning tests").is_waiting_for_input is False
