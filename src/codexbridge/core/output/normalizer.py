"""
Terminal output normalizer.

Codex draws its UI with colour codes, cursor movement, carriage-return
redraws and the odd stray control byte. Everything downstream (the content
extractor, the input-wait detector, Slack) wants plain text with ``\\n`` line
endings, so every chunk read from the PTY goes through here first.

``normalize()`` is pure and idempotent. ``StreamNormalizer`` applies it chunk
by chunk for one session while keeping the result identical to normalizing
the concatenated stream: escape sequences and ``\\r\\n`` pairs split across
reads are held back until they are complete, and the blank-line collapse is
carried across chunk boundaries.
"""

from __future__ import annotations

import re

# CSI (including private modes), OSC terminated by BEL or ST, charset
# designators and the remaining two-byte ESC sequences.
_ANSI_RE = re.compile(
    r"\x1b\[[0-?]*[ -/]*[@-~]"
    r"|\x1b\][^\x07\x1b]*(?:\x07|\x1b\\)"
    r"|\x1b[()][A-Za-z0-9]"
    r"|\x1b[ -/]*[@-~]"
)

# An escape sequence that has started but not finished at the end of a chunk.
_PARTIAL_ESCAPE_RE = re.compile(r"\x1b(?:\[[0-?]*[ -/]*|\][^\x07\x1b]*\x1b?|[()]|[ -/]*)\Z")

# Anything longer than this is not a real sequence; release it.
_MAX_HELD_ESCAPE = 256

_CONTROL_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_BLANK_RUN_RE = re.compile(r"\n{3,}")


def strip_ansi(text: str) -> str:
    """Remove terminal escape sequences from *text*."""
    return _ANSI_RE.sub("", text)


def normalize(text: str, *, complete: bool = False) -> str:
    """
    Return the canonical plain-text form of terminal output.

    Args:
        text:     Raw decoded terminal output.
        complete: True when *text* is a whole accumulated buffer. Only then is
                  leading/trailing whitespace trimmed; a streaming chunk keeps
                  its edges because more data may follow.
    """
    text = strip_ansi(text)
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = _CONTROL_RE.sub("", text)
    text = _BLANK_RUN_RE.sub("\n\n", text)
    if complete:
        text = text.strip()
    return text


class StreamNormalizer:
    """
    Incremental ``normalize()`` for one PTY stream.

    Usage::

        stream = StreamNormalizer()
        for chunk in chunks:
            text = stream.feed(chunk)
        text += stream.flush()
    """

    def __init__(self) -> None:
        self._held = ""
        self._trailing_newlines = 0

    def feed(self, chunk: str) -> str:
        """Normalize *chunk*, holding back any tail that may still be incomplete."""
        data = self._held + chunk
        self._held = ""

        partial = _PARTIAL_ESCAPE_RE.search(data)
        if partial is not None and len(data) - partial.start() <= _MAX_HELD_ESCAPE:
            self._held = data[partial.start() :]
            data = data[: partial.start()]
        elif data.endswith("\r"):
            # Might be the first half of \r\n.
            self._held = "\r"
            data = data[:-1]

        return self._emit(normalize(data))

    def flush(self) -> str:
        """Release whatever is held back (call once the stream has ended)."""
        held, self._held = self._held, ""
        if not held:
            return ""
        return self._emit(normalize(held))

    def _emit(self, text: str) -> str:
        if not text:
            return ""
        leading = len(text) - len(text.lstrip("\n"))
        allowed = max(0, 2 - self._trailing_newlines)
        if leading > allowed:
            text = text[leading - allowed :]
        if not text:
            return ""
        stripped = text.rstrip("\n")
        if stripped:
            self._trailing_newlines = len(text) - len(stripped)
        else:
            self._trailing_newlines += len(text)
        return text
