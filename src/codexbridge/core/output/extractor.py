"""
Content extraction — pulls Codex's reply out of its terminal chrome.

Codex announces a reply by printing ``codex`` alone on a line; the very next
line is the reply text. If that slot holds the input box instead, the reply
is over and the terminal only shows prompt chrome from then on. Every other
line (banners, spinners, the box redrawn between replies) is dropped.

Lines reach the extractor only when complete: ``LineAssembler`` holds the
trailing fragment of each chunk back until its newline arrives, so a marker
split across two PTY reads is still seen whole.
"""

from __future__ import annotations

import re

from codexbridge.core.constants import BOX_BORDER_PATTERN, CONTENT_MARKER
from codexbridge.core.output.normalizer import normalize


class LineAssembler:
    """Reassembles complete lines from arbitrarily split chunks."""

    def __init__(self) -> None:
        self._partial = ""

    @property
    def partial(self) -> str:
        """The trailing fragment still waiting for its newline."""
        return self._partial

    def feed(self, chunk: str) -> list[str]:
        """Return the lines completed by *chunk*, without their newlines."""
        lines = (self._partial + chunk).split("\n")
        self._partial = lines.pop()
        return lines


class ContentExtractor:
    """
    One-line-lookahead capture of Codex replies.

    State carried between lines:
      expecting_content — the previous line was the marker
      ignore_rest       — the box appeared in the reply slot; drop everything
    """

    def __init__(
        self,
        marker: str = CONTENT_MARKER,
        box_pattern: re.Pattern[str] = BOX_BORDER_PATTERN,
    ) -> None:
        self.marker = marker
        self.box_pattern = box_pattern
        self.expecting_content = False
        self.ignore_rest = False
        self._captured: list[str] = []

    @property
    def display_buffer(self) -> str:
        return "".join(self._captured)

    @property
    def captured_lines(self) -> int:
        return len(self._captured)

    def feed_line(self, line: str) -> bool:
        """
        Process one complete line. Returns True if it was captured.
        """
        if self.ignore_rest:
            return False

        stripped = line.strip()

        if self.expecting_content:
            self.expecting_content = False
            if self._is_box_border(stripped):
                self.ignore_rest = True
                return False
            self._captured.append(f"{line}\n")
            return True

        if stripped == self.marker:
            self.expecting_content = True
        return False

    def feed_lines(self, lines: list[str]) -> int:
        """Process *lines* in order; return how many were captured."""
        return sum(1 for line in lines if self.feed_line(line))

    def _is_box_border(self, stripped: str) -> bool:
        return self.box_pattern.fullmatch(stripped) is not None


def replay(raw_text: str) -> ContentExtractor:
    """
    Rebuild an extractor from a complete raw buffer.

    The display buffer of a live session is a cache of this result.
    """
    extractor = ContentExtractor()
    lines = normalize(raw_text).split("\n")
    lines.pop()  # trailing partial line is never extracted
    extractor.feed_lines(lines)
    return extractor
