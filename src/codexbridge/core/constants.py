"""CodexBridge constants: markers, timeouts, and limits."""

from __future__ import annotations

import re
from enum import IntEnum

# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------


class ExitCode(IntEnum):
    SUCCESS = 0
    ERROR = 1
    CONFIG_ERROR = 2
    DEPENDENCY_MISSING = 7


# ---------------------------------------------------------------------------
# Codex terminal markers
# ---------------------------------------------------------------------------

# Codex prints this word alone on a line; the line after it is the reply.
CONTENT_MARKER = "codex"

# The input box Codex redraws once its reply is complete. Matched against the
# stripped line: a top-left corner, a run of horizontal rules and an optional
# top-right corner, whatever the terminal width.
BOX_BORDER_PATTERN: re.Pattern[str] = re.compile(r"╭─+╮?")

# ---------------------------------------------------------------------------
# Timeouts and limits
# ---------------------------------------------------------------------------

START_TIMEOUT_SECONDS = 3.0  # process start confirmation
DEBOUNCE_SECONDS = 1.0  # coalesce output bursts into one update
INACTIVITY_SECONDS = 5.0  # silence before the "still working" indicator
MAX_OUTPUT_CHARS = 2900  # Slack section text limit, with headroom
INPUT_WAIT_TAIL_LINES = 5  # lines inspected by the input-wait detector

# ---------------------------------------------------------------------------
# PTY
# ---------------------------------------------------------------------------

PTY_COLS = 80
PTY_ROWS = 30
PTY_ENV: dict[str, str] = {
    "TERM": "xterm-256color",
    "FORCE_COLOR": "1",
}
READ_CHUNK_BYTES = 4096
