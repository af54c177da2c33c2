"""
CodexBridge — run the Codex CLI from a Slack thread.

Mention the bot with a task and CodexBridge launches the Codex CLI inside a
pseudo-terminal, streams its reply back into the thread as a continuously
updated message, notices when Codex is waiting for you, and lets you answer
or stop it with buttons.

Package layout (src/codexbridge/):
  core/       — output pipeline, input-wait detection, sessions, scheduler
  os/tty/     — PTY process host
  adapters/   — Codex CLI launch arguments
  channels/   — Slack Web API + Socket Mode surface
  cli/        — Click CLI entry point
"""

__version__ = "0.4.0"
__all__ = ["__version__"]
