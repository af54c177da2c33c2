"""
OpenAI Codex CLI adapter.

Turns a Slack task into the PTY launch configuration for the ``codex``
binary, and encodes replies the way its terminal UI expects them.

Launch shape::

    codex --provider <provider> [--model <model>] --approval-mode <mode> [extra...] <task>

Codex is run in full-auto mode by default so that it never stops on an
approval gate the bot cannot render.
"""

from __future__ import annotations

from codexbridge.core.config import CodexConfig
from codexbridge.core.constants import PTY_ENV
from codexbridge.os.tty.base import PTYConfig


class CodexAdapter:
    """Stateless launcher for the Codex CLI; session state lives in Session."""

    tool_name = "codex"

    def __init__(self, config: CodexConfig | None = None) -> None:
        self.config = config or CodexConfig()

    def build_command(self, task: str) -> list[str]:
        cfg = self.config
        argv = [cfg.command, "--provider", cfg.provider]
        if cfg.model:
            argv += ["--model", cfg.model]
        argv += ["--approval-mode", cfg.approval_mode]
        argv += cfg.extra_args
        argv.append(task)
        return argv

    def build_env(self) -> dict[str, str]:
        """Environment overlay: colour-capable terminal, then user overrides."""
        return {**PTY_ENV, **self.config.env}

    def pty_config(self, task: str) -> PTYConfig:
        return PTYConfig(
            command=self.build_command(task),
            env=self.build_env(),
            cwd=self.config.cwd,
            cols=self.config.cols,
            rows=self.config.rows,
        )

    @staticmethod
    def encode_input(text: str) -> str:
        """A reply is typed followed by Enter (carriage return on a raw TTY)."""
        return text + "\r"
