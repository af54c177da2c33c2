"""PTY process host dispatch — macOS and Linux only."""

from __future__ import annotations

import sys

from codexbridge.os.tty.base import ProcessHandle, PTYConfig, Spawner


def get_spawner() -> Spawner:
    """Return the process spawner for the current platform."""
    if sys.platform == "darwin" or sys.platform.startswith("linux"):
        from codexbridge.os.tty.posix import spawn_pty

        return spawn_pty
    raise RuntimeError(
        f"Unsupported platform: {sys.platform}. CodexBridge supports macOS and Linux only."
    )


__all__ = ["PTYConfig", "ProcessHandle", "Spawner", "get_spawner"]
