"""CodexBridge tool adapters."""

from codexbridge.adapters.codex import CodexAdapter

__all__ = ["CodexAdapter"]
