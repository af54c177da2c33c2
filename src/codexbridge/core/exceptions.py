"""CodexBridge exception hierarchy."""

from __future__ import annotations


class CodexBridgeError(Exception):
    """Base exception for all CodexBridge errors."""


class ConfigError(CodexBridgeError):
    """Raised when the configuration is invalid or cannot be read."""


class ChannelError(CodexBridgeError):
    """Raised when the chat channel fails."""


class ChannelUnavailableError(ChannelError):
    """Raised when a channel's circuit breaker is open."""


class RenderFlushFailure(ChannelError):
    """Raised by a renderer when an update could not be delivered."""


class SessionError(CodexBridgeError):
    """Raised when session management fails."""


class SpawnFailure(SessionError):
    """Raised when the Codex process could not be started."""

    def __init__(self, message: str, session_key: str = "") -> None:
        super().__init__(message)
        self.session_key = session_key


class ProcessNotRunning(SessionError):
    """Raised when input or a signal is sent to a process that has exited."""
