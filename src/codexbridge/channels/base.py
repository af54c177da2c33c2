"""
BaseChannel — abstract interface for the chat channel the bot lives in.

Concrete implementation:
  SlackChannel — httpx Web API + Socket Mode

The bot needs exactly two things from a channel: somewhere to draw a
session (one message posted once, then edited in place) and a stream of
user events (mentions, button clicks, modal submissions) handed to the
object passed to ``start()``. Channels never touch sessions themselves.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from typing import Any

import structlog

logger = structlog.get_logger()


class ChannelCircuitBreaker:
    """
    Consecutive-failure breaker for Web API calls.

    Only transport failures are recorded. Once *threshold* of them happen in
    a row the breaker opens; after *recovery_seconds* one call is let through
    again, and its outcome either closes the breaker or restarts the wait.
    """

    def __init__(self, threshold: int = 3, recovery_seconds: float = 30.0) -> None:
        self.threshold = threshold
        self.recovery_seconds = recovery_seconds
        self._failures = 0
        self._tripped_at: float | None = None

    @property
    def failures(self) -> int:
        return self._failures

    @property
    def retry_in(self) -> float:
        """Seconds until the next trial call is allowed; 0.0 when calls may proceed."""
        if self._tripped_at is None:
            return 0.0
        elapsed = time.monotonic() - self._tripped_at
        return max(0.0, self.recovery_seconds - elapsed)

    @property
    def is_open(self) -> bool:
        return self._tripped_at is not None and self.retry_in > 0.0

    def record_success(self) -> None:
        if self._tripped_at is not None:
            logger.info("circuit_breaker_closed", failures=self._failures)
        self._failures = 0
        self._tripped_at = None

    def record_failure(self) -> None:
        self._failures += 1
        if self._failures < self.threshold:
            return
        # A failed trial call restarts the recovery window.
        self._tripped_at = time.monotonic()
        logger.warning(
            "circuit_breaker_opened",
            failures=self._failures,
            retry_in=self.recovery_seconds,
        )


class BaseChannel(ABC):
    """Abstract chat channel with a per-instance circuit breaker."""

    channel_name: str = ""

    _breaker: ChannelCircuitBreaker | None = None

    @property
    def circuit_breaker(self) -> ChannelCircuitBreaker:
        if self._breaker is None:
            self._breaker = ChannelCircuitBreaker()
        return self._breaker

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @abstractmethod
    async def start(self, handler: Any) -> None:
        """Connect and start delivering user events to *handler*."""

    @abstractmethod
    async def close(self) -> None:
        """Disconnect and cancel background tasks."""

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    @abstractmethod
    async def post_message(
        self,
        conversation_id: str,
        text: str,
        *,
        thread_id: str = "",
        blocks: list[dict[str, Any]] | None = None,
    ) -> str:
        """Post a message; return its id, or "" if it could not be posted."""

    @abstractmethod
    async def update_message(
        self,
        conversation_id: str,
        message_id: str,
        *,
        text: str,
        blocks: list[dict[str, Any]] | None = None,
    ) -> bool:
        """Replace the content of a posted message. Returns False on failure."""

    @abstractmethod
    def is_allowed(self, user_id: str) -> bool:
        """Return True if *user_id* may drive sessions."""

    def healthcheck(self) -> dict[str, Any]:
        cb = self.circuit_breaker
        return {
            "status": "degraded" if cb.is_open else "ok",
            "channel": self.channel_name,
            "circuit_breaker": {
                "open": cb.is_open,
                "failures": cb.failures,
                "retry_in": round(cb.retry_in, 1),
            },
        }
