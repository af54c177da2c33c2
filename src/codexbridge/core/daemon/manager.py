"""
Bot daemon.

The BotDaemon wires the CodexBridge components together for one process
lifetime:
  - Starts the Slack channel (Web API client + Socket Mode listener)
  - Builds the session registry with the PTY spawner and the Slack renderer
  - Handles graceful shutdown on SIGTERM/SIGINT: every running Codex
    session is stopped and its final message rendered before exit
"""

from __future__ import annotations

import asyncio
import signal

import structlog

from codexbridge.adapters.codex import CodexAdapter
from codexbridge.channels.slack.bot import SlackBot
from codexbridge.channels.slack.channel import SlackChannel
from codexbridge.channels.slack.renderer import SlackRenderer
from codexbridge.core.config import CodexBridgeConfig
from codexbridge.core.session.registry import SessionRegistry
from codexbridge.os.tty import Spawner, get_spawner

logger = structlog.get_logger()

_SHUTDOWN_RENDER_TIMEOUT_S = 10.0


class BotDaemon:
    """
    Top-level orchestrator for the CodexBridge bot.

    Lifecycle::

        daemon = BotDaemon(config)
        await daemon.run()      # blocks until shutdown signal
    """

    def __init__(self, config: CodexBridgeConfig, *, spawner: Spawner | None = None) -> None:
        self._config = config
        self._spawner = spawner
        self._shutdown_event = asyncio.Event()
        self.channel: SlackChannel | None = None
        self.registry: SessionRegistry | None = None

    async def run(self) -> None:
        """Start all subsystems and run until shutdown."""
        cfg = self._config
        logger.info(
            "daemon_starting",
            provider=cfg.codex.provider,
            model=cfg.codex.model or "default",
        )

        self.channel = SlackChannel(
            bot_token=cfg.slack.bot_token.get_secret_value(),
            app_token=cfg.slack.app_token.get_secret_value(),
            allowed_user_ids=cfg.slack.allowed_users,
        )
        renderer = SlackRenderer(self.channel, max_output_chars=cfg.streaming.max_output_chars)
        self.registry = SessionRegistry(
            self._spawner or get_spawner(),
            renderer,
            adapter=CodexAdapter(cfg.codex),
            streaming=cfg.streaming,
        )
        bot = SlackBot(self.registry, self.channel)

        self._setup_signal_handlers()
        await self.channel.start(bot)
        logger.info("daemon_running")
        try:
            await self._shutdown_event.wait()
        finally:
            await self._cleanup()

    def stop(self) -> None:
        """Request a graceful shutdown."""
        logger.info("daemon_stop_requested")
        self._shutdown_event.set()

    def _setup_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self.stop)

    async def _cleanup(self) -> None:
        if self.registry is not None:
            self.registry.stop_all()
            try:
                await asyncio.wait_for(self.registry.join(), _SHUTDOWN_RENDER_TIMEOUT_S)
            except TimeoutError:
                logger.warning("daemon_final_renders_timed_out")
        if self.channel is not None:
            await self.channel.close()
        logger.info("daemon_stopped")
