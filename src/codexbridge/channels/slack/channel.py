"""
Slack channel implementation.

Uses httpx for Slack Web API calls (chat.postMessage, chat.update,
chat.postEphemeral, views.open). Uses Slack Socket Mode (slack-sdk +
websockets) for receiving events, so the bot needs no public endpoint.

Socket Mode request types handled:
  events_api   — ``app_mention`` events
  interactive  — ``block_actions`` (button clicks) and ``view_submission``
                 (the reply modal)

Every request is acknowledged before it is handled; Slack retries any
envelope not acknowledged within 3 seconds.

Allowlist:
  Config key: slack.allowed_users (Slack user IDs, e.g. "U1234567890").
  An empty list lets every member of the workspace use the bot.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Protocol

import httpx
import structlog

from codexbridge.channels.base import BaseChannel
from codexbridge.core.exceptions import ChannelUnavailableError

logger = structlog.get_logger()

_SLACK_API_BASE = "https://slack.com/api/{method}"


class SlackEventHandler(Protocol):
    """What SlackChannel delivers events to (implemented by SlackBot)."""

    async def handle_app_mention(self, event: dict[str, Any]) -> None: ...

    async def handle_block_action(
        self, payload: dict[str, Any], action: dict[str, Any]
    ) -> None: ...

    async def handle_view_submission(self, payload: dict[str, Any]) -> None: ...


class SlackChannel(BaseChannel):
    """
    Slack channel using the Slack Web API + Socket Mode.

    Requires:
      bot_token        — Slack Bot User OAuth Token (xoxb-*)
      app_token        — Slack App-Level Token for Socket Mode (xapp-*)
      allowed_user_ids — Slack user IDs permitted to use the bot (empty → all)
    """

    channel_name = "slack"

    def __init__(
        self,
        bot_token: str,
        app_token: str,
        allowed_user_ids: list[str] | None = None,
    ) -> None:
        self._bot_token = bot_token
        self._app_token = app_token
        self._allowed: set[str] = set(allowed_user_ids or [])
        self._running = False
        self._client: httpx.AsyncClient | None = None
        self._handler: SlackEventHandler | None = None
        self._socket_task: asyncio.Task[None] | None = None
        self._handler_tasks: set[asyncio.Task[None]] = set()

    async def start(self, handler: SlackEventHandler) -> None:
        self._handler = handler
        self._client = httpx.AsyncClient(
            headers={"Authorization": f"Bearer {self._bot_token}"},
            timeout=30.0,
        )
        self._running = True
        self._socket_task = asyncio.create_task(
            self._socket_mode_loop(), name="slack_socket_mode"
        )
        logger.info("slack_started", allowed_users=len(self._allowed))

    async def close(self) -> None:
        self._running = False
        if self._socket_task is not None:
            await asyncio.gather(self._socket_task, return_exceptions=True)
            self._socket_task = None
        if self._handler_tasks:
            await asyncio.gather(*list(self._handler_tasks), return_exceptions=True)
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        logger.info("slack_closed")

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    async def post_message(
        self,
        conversation_id: str,
        text: str,
        *,
        thread_id: str = "",
        blocks: list[dict[str, Any]] | None = None,
    ) -> str:
        payload: dict[str, Any] = {"channel": conversation_id, "text": text}
        if thread_id:
            payload["thread_ts"] = thread_id
        if blocks is not None:
            payload["blocks"] = blocks
        result = await self._api("chat.postMessage", payload)
        return str(result.get("ts", "")) if result else ""

    async def update_message(
        self,
        conversation_id: str,
        message_id: str,
        *,
        text: str,
        blocks: list[dict[str, Any]] | None = None,
    ) -> bool:
        payload: dict[str, Any] = {"channel": conversation_id, "ts": message_id, "text": text}
        if blocks is not None:
            payload["blocks"] = blocks
        return await self._api("chat.update", payload) is not None

    async def post_ephemeral(self, conversation_id: str, user_id: str, text: str) -> bool:
        """Post a message only *user_id* can see."""
        payload = {"channel": conversation_id, "user": user_id, "text": text}
        return await self._api("chat.postEphemeral", payload) is not None

    async def open_view(self, trigger_id: str, view: dict[str, Any]) -> bool:
        return await self._api("views.open", {"trigger_id": trigger_id, "view": view}) is not None

    def is_allowed(self, user_id: str) -> bool:
        if not self._allowed:
            return True
        return user_id in self._allowed

    def healthcheck(self) -> dict[str, Any]:
        health = super().healthcheck()
        if not self._running:
            health["status"] = "stopped"
        health["allowed_users"] = len(self._allowed)
        return health

    # ------------------------------------------------------------------
    # Socket Mode (receive events and interactive callbacks)
    # ------------------------------------------------------------------

    async def _socket_mode_loop(self) -> None:
        from slack_sdk.socket_mode.websockets import SocketModeClient

        client = SocketModeClient(
            app_token=self._app_token,
            web_client=None,  # We use httpx for API calls
        )
        client.socket_mode_request_listeners.append(self._on_socket_request)
        try:
            await client.connect()
            logger.info("slack_socket_connected")
            while self._running:
                await asyncio.sleep(1.0)
        except Exception as exc:  # noqa: BLE001
            logger.error("slack_socket_connection_error", error=str(exc))
        finally:
            await client.close()

    async def _on_socket_request(self, client: Any, req: Any) -> None:
        from slack_sdk.socket_mode.response import SocketModeResponse

        await client.send_socket_mode_response(SocketModeResponse(envelope_id=req.envelope_id))
        task = asyncio.create_task(self.dispatch(req.type, req.payload or {}))
        self._handler_tasks.add(task)
        task.add_done_callback(self._handler_tasks.discard)

    async def dispatch(self, request_type: str, payload: dict[str, Any]) -> None:
        """Route one Socket Mode request payload to the handler."""
        handler = self._handler
        if handler is None:
            return
        try:
            if request_type == "events_api":
                event = payload.get("event", {})
                if event.get("type") == "app_mention":
                    await handler.handle_app_mention(event)
            elif request_type == "interactive":
                raw = payload.get("payload", payload)
                body = json.loads(raw) if isinstance(raw, str) else raw
                kind = body.get("type")
                if kind == "block_actions":
                    for action in body.get("actions", []):
                        await handler.handle_block_action(body, action)
                elif kind == "view_submission":
                    await handler.handle_view_submission(body)
        except Exception as exc:  # noqa: BLE001
            logger.warning("slack_socket_handler_error", type=request_type, error=str(exc))

    # ------------------------------------------------------------------
    # Slack API helpers
    # ------------------------------------------------------------------

    async def _api(self, method: str, payload: dict[str, Any]) -> Any:
        """
        Call a Slack Web API method. Returns the result dict or None on error.

        Raises ChannelUnavailableError while the circuit breaker is open.
        """
        if self._client is None:
            return None
        cb = self.circuit_breaker
        if cb.is_open:
            logger.warning("circuit_breaker_rejected", method=method, failures=cb.failures)
            raise ChannelUnavailableError(
                f"Circuit breaker open for slack ({cb.failures} consecutive failures)"
            )
        url = _SLACK_API_BASE.format(method=method)
        try:
            resp = await self._client.post(url, json=payload)
            data = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            cb.record_failure()
            logger.warning("slack_api_request_failed", method=method, error=str(exc))
            return None
        cb.record_success()
        if data.get("ok"):
            return data
        logger.warning("slack_api_error", method=method, error=data.get("error"))
        return None
