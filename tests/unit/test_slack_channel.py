"""
Unit tests for SlackChannel.

Web API calls run against httpx.MockTransport; Socket Mode dispatch is driven
directly with request payloads, so no live Slack connection is needed.
"""

from __future__ import annotations

import json
from unittest.mock import AsyncMock

import httpx
import pytest

from codexbridge.channels.base import ChannelCircuitBreaker
from codexbridge.channels.slack.channel import SlackChannel
from codexbridge.core.exceptions import ChannelUnavailableError


def _channel(handler=None, allowed: list[str] | None = None) -> SlackChannel:
    channel = SlackChannel("xoxb-test", "xapp-test", allowed)
    if handler is not None:
        channel._client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return channel


def _ok(**data) -> httpx.Response:
    return httpx.Response(200, json={"ok": True, **data})


# ---------------------------------------------------------------------------
# Allowlist
# ---------------------------------------------------------------------------


class TestAllowlist:
    def test_empty_allowlist_allows_everyone(self) -> None:
        assert _channel().is_allowed("U123") is True

    def test_allowlist(self) -> None:
        channel = _channel(allowed=["U1", "U2"])
        assert channel.is_allowed("U1") is True
        assert channel.is_allowed("U3") is False


# ---------------------------------------------------------------------------
# Web API
# ---------------------------------------------------------------------------


class TestWebApi:
    @pytest.mark.asyncio
    async def test_post_message_returns_ts(self) -> None:
        seen: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/api/chat.postMessage"
            seen.append(json.loads(request.content))
            return _ok(ts="1700000000.000200")

        channel = _channel(handler)
        ts = await channel.post_message("C123", "Processing...", thread_id="1700000000.000100")
        assert ts == "1700000000.000200"
        assert seen == [
            {"channel": "C123", "text": "Processing...", "thread_ts": "1700000000.000100"}
        ]

    @pytest.mark.asyncio
    async def test_update_message(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            assert request.url.path == "/api/chat.update"
            assert body["ts"] == "1.2"
            assert body["blocks"] == [{"type": "divider"}]
            return _ok()

        channel = _channel(handler)
        assert await channel.update_message("C1", "1.2", text="t", blocks=[{"type": "divider"}])

    @pytest.mark.asyncio
    async def test_slack_error_returns_failure(self) -> None:
        channel = _channel(
            lambda r: httpx.Response(200, json={"ok": False, "error": "msg_too_long"})
        )
        assert await channel.update_message("C1", "1.2", text="t") is False
        assert channel.circuit_breaker.failures == 0

    @pytest.mark.asyncio
    async def test_transport_errors_open_the_breaker(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        channel = _channel(handler)
        for _ in range(3):
            assert await channel.post_message("C1", "hi") == ""
        assert channel.circuit_breaker.is_open is True
        with pytest.raises(ChannelUnavailableError):
            await channel.post_message("C1", "hi")
        assert channel.healthcheck()["circuit_breaker"]["open"] is True

    @pytest.mark.asyncio
    async def test_no_client_before_start(self) -> None:
        assert await _channel().post_ephemeral("C1", "U1", "hi") is False


class TestCircuitBreaker:
    def test_success_resets(self) -> None:
        cb = ChannelCircuitBreaker(threshold=2)
        cb.record_failure()
        cb.record_success()
        cb.record_failure()
        assert cb.is_open is False

    def test_half_open_after_recovery(self) -> None:
        cb = ChannelCircuitBreaker(threshold=1, recovery_seconds=0.0)
        cb.record_failure()
        assert cb.is_open is False
        assert cb.retry_in == 0.0

    def test_failed_trial_call_reopens(self) -> None:
        cb = ChannelCircuitBreaker(threshold=2, recovery_seconds=60.0)
        cb.record_failure()
        assert cb.retry_in == 0.0
        cb.record_failure()
        assert cb.is_open is True
        assert 0.0 < cb.retry_in <= 60.0
        cb.record_success()
        assert cb.is_open is False
        assert cb.failures == 0


# ---------------------------------------------------------------------------
# Socket Mode dispatch
# ---------------------------------------------------------------------------


def _handler() -> AsyncMock:
    return AsyncMock()


class TestDispatch:
    @pytest.mark.asyncio
    async def test_app_mention(self) -> None:
        channel, handler = _channel(), _handler()
        channel._handler = handler
        event = {"type": "app_mention", "channel": "C1", "ts": "1.1", "text": "<@U0> hi"}
        await channel.dispatch("events_api", {"event": event})
        handler.handle_app_mention.assert_awaited_once_with(event)

    @pytest.mark.asyncio
    async def test_other_events_ignored(self) -> None:
        channel, handler = _channel(), _handler()
        channel._handler = handler
        await channel.dispatch("events_api", {"event": {"type": "message"}})
        handler.handle_app_mention.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_block_actions_each_action(self) -> None:
        channel, handler = _channel(), _handler()
        channel._handler = handler
        body = {
            "type": "block_actions",
            "actions": [{"action_id": "stop_codex", "value": "C1-1.2"}, {"action_id": "x"}],
        }
        await channel.dispatch("interactive", body)
        assert handler.handle_block_action.await_count == 2
        handler.handle_block_action.assert_any_await(body, body["actions"][0])

    @pytest.mark.asyncio
    async def test_string_encoded_interactive_payload(self) -> None:
        channel, handler = _channel(), _handler()
        channel._handler = handler
        body = {"type": "view_submission", "view": {"callback_id": "codex_input_modal"}}
        await channel.dispatch("interactive", {"payload": json.dumps(body)})
        handler.handle_view_submission.assert_awaited_once_with(body)

    @pytest.mark.asyncio
    async def test_handler_error_is_contained(self) -> None:
        channel, handler = _channel(), _handler()
        handler.handle_app_mention.side_effect = RuntimeError("boom")
        channel._handler = handler
        await channel.dispatch("events_api", {"event": {"type": "app_mention"}})

    @pytest.mark.asyncio
    async def test_no_handler(self) -> None:
        await _channel().dispatch("events_api", {"event": {"type": "app_mention"}})
