"""Unit tests for the reconnecting message channel."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from websockets.exceptions import ConnectionClosed, InvalidHandshake

from wateringctl_client.transport import (
    ChannelConfig,
    ChannelState,
    MockChannel,
    WebSocketChannel,
    create_mock_channel,
    create_websocket_channel,
)


async def settle(seconds: float = 0.02) -> None:
    await asyncio.sleep(seconds)


class TestChannelLifecycle:
    """Connect, state changes and disposal."""

    @pytest.mark.asyncio
    async def test_connect_resolves_when_connected(self) -> None:
        channel = MockChannel()
        await channel.connect()

        assert channel.is_connected
        assert channel.state == ChannelState.CONNECTED
        assert channel.connect_attempts == 1

        await channel.dispose()
        assert channel.state == ChannelState.DISCONNECTED

    @pytest.mark.asyncio
    async def test_state_listener(self) -> None:
        channel = MockChannel()
        states: list[ChannelState] = []
        remove = channel.add_state_listener(states.append)

        await channel.connect()
        remove()
        await channel.dispose()

        assert states == [ChannelState.CONNECTING, ChannelState.CONNECTED]

    @pytest.mark.asyncio
    async def test_context_manager(self) -> None:
        async with MockChannel() as channel:
            assert channel.is_connected
        assert not channel.is_connected


class TestReconnect:
    """Closed or refused connections are retried without limit."""

    @pytest.mark.asyncio
    async def test_reconnects_after_remote_close(self) -> None:
        channel = MockChannel()
        await channel.connect()

        channel.drop()
        await settle()

        assert channel.connect_attempts == 2
        assert channel.is_connected
        await channel.dispose()

    @pytest.mark.asyncio
    async def test_retries_refused_connects(self) -> None:
        channel = MockChannel()
        channel.fail_connects = 3

        await asyncio.wait_for(channel.connect(), timeout=1.0)

        assert channel.connect_attempts == 4
        assert channel.is_connected
        await channel.dispose()

    @pytest.mark.asyncio
    async def test_forced_reconnect(self) -> None:
        channel = MockChannel()
        await channel.connect()

        await channel.reconnect()
        await settle()

        assert channel.connect_attempts == 2
        assert channel.is_connected
        await channel.dispose()

    @pytest.mark.asyncio
    async def test_reconnect_when_disconnected_is_noop(self) -> None:
        channel = MockChannel()
        await channel.reconnect()

        assert channel.connect_attempts == 0


class TestSendAndReceive:
    """Best-effort send and the single inbound hook."""

    @pytest.mark.asyncio
    async def test_send_while_disconnected_drops_frame(self) -> None:
        channel = MockChannel()

        assert await channel.send("hello") is False
        assert channel.sent == []

    @pytest.mark.asyncio
    async def test_send_while_connected(self) -> None:
        channel = MockChannel()
        await channel.connect()

        assert await channel.send(b"FETCH;/;true") is True
        assert channel.sent == [b"FETCH;/;true"]
        await channel.dispose()

    @pytest.mark.asyncio
    async def test_responder_replies_reach_hook(self) -> None:
        channel = MockChannel(responder=lambda frame: ["pong"])
        received: list[str] = []
        channel.on_message = received.append
        await channel.connect()

        await channel.send("ping")
        await settle()

        assert received == ["pong"]
        await channel.dispose()

    @pytest.mark.asyncio
    async def test_hook_is_replaced_not_added(self) -> None:
        channel = MockChannel()
        first: list[str] = []
        second: list[str] = []
        channel.on_message = first.append
        channel.on_message = second.append
        await channel.connect()

        channel.feed("frame")
        await settle()

        assert first == []
        assert second == ["frame"]
        await channel.dispose()

    @pytest.mark.asyncio
    async def test_async_hook_is_awaited(self) -> None:
        channel = MockChannel()
        received: list[str] = []

        async def hook(frame: str) -> None:
            received.append(frame)

        channel.on_message = hook
        await channel.connect()
        channel.feed("frame")
        await settle()

        assert received == ["frame"]
        await channel.dispose()

    @pytest.mark.asyncio
    async def test_failing_hook_does_not_stop_channel(self) -> None:
        channel = MockChannel()
        received: list[str] = []

        def hook(frame: str) -> None:
            if frame == "bad":
                raise ValueError("boom")
            received.append(frame)

        channel.on_message = hook
        await channel.connect()
        channel.feed("bad")
        channel.feed("good")
        await settle()

        assert received == ["good"]
        assert channel.connect_attempts == 1
        await channel.dispose()


class BrokenChannel(MockChannel):
    """Channel whose connect fails with an error that retrying cannot fix."""

    async def _do_connect(self) -> None:
        self.connect_attempts += 1
        raise ValueError("bad url")


class TestPermanentConnectFailure:
    """Errors other than refused or timed-out connects end the run loop."""

    @pytest.mark.asyncio
    async def test_connect_raises_instead_of_hanging(self) -> None:
        channel = BrokenChannel()

        with pytest.raises(ValueError, match="bad url"):
            await asyncio.wait_for(channel.connect(), timeout=1.0)

        assert channel.connect_attempts == 1
        assert channel.state == ChannelState.DISCONNECTED
        await channel.dispose()

    @pytest.mark.asyncio
    async def test_connect_again_retries(self) -> None:
        channel = BrokenChannel()

        for _ in range(2):
            with pytest.raises(ValueError):
                await asyncio.wait_for(channel.connect(), timeout=1.0)

        assert channel.connect_attempts == 2
        await channel.dispose()

    @pytest.mark.asyncio
    async def test_dispose_while_connecting(self) -> None:
        channel = MockChannel()
        channel.fail_connects = 1000
        waiter = asyncio.create_task(channel.connect())
        await settle()

        await channel.dispose()

        with pytest.raises(ConnectionError):
            await asyncio.wait_for(waiter, timeout=1.0)

    @pytest.mark.asyncio
    async def test_malformed_websocket_url(self) -> None:
        channel = WebSocketChannel(ChannelConfig(url="not a url"))

        with pytest.raises(ValueError, match="Invalid WebSocket URL"):
            await asyncio.wait_for(channel.connect(), timeout=2.0)

        assert channel.state == ChannelState.DISCONNECTED
        await channel.dispose()


class TestFactories:
    def test_create_websocket_channel(self) -> None:
        channel = create_websocket_channel("ws://device/api/fs", open_timeout=3.0)

        assert isinstance(channel, WebSocketChannel)
        assert channel.config.url == "ws://device/api/fs"
        assert channel.config.open_timeout == 3.0

    def test_create_mock_channel(self) -> None:
        channel = create_mock_channel()

        assert isinstance(channel, MockChannel)
        assert channel.config.url == "mock://device"

    def test_default_config(self) -> None:
        config = ChannelConfig()

        assert config.open_timeout == 1.5
        assert config.reconnect_delay == 1.5


class TestWebSocketChannel:
    """Library errors are mapped to ConnectionError at the channel boundary."""

    def make_channel(self) -> WebSocketChannel:
        return WebSocketChannel(ChannelConfig(url="ws://device/api/fs"))

    @pytest.mark.asyncio
    async def test_rejected_handshake(self) -> None:
        channel = self.make_channel()

        with patch("websockets.connect", AsyncMock(side_effect=InvalidHandshake("rejected"))):
            with pytest.raises(ConnectionError):
                await channel._do_connect()

    @pytest.mark.asyncio
    async def test_connect_disables_library_pings(self) -> None:
        channel = self.make_channel()
        connect = AsyncMock(return_value=MagicMock())

        with patch("websockets.connect", connect):
            await channel._do_connect()

        assert connect.call_args.kwargs["ping_interval"] is None
        assert connect.call_args.kwargs["open_timeout"] == 1.5

    @pytest.mark.asyncio
    async def test_close_does_not_wait_for_default_close_timeout(self) -> None:
        """A forced reconnect of a half-open socket is bounded by open_timeout, not 10s."""
        channel = WebSocketChannel(ChannelConfig(url="ws://device/wse", open_timeout=2.0))
        connect = AsyncMock(return_value=MagicMock())

        with patch("websockets.connect", connect):
            await channel._do_connect()

        assert connect.call_args.kwargs["close_timeout"] == 2.0

    @pytest.mark.asyncio
    async def test_send_on_closed_socket_drops_frame(self) -> None:
        channel = self.make_channel()
        channel._ws = AsyncMock()
        channel._ws.send.side_effect = ConnectionClosed(None, None)
        channel._state = ChannelState.CONNECTED

        assert await channel.send("<conn_test>") is False

    @pytest.mark.asyncio
    async def test_receive_frames(self) -> None:
        channel = self.make_channel()
        ws = MagicMock()
        ws.__aiter__.return_value = ["WSE_VALVE_ON;1", b"\x00\x01"]
        channel._ws = ws

        frames = [frame async for frame in channel._receive_frames()]

        assert frames == ["WSE_VALVE_ON;1", b"\x00\x01"]

    @pytest.mark.asyncio
    async def test_receive_without_socket(self) -> None:
        channel = self.make_channel()

        with pytest.raises(ConnectionError):
            async for _ in channel._receive_frames():
                pass
