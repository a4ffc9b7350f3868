import queue
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from app.transports import socket_mode


def fake_handler(connected=True):
    handler = MagicMock()
    handler.connect_async = AsyncMock()
    handler.close_async = AsyncMock()
    handler.client.is_connected = AsyncMock(return_value=connected)
    handler.client.connect_to_new_endpoint = AsyncMock()
    return handler


@pytest.mark.asyncio
async def test_keepalive_reconnects_when_disconnected():
    handler = fake_handler(connected=False)
    beats = []
    with patch.object(socket_mode, "AsyncSocketModeHandler", return_value=handler):
        runner = socket_mode.SocketModeRunner(MagicMock(), "xapp-1", on_heartbeat=beats.append)

    await runner.keepalive()

    handler.client.connect_to_new_endpoint.assert_awaited_once_with(force=True)
    assert runner.reconnects == 1
    assert len(beats) == 1


@pytest.mark.asyncio
async def test_keepalive_healthy_socket_only_beats():
    handler = fake_handler(connected=True)
    beats = []
    with patch.object(socket_mode, "AsyncSocketModeHandler", return_value=handler):
        runner = socket_mode.SocketModeRunner(MagicMock(), "xapp-1", on_heartbeat=beats.append)

    await runner.keepalive()

    handler.client.connect_to_new_endpoint.assert_not_awaited()
    assert len(beats) == 1


@pytest.mark.asyncio
async def test_run_stops_on_inbox_message():
    handler = fake_handler()
    inbox = queue.Queue()
    inbox.put(socket_mode.STOP)
    beats = []
    with patch.object(socket_mode, "AsyncSocketModeHandler", return_value=handler):
        runner = socket_mode.SocketModeRunner(
            MagicMock(), "xapp-1", keepalive_interval=0.05, on_heartbeat=beats.append, inbox=inbox
        )

    await runner.run()

    handler.connect_async.assert_awaited_once()
    handler.close_async.assert_awaited_once()
    assert len(beats) == 1


@pytest.mark.asyncio
async def test_serve_requires_app_token():
    settings = MagicMock(SLACK_APP_TOKEN=None)
    with pytest.raises(RuntimeError, match="SLACK_APP_TOKEN"):
        await socket_mode.serve(settings)
