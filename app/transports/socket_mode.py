"""
Socket-mode transport.

Run standalone with ``python -m app.transports.socket_mode``; the supervisor
(`app.transports.supervisor`) runs the same `SocketModeRunner` in a thread.
"""

from __future__ import annotations

import asyncio
import logging
import queue
import time
from typing import Callable, Optional

from slack_bolt.adapter.socket_mode.async_handler import AsyncSocketModeHandler
from slack_bolt.async_app import AsyncApp
from tenacity import retry, stop_after_attempt, wait_exponential

from app.bot import close_bot, create_bot, log_loop_exceptions
from config import settings

_LOGGER = logging.getLogger(__name__)

STOP = "stop"


class SocketModeRunner:
    """Keeps one socket-mode connection alive until told to stop.

    Every ``keepalive_interval`` seconds the runner checks the socket,
    reconnects if Slack dropped it, and reports a heartbeat. A ``"stop"``
    message on ``inbox`` ends `run`.
    """

    def __init__(
        self,
        app: AsyncApp,
        app_token: str,
        keepalive_interval: float = 30,
        on_heartbeat: Optional[Callable[[float], None]] = None,
        inbox: Optional[queue.Queue] = None,
    ):
        self.handler = AsyncSocketModeHandler(app, app_token)
        self.keepalive_interval = keepalive_interval
        self.on_heartbeat = on_heartbeat
        self.inbox = inbox
        self.reconnects = 0

    async def run(self) -> None:
        await self.handler.connect_async()
        _LOGGER.info("⚡️ Socket mode connected")
        self._beat()
        try:
            while not await self._wait_for_stop():
                await self.keepalive()
        finally:
            await self.handler.close_async()
            _LOGGER.info("Socket mode connection closed")

    async def keepalive(self) -> None:
        if not await self.handler.client.is_connected():
            _LOGGER.warning("Socket mode disconnected, reconnecting")
            await self._reconnect()
            self.reconnects += 1
        self._beat()

    @retry(wait=wait_exponential(multiplier=1, max=30), stop=stop_after_attempt(5), reraise=True)
    async def _reconnect(self) -> None:
        await self.handler.client.connect_to_new_endpoint(force=True)

    def _beat(self) -> None:
        if self.on_heartbeat:
            self.on_heartbeat(time.time())

    async def _wait_for_stop(self) -> bool:
        """Sleep one keepalive interval; ``True`` if a stop message arrived."""
        if self.inbox is None:
            await asyncio.sleep(self.keepalive_interval)
            return False
        try:
            message = await asyncio.to_thread(self.inbox.get, True, self.keepalive_interval)
        except queue.Empty:
            return False
        return message == STOP


async def serve(
    app_settings=settings,
    on_heartbeat: Optional[Callable[[float], None]] = None,
    inbox: Optional[queue.Queue] = None,
    reminder_store=None,
) -> None:
    """Build a bot and run it over socket mode until stopped."""
    if not app_settings.SLACK_APP_TOKEN:
        raise RuntimeError("SLACK_APP_TOKEN is required for socket mode")

    log_loop_exceptions(asyncio.get_running_loop())
    app, ctx = create_bot(app_settings, reminder_store=reminder_store)
    await ctx.reminders.restore()
    runner = SocketModeRunner(
        app,
        app_settings.SLACK_APP_TOKEN,
        keepalive_interval=app_settings.KEEPALIVE_INTERVAL,
        on_heartbeat=on_heartbeat,
        inbox=inbox,
    )
    try:
        await runner.run()
    finally:
        await close_bot(ctx)


def main() -> None:
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        asyncio.run(serve())
    except KeyboardInterrupt:
        _LOGGER.info("Interrupted, shutting down")


if __name__ == "__main__":
    main()
