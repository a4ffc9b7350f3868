"""
HTTP transport: Slack events/commands/interactivity over FastAPI, plus
health and socket-worker control endpoints.

    uvicorn main:app --host 0.0.0.0 --port $PORT
"""

import asyncio
import contextlib
import functools
import logging

import uvicorn
from fastapi import FastAPI, HTTPException, Request
from pydantic import BaseModel
from slack_bolt.adapter.fastapi.async_handler import AsyncSlackRequestHandler

from app.bot import close_bot, create_bot, log_loop_exceptions
from app.context import Unavailable
from app.transports import socket_mode
from app.transports.supervisor import SocketSupervisor
from config import settings

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
_LOGGER = logging.getLogger(__name__)

SOCKET_ACTIONS = ("start", "stop", "restart")


class SocketAction(BaseModel):
    action: str


def create_api(app_settings=settings, supervisor=None) -> FastAPI:
    bolt_app, ctx = create_bot(app_settings, process_before_response=True)
    handler = AsyncSlackRequestHandler(bolt_app)
    if supervisor is None and app_settings.SLACK_APP_TOKEN:
        # without a database both bots must see the same in-memory reminders
        shared = ctx.reminders.store if isinstance(ctx.database, Unavailable) else None
        supervisor = SocketSupervisor.from_settings(
            app_settings,
            target=functools.partial(socket_mode.serve, app_settings, reminder_store=shared),
        )

    api = FastAPI(title="Milestone Madness")
    api.state.ctx = ctx
    api.state.supervisor = supervisor
    monitor: dict = {}

    async def watch_worker() -> None:
        while True:
            await asyncio.sleep(app_settings.KEEPALIVE_INTERVAL)
            supervisor.check_health()

    @api.on_event("startup")
    async def startup_event():
        log_loop_exceptions(asyncio.get_running_loop())
        if supervisor is None:
            await ctx.reminders.restore()
        else:
            # the socket worker owns its own scheduler and restores it on start
            monitor["task"] = asyncio.create_task(watch_worker())

    @api.on_event("shutdown")
    async def shutdown_event():
        task = monitor.pop("task", None)
        if task:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        if supervisor is not None:
            supervisor.stop()
        await close_bot(ctx)

    # --------------------------------------------
    # Slack
    # --------------------------------------------

    @api.post("/slack/events")
    async def slack_events(req: Request):
        return await handler.handle(req)

    @api.post("/slack/commands")
    async def slack_commands(req: Request):
        return await handler.handle(req)

    @api.post("/slack/interactive-endpoints")
    async def slack_interactive(req: Request):
        return await handler.handle(req)

    # --------------------------------------------
    # Health / worker control
    # --------------------------------------------

    @api.get("/health")
    async def health():
        database = ctx.database
        return {
            "status": "ok",
            "environment": app_settings.ENVIRONMENT,
            "ai": ctx.ai.status.model_dump(mode="json"),
            "database": (
                {"status": "unavailable", "reason": database.reason}
                if isinstance(database, Unavailable)
                else {"status": database.status}
            ),
            "reminders": {
                "delivery": ctx.reminders.delivery,
                "armed": len(ctx.reminders.pending_timers()),
            },
            "socket": supervisor.status() if supervisor else None,
        }

    def _require_supervisor() -> SocketSupervisor:
        if supervisor is None:
            raise HTTPException(status_code=503, detail="SLACK_APP_TOKEN not set; socket mode disabled")
        return supervisor

    @api.get("/socket")
    async def socket_status():
        sup = _require_supervisor()
        sup.check_health()
        started = sup.start()
        return {"started": started, **sup.status()}

    @api.post("/socket")
    async def socket_control(body: SocketAction):
        sup = _require_supervisor()
        if body.action not in SOCKET_ACTIONS:
            raise HTTPException(
                status_code=400,
                detail=f"Invalid action. Use one of: {', '.join(SOCKET_ACTIONS)}",
            )
        if body.action == "start":
            sup.start()
        elif body.action == "stop":
            sup.stop()
        else:
            sup.restart()
        return {"action": body.action, **sup.status()}

    return api


app = create_api(settings)


if __name__ == "__main__":  # pragma: no cover
    uvicorn.run(app, host="0.0.0.0", port=settings.PORT)
