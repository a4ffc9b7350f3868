"""
Socket-mode worker supervised from the HTTP process.

The worker is a daemon thread running its own event loop and its own bot
(`app.transports.socket_mode.serve`). It reports heartbeats over a queue
and listens for ``"stop"`` on another. A thread can't be killed, so a stale
worker is sent ``"stop"`` and abandoned; the next generation starts fresh
queues and ignores anything the old one still reports.
"""

from __future__ import annotations

import asyncio
import logging
import queue
import threading
import time
from typing import Any, Callable, Dict, Optional

from app.transports import socket_mode

_LOGGER = logging.getLogger(__name__)


class _Worker:
    def __init__(self, generation: int, target: Callable[..., Any]):
        self.generation = generation
        self.heartbeats: queue.Queue = queue.Queue()
        self.inbox: queue.Queue = queue.Queue()
        self.started_at = time.time()
        self.last_heartbeat = self.started_at
        self.error: Optional[str] = None
        self.finished = False
        self.thread = threading.Thread(
            target=self._run,
            args=(target,),
            name=f"socket-worker-{generation}",
            daemon=True,
        )

    def _run(self, target) -> None:
        try:
            asyncio.run(target(on_heartbeat=self.heartbeats.put, inbox=self.inbox))
        except Exception as exc:  # noqa: BLE001
            _LOGGER.error("Socket worker %d crashed: %s", self.generation, exc, exc_info=True)
            self.error = str(exc)
        finally:
            self.finished = True

    def drain(self) -> None:
        while True:
            try:
                self.last_heartbeat = self.heartbeats.get_nowait()
            except queue.Empty:
                return

    @property
    def alive(self) -> bool:
        return self.thread.is_alive() and not self.finished


class SocketSupervisor:
    """Start, stop and health-check the socket-mode worker thread."""

    def __init__(
        self,
        target: Callable[..., Any] = socket_mode.serve,
        heartbeat_timeout: float = 120,
        restart_delay: float = 5,
        clock: Callable[[], float] = time.time,
    ):
        self.target = target
        self.heartbeat_timeout = heartbeat_timeout
        self.restart_delay = restart_delay
        self.clock = clock
        self.generation = 0
        self.restarts = 0
        self._worker: Optional[_Worker] = None
        self._stopped_by_request = False
        self._pending_restart: Optional[threading.Timer] = None
        self._lock = threading.RLock()

    @classmethod
    def from_settings(cls, settings, target: Optional[Callable[..., Any]] = None) -> "SocketSupervisor":
        return cls(
            target=target or socket_mode.serve,
            heartbeat_timeout=settings.WORKER_HEARTBEAT_TIMEOUT,
            restart_delay=settings.WORKER_RESTART_DELAY,
        )

    @property
    def running(self) -> bool:
        return self._worker is not None and self._worker.alive

    def start(self) -> bool:
        """Start a worker unless one is already running; ``True`` if started."""
        with self._lock:
            if self.running:
                return False
            self._cancel_pending_restart()
            self.generation += 1
            self._worker = _Worker(self.generation, self.target)
            self._stopped_by_request = False
            self._worker.thread.start()
            _LOGGER.info("Socket worker %d started", self.generation)
            return True

    def stop(self) -> bool:
        """Ask the worker to stop; ``True`` if one was running."""
        with self._lock:
            self._cancel_pending_restart()
            self._stopped_by_request = True
            worker = self._worker
            if worker is None or not worker.alive:
                return False
            worker.inbox.put(socket_mode.STOP)
            _LOGGER.info("Stop requested for socket worker %d", worker.generation)
            return True

    def restart(self) -> None:
        with self._lock:
            old = self._worker
            if old is not None and old.alive:
                # can't join a stuck thread; abandon it
                old.inbox.put(socket_mode.STOP)
            self._worker = None
            self.restarts += 1
            self.start()

    def check_health(self) -> str:
        """Restart a stale or crashed worker; returns what was decided."""
        with self._lock:
            worker = self._worker
            if worker is None:
                return "not_started"
            worker.drain()

            if not worker.alive:
                if self._stopped_by_request or worker.error is None:
                    return "stopped"
                self._schedule_restart()
                return "restarting"

            age = self.clock() - worker.last_heartbeat
            if age > self.heartbeat_timeout:
                _LOGGER.warning(
                    "Socket worker %d heartbeat is %.0fs old, restarting", worker.generation, age
                )
                self.restart()
                return "restarted"
            return "healthy"

    def _schedule_restart(self) -> None:
        if self._pending_restart is not None:
            return
        _LOGGER.warning("Socket worker exited abnormally, restarting in %ss", self.restart_delay)
        timer = threading.Timer(self.restart_delay, self._delayed_restart)
        timer.daemon = True
        self._pending_restart = timer
        timer.start()

    def _delayed_restart(self) -> None:
        with self._lock:
            self._pending_restart = None
            if self._stopped_by_request:
                return
            self._worker = None
            self.restarts += 1
            self.start()

    def _cancel_pending_restart(self) -> None:
        if self._pending_restart is not None:
            self._pending_restart.cancel()
            self._pending_restart = None

    def status(self) -> Dict[str, Any]:
        with self._lock:
            worker = self._worker
            if worker is not None:
                worker.drain()
            return {
                "running": self.running,
                "generation": self.generation,
                "restarts": self.restarts,
                "last_heartbeat": worker.last_heartbeat if worker else None,
                "heartbeat_age": round(self.clock() - worker.last_heartbeat, 1) if worker else None,
                "last_error": worker.error if worker else None,
                "restart_pending": self._pending_restart is not None,
            }
