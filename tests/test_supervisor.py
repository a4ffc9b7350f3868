import asyncio
import threading
import time

from app.transports import socket_mode
from app.transports.supervisor import SocketSupervisor


def wait_until(predicate, timeout=3.0):
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


class StubWorker:
    """Stands in for `socket_mode.serve`: beats once, then waits for stop."""

    def __init__(self, fail=False):
        self.fail = fail
        self.runs = 0
        self.stopped = threading.Event()

    async def __call__(self, on_heartbeat=None, inbox=None):
        self.runs += 1
        on_heartbeat(time.time())
        if self.fail:
            raise RuntimeError("socket exploded")
        while True:
            message = await asyncio.to_thread(inbox.get)
            if message == socket_mode.STOP:
                self.stopped.set()
                return


def test_start_stop():
    worker = StubWorker()
    sup = SocketSupervisor(target=worker)

    assert sup.start() is True
    assert sup.start() is False
    assert wait_until(lambda: worker.runs == 1)
    assert sup.check_health() == "healthy"

    assert sup.stop() is True
    assert worker.stopped.wait(3)
    assert wait_until(lambda: not sup.running)
    assert sup.check_health() == "stopped"


def test_stale_heartbeat_restarts_new_generation():
    worker = StubWorker()
    offset = {"seconds": 0}
    sup = SocketSupervisor(target=worker, heartbeat_timeout=120, clock=lambda: time.time() + offset["seconds"])

    sup.start()
    assert wait_until(lambda: worker.runs == 1)
    offset["seconds"] = 121

    assert sup.check_health() == "restarted"
    assert sup.generation == 2
    assert sup.restarts == 1
    # the abandoned worker was told to stop
    assert worker.stopped.wait(3)
    assert wait_until(lambda: worker.runs == 2)
    sup.stop()


def test_crashed_worker_restarts_after_delay():
    worker = StubWorker(fail=True)
    sup = SocketSupervisor(target=worker, restart_delay=0.05)

    sup.start()
    assert wait_until(lambda: not sup.running)
    assert sup.status()["last_error"] == "socket exploded"

    assert sup.check_health() == "restarting"
    assert wait_until(lambda: worker.runs == 2)
    assert sup.generation == 2
    sup.stop()


def test_requested_stop_is_not_restarted():
    worker = StubWorker()
    sup = SocketSupervisor(target=worker, restart_delay=0.05)
    sup.start()
    assert wait_until(lambda: worker.runs == 1)
    sup.stop()
    assert wait_until(lambda: not sup.running)
    assert sup.check_health() == "stopped"
    time.sleep(0.1)
    assert worker.runs == 1
