"""Keep the supervised socket worker running from outside the process.

    python -m app.scripts.keepalive

Pings ``GET {CONTROLLER_URL}/socket`` (which also starts the worker when
needed) and posts ``{"action": "start"}`` if it still reports not running.
"""

from __future__ import annotations

import logging
import time

import requests
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_fixed

from config import settings

_LOGGER = logging.getLogger(__name__)

REQUEST_TIMEOUT = 10


@retry(
    wait=wait_fixed(5),
    stop=stop_after_attempt(3),
    retry=retry_if_exception_type(requests.RequestException),
    reraise=True,
)
def _call(method: str, url: str, **kwargs) -> dict:
    response = requests.request(method, url, timeout=REQUEST_TIMEOUT, **kwargs)
    response.raise_for_status()
    return response.json()


def ping(base_url: str) -> dict:
    """One keepalive round; returns the worker status after it."""
    url = f"{base_url.rstrip('/')}/socket"
    status = _call("GET", url)
    if not status.get("running"):
        _LOGGER.warning("Socket worker not running, requesting start")
        status = _call("POST", url, json={"action": "start"})
    return status


def main() -> None:
    logging.basicConfig(level=settings.LOG_LEVEL)
    _LOGGER.info("Keepalive pinging %s every %ss", settings.CONTROLLER_URL, settings.KEEPALIVE_PING_INTERVAL)
    while True:
        try:
            status = ping(settings.CONTROLLER_URL)
            _LOGGER.info("Socket worker running=%s generation=%s", status.get("running"), status.get("generation"))
        except requests.RequestException as exc:
            _LOGGER.error("Keepalive ping failed: %s", exc)
        time.sleep(settings.KEEPALIVE_PING_INTERVAL)


if __name__ == "__main__":  # pragma: no cover
    try:
        main()
    except KeyboardInterrupt:
        pass
