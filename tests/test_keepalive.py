from unittest.mock import MagicMock, patch

import pytest
import requests

from app.scripts import keepalive


def response(payload):
    resp = MagicMock()
    resp.json.return_value = payload
    resp.raise_for_status.return_value = None
    return resp


def test_ping_running_worker_only_checks():
    with patch.object(keepalive.requests, "request", return_value=response({"running": True})) as request:
        assert keepalive.ping("http://bot.local/")["running"] is True
    request.assert_called_once_with("GET", "http://bot.local/socket", timeout=keepalive.REQUEST_TIMEOUT)


def test_ping_starts_stopped_worker():
    replies = [response({"running": False}), response({"running": True, "generation": 2})]
    with patch.object(keepalive.requests, "request", side_effect=replies) as request:
        status = keepalive.ping("http://bot.local")
    assert status["generation"] == 2
    assert request.call_args.args == ("POST", "http://bot.local/socket")
    assert request.call_args.kwargs["json"] == {"action": "start"}


def test_ping_gives_up_after_three_attempts():
    with patch.object(keepalive.requests, "request", side_effect=requests.ConnectionError("down")) as request, \
            patch("time.sleep"):
        with pytest.raises(requests.ConnectionError):
            keepalive.ping("http://bot.local")
    assert request.call_count == 3
