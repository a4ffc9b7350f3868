from types import SimpleNamespace

import pytest

from app.bot import create_bot
from config import settings


def test_create_bot_requires_token():
    with pytest.raises(RuntimeError, match="SLACK_BOT_TOKEN"):
        create_bot(SimpleNamespace(SLACK_BOT_TOKEN=None))


def test_create_bot_builds_context():
    app, ctx = create_bot(settings, process_before_response=True)
    assert app.client is ctx.reminders.client
    assert ctx.ai.status.last_error == "OPENAI_API_KEY not set"
    assert len(app._async_listeners) == 11
