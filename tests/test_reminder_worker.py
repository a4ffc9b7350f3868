import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from app.types.parser_contract import ReminderRecord
from app.workers import reminder as reminder_worker


def due_record(delivery="timer"):
    return ReminderRecord(
        reminder_id="rem_1",
        user_id="U1",
        channel_id="C1",
        content="Ship it",
        reminder_time=datetime(2024, 1, 1, 18, 0, tzinfo=timezone.utc),
        status="processing",
        delivery=delivery,
    )


def fake_gateway(claimed=()):
    gateway = MagicMock()
    gateway.claim_due_reminders = AsyncMock(return_value=list(claimed))
    gateway.mark_reminder = AsyncMock(return_value=True)
    gateway.dispose = AsyncMock()
    return gateway


def test_dispatch_due_enqueues_claimed_rows():
    with patch.object(reminder_worker, "claim_due", AsyncMock(return_value=[due_record()])), \
            patch.object(reminder_worker, "settle_scheduled", AsyncMock(return_value=0)), \
            patch.object(reminder_worker.celery_app, "send_task") as send_task:
        result = reminder_worker.dispatch_due.apply()

    assert result.get() == 1
    send_task.assert_called_once_with(
        "app.workers.reminder.handle",
        args=["rem_1", "U1", "C1", "Ship it", "2024-01-01T18:00:00+00:00"],
        queue="reminder",
    )


def test_dispatch_due_settles_slack_scheduled_rows():
    settle = AsyncMock(return_value=2)
    with patch.object(reminder_worker, "claim_due", AsyncMock(return_value=[])), \
            patch.object(reminder_worker, "settle_scheduled", settle), \
            patch.object(reminder_worker.celery_app, "send_task") as send_task:
        assert reminder_worker.dispatch_due.apply().get() == 0

    settle.assert_awaited_once_with(limit=100)
    send_task.assert_not_called()


def test_settle_scheduled_marks_slack_rows_sent():
    gateway = fake_gateway([due_record(delivery="slack")])
    with patch.object(reminder_worker, "_gateway", return_value=gateway):
        assert asyncio.run(reminder_worker.settle_scheduled()) == 1

    gateway.claim_due_reminders.assert_awaited_once_with(limit=100, delivery="slack")
    gateway.mark_reminder.assert_awaited_once_with("rem_1", "sent")
    gateway.dispose.assert_awaited_once()


def test_handle_posts_reminder():
    deliver = AsyncMock()
    with patch.object(reminder_worker, "deliver", deliver):
        reminder_worker.handle.apply(args=["rem_1", "U1", "C1", "Ship it", "2024-01-01T18:00:00+00:00"]).get()

    assert deliver.await_args.args[0] == due_record()


def test_deliver_marks_sent():
    gateway = fake_gateway()
    post = AsyncMock()
    with patch.object(reminder_worker, "_gateway", return_value=gateway), \
            patch.object(reminder_worker, "post_reminder", post), \
            patch.object(reminder_worker, "_client", return_value=MagicMock()):
        asyncio.run(reminder_worker.deliver(due_record()))

    post.assert_awaited_once()
    gateway.mark_reminder.assert_awaited_once_with("rem_1", "sent")
    gateway.dispose.assert_awaited_once()


def test_deliver_marks_transport_errors_failed():
    gateway = fake_gateway()
    post = AsyncMock(side_effect=asyncio.TimeoutError())
    with patch.object(reminder_worker, "_gateway", return_value=gateway), \
            patch.object(reminder_worker, "post_reminder", post), \
            patch.object(reminder_worker, "_client", return_value=MagicMock()):
        with pytest.raises(asyncio.TimeoutError):
            asyncio.run(reminder_worker.deliver(due_record()))

    reminder_id, status, error = gateway.mark_reminder.await_args.args
    assert (reminder_id, status) == ("rem_1", "failed")
    assert "TimeoutError" in error
    gateway.dispose.assert_awaited_once()
