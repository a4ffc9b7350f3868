from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from app.types.parser_contract import ParsedReminder, ReminderRecord


@pytest.mark.parametrize(
    "raw",
    ["2024-01-02 15:00", "2024-01-02 15:00:00", "2024-01-02T15:00", "2024-01-02T15:00:00"],
)
def test_parsed_reminder_time_formats(raw):
    assert ParsedReminder.model_validate({"time": raw, "text": " Pay rent "}) == ParsedReminder(
        time=datetime(2024, 1, 2, 15, 0), text="Pay rent"
    )


def test_parsed_reminder_blank_time_is_none():
    assert ParsedReminder.model_validate({"time": "", "text": None}).time is None


def test_reminder_record_requires_aware_time():
    with pytest.raises(ValidationError):
        ReminderRecord(reminder_id="r", user_id="U1", channel_id="C1", content="x", reminder_time=datetime(2024, 1, 1))


def test_reminder_record_requires_ids():
    with pytest.raises(ValidationError):
        ReminderRecord(
            reminder_id="r", user_id=" ", channel_id="C1", content="x",
            reminder_time=datetime(2024, 1, 1, tzinfo=timezone.utc),
        )


def test_reminder_record_json_round_trip():
    rec = ReminderRecord(
        reminder_id="r", user_id="U1", channel_id="C1", content="Pay rent",
        reminder_time=datetime(2030, 1, 1, 9, tzinfo=timezone.utc), delivery="slack", external_id="Q1",
    )
    cloned = ReminderRecord.model_validate_json(rec.model_dump_json())
    assert cloned == rec
    assert cloned.active and not cloned.completed
