from datetime import datetime

import pytest

from app.services import parser_agent
from app.types.parser_contract import ParsedReminder
from conftest import PACIFIC, FakeAI

NOW = datetime(2024, 1, 1, 10, 0, tzinfo=PACIFIC)


@pytest.mark.asyncio
async def test_relative_time_example():
    ai = FakeAI('{"time": "2024-01-02 15:00", "text": "Submit report"}')
    parsed = await parser_agent.run("Submit report tomorrow at 3pm", ai, NOW)

    assert parsed.text == "Submit report"
    assert parsed.time == datetime(2024, 1, 2, 15, 0, tzinfo=PACIFIC)
    assert parser_agent.format_display_time(parsed.time) == "Tuesday, January 2, 2024 at 3:00 PM"
    task, prompt = ai.calls[0]
    assert task == "reminder"
    assert "2024-01-01 10:00 (Monday)" in prompt


@pytest.mark.asyncio
async def test_past_time_moves_to_next_day():
    ai = FakeAI('Sure! {"time": "2024-01-01 09:00", "text": "Standup"}')
    parsed = await parser_agent.run("Standup at 9am", ai, NOW)
    assert parsed.time == datetime(2024, 1, 2, 9, 0, tzinfo=PACIFIC)


@pytest.mark.asyncio
async def test_no_time_is_parse_failed():
    ai = FakeAI('{"time": null, "text": "Call mom"}')
    parsed = await parser_agent.run("Call mom", ai, NOW)
    assert parsed.time is None
    assert parsed.text == "Call mom"


@pytest.mark.parametrize(
    "raw",
    [
        "I'm having trouble connecting to my AI services right now.",
        '{"time": "next week-ish", "text": "x"}',
        '{"time": "2024-01-02 15:00", ',
    ],
)
def test_malformed_output_falls_back_to_request(raw):
    parsed = parser_agent.extract_reminder(raw, "Submit report tomorrow")
    assert parsed == ParsedReminder(time=None, text="Submit report tomorrow")


def test_roll_forward_keeps_now_and_future():
    assert parser_agent.roll_forward(NOW, NOW) == NOW
    later = NOW.replace(hour=11)
    assert parser_agent.roll_forward(later, NOW) == later


def test_format_display_time():
    assert parser_agent.format_display_time(datetime(2024, 3, 5, 0, 7)) == "Tuesday, March 5, 2024 at 12:07 AM"
    assert parser_agent.format_display_time(None) == "unspecified time"
