import random

import pytest

from app.services.intents import CAPABILITIES, SLASH_IN_DM, SNARKY_RESPONSES, canned_reply, classify


@pytest.mark.parametrize(
    "text",
    [
        "what can't you do?",
        "What can’t you do",
        "what are your limitations",
        "Is there anything you cannot do?",
        "what are you not able to do",
    ],
)
def test_limitations(text):
    reply = canned_reply(text, "U1", rng=random.Random(1))
    assert reply.startswith("<@U1> asked what I can't do... ")
    assert reply.split("... ", 1)[1] in SNARKY_RESPONSES


@pytest.mark.parametrize("text", ["what do you do", "What can you do?", "what is your purpose", "who are you"])
def test_purpose(text):
    assert canned_reply(text, "U1") == CAPABILITIES


def test_limitations_checked_before_purpose():
    assert classify("what can't you do").name == "limitations"


def test_slash_hint_only_in_direct_messages():
    assert canned_reply("/reminder tomorrow", "U1", direct=True) == SLASH_IN_DM
    assert canned_reply("/reminder tomorrow", "U1", direct=False) is None


def test_everything_else_falls_through():
    assert canned_reply("how is the launch going?", "U1") is None


def test_snark_choice_covers_all_lines():
    rng = random.Random(42)
    seen = {canned_reply("what can't you do", "U1", rng=rng).split("... ", 1)[1] for _ in range(500)}
    assert seen == set(SNARKY_RESPONSES)
