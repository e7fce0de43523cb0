"""
Test Response Parser (SAY / SET / SAVE command protocol)

Covers line classification, lenient handling of noise lines,
ordering, and the turn outcome (first SAY, field updates, save flag).
"""

import pytest

from formchat.contracts import Save, Say, SetField
from formchat.core.response_parser import ResponseParser, serialize_directives
from formchat.errors import ProtocolParseError


@pytest.fixture
def parser():
    return ResponseParser()


# ========== Line classification ==========

def test_set_line(parser):
    assert parser.parse_line("SET FirstName John") == SetField("FirstName", "John")


def test_set_value_keeps_internal_whitespace(parser):
    directive = parser.parse_line("  SET Address 12  Main St, Springfield   ")

    assert directive == SetField("Address", "12  Main St, Springfield")


def test_set_split_on_first_whitespace_run(parser):
    assert parser.parse_line("SET\tLicense \t 555-55-5555") == SetField("License", "555-55-5555")


def test_say_line(parser):
    assert parser.parse_line("SAY   Thanks, John!  ") == Say("Thanks, John!")


def test_save_line(parser):
    assert parser.parse_line("  SAVE  ") == Save()


@pytest.mark.parametrize("line", [
    "",
    "   ",
    "Sure, I can help with that.",
    "SAVE now",
    "SAVED",
    "SETTING FirstName John",
    "SET FirstName",
    "SAY",
    "say hello",
    "set FirstName John",
    "SAYING hello",
])
def test_non_directive_lines_return_none(parser, line):
    assert parser.parse_line(line) is None


def test_classify_line_raises_for_noise(parser):
    with pytest.raises(ProtocolParseError):
        parser.classify_line("Hello there")


# ========== Turn parsing ==========

def test_registration_scenario(parser):
    text = "SET FirstName John\nSET License 555-55-5555\nSAY Thanks\nSAVE"

    turn = parser.parse(text)

    assert turn.display_message == "Thanks"
    assert turn.field_updates == {"FirstName": "John", "License": "555-55-5555"}
    assert turn.save_requested is True
    assert turn.directives == [
        SetField("FirstName", "John"),
        SetField("License", "555-55-5555"),
        Say("Thanks"),
        Save(),
    ]


def test_set_and_save_without_say(parser):
    turn = parser.parse("SET License 555-55-5555\nSAVE")

    assert turn.display_message == ""
    assert turn.messages == []
    assert turn.field_updates == {"License": "555-55-5555"}
    assert turn.save_requested is True


def test_last_set_wins(parser):
    turn = parser.parse("SET FirstName John\nSET FirstName Jane")

    assert turn.field_updates == {"FirstName": "Jane"}
    assert len(turn.directives) == 2


def test_only_first_say_is_display_message_but_all_are_kept(parser):
    turn = parser.parse("SAY Hello!\nSAY What is your name?")

    assert turn.display_message == "Hello!"
    assert turn.messages == ["Hello!", "What is your name?"]


def test_noise_lines_dropped_and_order_preserved(parser):
    text = "\n".join([
        "Okay! Here's what I have:",
        "SET FirstName John",
        "- some bullet",
        "",
        "SAY Got it.",
        "```",
        "SET LastName Smith",
        "SAVE",
    ])

    turn = parser.parse(text)

    assert turn.directives == [
        SetField("FirstName", "John"),
        Say("Got it."),
        SetField("LastName", "Smith"),
        Save(),
    ]
    assert turn.ignored_lines == 3


def test_no_save_means_no_persist(parser):
    turn = parser.parse("SAY What is your address?")

    assert turn.save_requested is False
    assert turn.field_updates == {}


def test_windows_line_endings(parser):
    turn = parser.parse("SET FirstName John\r\nSAY Hi\r\n")

    assert turn.field_updates == {"FirstName": "John"}
    assert turn.messages == ["Hi"]


def test_empty_text(parser):
    turn = parser.parse("")

    assert turn.directives == []
    assert turn.display_message == ""
    assert turn.save_requested is False


def test_serialized_directives_parse_back_to_same_list(parser):
    directives = [
        Say("Welcome back, John."),
        SetField("ReasonForVisit", "sore throat and fever"),
        SetField("License", "555-55-5555"),
        Save(),
        SetField("ReasonForVisit", "fever"),
    ]

    assert parser.parse(serialize_directives(directives)).directives == directives
