"""
Test linking identity helpers (primary-key values and linking tokens)
"""

import pytest

from formchat.contracts import FieldSpec, FormSchema
from formchat.errors import MissingPrimaryKeyError
from formchat.utils.helpers import generate_session_id, is_valid_session_id
from formchat.utils.linking import (
    compose_key,
    linking_cookie_name,
    linking_token_for,
    primary_key_value,
)

REGISTRATION = FormSchema(
    name="registration",
    fields=(FieldSpec("First Name", "FirstName"), FieldSpec("License", "License")),
    primary_key=("License",),
)

APPOINTMENT = FormSchema(
    name="appointment",
    fields=(FieldSpec("Last Name", "LastName"), FieldSpec("Date", "Date")),
    primary_key=("LastName", "Date"),
)

FEEDBACK = FormSchema(name="feedback", fields=(FieldSpec("Comment", "Comment"),))


def test_single_field_key_is_value():
    assert primary_key_value(REGISTRATION, {"License": "555-55-5555"}) == "555-55-5555"


def test_single_field_key_is_trimmed():
    assert primary_key_value(REGISTRATION, {"License": " 555 "}) == "555"


def test_composite_key_in_schema_order():
    values = {"Date": "2024-01-02", "LastName": "Smith"}

    assert primary_key_value(APPOINTMENT, values) == "Smith+2024-01-02"


def test_composite_key_is_collision_free():
    assert compose_key(["a+b", "c"]) != compose_key(["a", "b+c"])


def test_missing_key_field_raises():
    with pytest.raises(MissingPrimaryKeyError) as exc_info:
        primary_key_value(APPOINTMENT, {"LastName": "Smith", "Date": "  "})

    assert exc_info.value.missing_fields == ["Date"]
    assert exc_info.value.form_name == "appointment"


def test_form_without_primary_key_has_no_linking_token():
    assert linking_token_for(FEEDBACK, {"Comment": "great"}) is None


def test_linking_token():
    token = linking_token_for(REGISTRATION, {"License": "555-55-5555", "FirstName": "John"})

    assert token == ("License", "555-55-5555")


def test_cookie_name_for_composite_key():
    assert linking_cookie_name(APPOINTMENT) == "LastName-Date"


def test_compose_key_requires_values():
    with pytest.raises(ValueError):
        compose_key([])


def test_session_ids():
    assert is_valid_session_id(generate_session_id())
    assert is_valid_session_id(generate_session_id(short=True))
    assert not is_valid_session_id(None)
    assert not is_valid_session_id("not-a-session")
    assert generate_session_id() != generate_session_id()
