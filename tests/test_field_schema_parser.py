"""
Test Field Schema Parser

Verifies parsing of "Label: {{.FieldName}} (example)" lines and the
best-effort skipping of malformed lines.
"""

import pytest

from formchat.contracts import FieldSpec
from formchat.core.field_schema_parser import (
    field_names,
    parse_field_line,
    parse_field_schema,
    render_field_schema,
)
from formchat.errors import SchemaError


REGISTRATION_FIELDS = """
First Name: {{.FirstName}} (John)
Last Name: {{.LastName}}
Driver's License Number: {{.License}} (555-55-5555)
"""


def test_parse_basic_fields_in_order():
    fields = parse_field_schema(REGISTRATION_FIELDS)

    assert fields == [
        FieldSpec(label="First Name", name="FirstName", example="John"),
        FieldSpec(label="Last Name", name="LastName", example=None),
        FieldSpec(label="Driver's License Number", name="License", example="555-55-5555"),
    ]


def test_placeholder_spellings():
    text = "\n".join([
        "A: {{.Alpha}}",
        "B: {{Beta}}",
        "C: {{ .Gamma }}",
        "D: <Delta>",
    ])

    assert field_names(parse_field_schema(text)) == ["Alpha", "Beta", "Gamma", "Delta"]


def test_example_prefix_is_stripped():
    spec = parse_field_line("Reason: {{.Reason}} (e.g. sore throat)")

    assert spec.example == "sore throat"


def test_label_split_on_first_colon_only():
    spec = parse_field_line("Time: {{.Time}} (10:30)")

    assert spec.label == "Time"
    assert spec.name == "Time"
    assert spec.example == "10:30"


@pytest.mark.parametrize("line", [
    "No colon here {{.Field}}",
    ": {{.Field}}",
    "Label: no placeholder at all",
    "Label: {{.1Invalid}}",
])
def test_malformed_line_raises_schema_error(line):
    with pytest.raises(SchemaError):
        parse_field_line(line)


def test_malformed_lines_are_skipped():
    text = "\n".join([
        "PATIENT REGISTRATION FORM",
        "------------------------",
        "Full Name: {{.FullName}}",
        "Notes: free text without a placeholder",
        "",
        "Reason for Visit: {{.ReasonForVisit}}",
    ])

    assert field_names(parse_field_schema(text)) == ["FullName", "ReasonForVisit"]


def test_duplicate_field_keeps_first():
    text = "Name: {{.Name}} (first)\nOther Name: {{.Name}} (second)"

    fields = parse_field_schema(text)

    assert len(fields) == 1
    assert fields[0].label == "Name"


def test_empty_and_none_input():
    assert parse_field_schema("") == []
    assert parse_field_schema(None) == []


def test_parsing_is_deterministic():
    assert parse_field_schema(REGISTRATION_FIELDS) == parse_field_schema(REGISTRATION_FIELDS)


def test_render_field_schema():
    text = render_field_schema(parse_field_schema(REGISTRATION_FIELDS))

    assert text.splitlines() == [
        "First Name: FirstName (e.g. John)",
        "Last Name: LastName",
        "Driver's License Number: License (e.g. 555-55-5555)",
    ]
