"""
Field Schema Parser - Turn a form's field-definition text into FieldSpecs

Responsibilities:
- Parse one field per line: "Label: {{.FieldName}} (example)"
- Render the canonical field list back to prompt text
- Skip malformed lines (hand-authored configuration, best effort)

Design principles:
- Pure functions (no I/O, no state)
- Deterministic and idempotent
- Lenient: a bad line is logged and skipped, never raised to the caller

Accepted placeholder spellings:
    {{.FirstName}}   {{FirstName}}   {{ .FirstName }}   <FirstName>
"""

import logging
import re
from typing import Iterable, List, Optional

from formchat.contracts import FieldSpec
from formchat.errors import SchemaError

logger = logging.getLogger(__name__)

PLACEHOLDER_PATTERN = re.compile(
    r"\{\{\s*\.?([A-Za-z_][A-Za-z0-9_]*)\s*\}\}|<([A-Za-z_][A-Za-z0-9_]*)>"
)
EXAMPLE_PATTERN = re.compile(r"\(([^()]*)\)\s*$")
EXAMPLE_PREFIX_PATTERN = re.compile(r"^(e\.g\.|eg:|example:)\s*", re.IGNORECASE)


def parse_field_line(line: str) -> FieldSpec:
    """
    Classify a single field-definition line.

    Args:
        line: One line of field-definition text

    Returns:
        FieldSpec for the line

    Raises:
        SchemaError: If the line has no colon, an empty label, or no placeholder
    """
    if ":" not in line:
        raise SchemaError(f"No label separator in line: {line!r}")

    label, remainder = line.split(":", 1)
    label = label.strip()
    if not label:
        raise SchemaError(f"Empty label in line: {line!r}")

    match = PLACEHOLDER_PATTERN.search(remainder)
    if match is None:
        raise SchemaError(f"No field placeholder in line: {line!r}")
    name = match.group(1) or match.group(2)

    example: Optional[str] = None
    example_match = EXAMPLE_PATTERN.search(remainder[match.end():])
    if example_match:
        inner = EXAMPLE_PREFIX_PATTERN.sub("", example_match.group(1).strip())
        example = inner.strip() or None

    return FieldSpec(label=label, name=name, example=example)


def parse_field_schema(text: str) -> List[FieldSpec]:
    """
    Parse a block of field-definition text into ordered FieldSpecs.

    Blank lines and lines that don't match the "Label: placeholder" shape
    are skipped. Duplicate field names keep their first occurrence.

    Args:
        text: Field-definition text, one field per line

    Returns:
        list: FieldSpecs in line order

    Examples:
        >>> parse_field_schema("First Name: {{.FirstName}} (John)")
        [FieldSpec(label='First Name', name='FirstName', example='John')]
    """
    fields: List[FieldSpec] = []
    seen = set()

    for raw_line in (text or "").splitlines():
        line = raw_line.strip()
        if not line:
            continue

        try:
            spec = parse_field_line(line)
        except SchemaError as e:
            logger.debug(f"Skipping field line: {e}")
            continue

        if spec.name in seen:
            logger.debug(f"Skipping duplicate field '{spec.name}'")
            continue

        seen.add(spec.name)
        fields.append(spec)

    return fields


def render_field_schema(fields: Iterable[FieldSpec]) -> str:
    """
    Render fields as the text block injected into the system prompt.

    Format: "Label: FieldName (example)" - the model uses FieldName in SET lines.
    """
    lines = []
    for spec in fields:
        line = f"{spec.label}: {spec.name}"
        if spec.example:
            line += f" (e.g. {spec.example})"
        lines.append(line)
    return "\n".join(lines)


def field_names(fields: Iterable[FieldSpec]) -> List[str]:
    return [spec.name for spec in fields]
