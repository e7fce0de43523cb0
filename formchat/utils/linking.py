"""
Session/linking identity helpers.

Derives the primary-key value that addresses a form's stored record and
the linking token (cookie) that carries it to dependent forms.

Key composition:
    single field  -> value unchanged              "555-55-5555"
    multi field   -> percent-encoded values + '+'  "Doe+1980-01-01"

Percent-encoding each component keeps the composition collision-free:
a literal '+' inside a value becomes '%2B' and can't be mistaken for
the separator.
"""

from typing import Dict, List, Optional, Sequence, Tuple
from urllib.parse import quote

from formchat.contracts import FormSchema
from formchat.errors import MissingPrimaryKeyError

KEY_SEPARATOR = "+"
COOKIE_NAME_SEPARATOR = "-"

# Cookie identifying the browser's chat sessions
SESSION_COOKIE_NAME = "formchat_session"

# Linking cookies apply to every form on the site
COOKIE_PATH = "/"


def compose_key(values: Sequence[str]) -> str:
    """
    Build the storage key from primary-key values in schema order.

    Args:
        values: Primary-key field values

    Returns:
        str: Composite key

    Raises:
        ValueError: If values is empty
    """
    if not values:
        raise ValueError("compose_key() requires at least one value")
    if len(values) == 1:
        return values[0]
    return KEY_SEPARATOR.join(quote(v, safe="") for v in values)


def missing_primary_key_fields(schema: FormSchema, field_values: Dict[str, str]) -> List[str]:
    return [
        name for name in schema.primary_key
        if not str(field_values.get(name) or "").strip()
    ]


def primary_key_value(schema: FormSchema, field_values: Dict[str, str]) -> str:
    """
    Primary-key value of a record at save time.

    Args:
        schema: Form definition (must declare a primary key)
        field_values: Current field values

    Returns:
        str: Composite key

    Raises:
        MissingPrimaryKeyError: If the form has no primary key or any
            primary-key field is absent or blank
    """
    if not schema.has_primary_key:
        raise MissingPrimaryKeyError(schema.name, [])

    missing = missing_primary_key_fields(schema, field_values)
    if missing:
        raise MissingPrimaryKeyError(schema.name, missing)

    return compose_key([str(field_values[name]).strip() for name in schema.primary_key])


def linking_cookie_name(schema: FormSchema) -> str:
    """Cookie name carrying this form's key: the primary-key field names"""
    return COOKIE_NAME_SEPARATOR.join(schema.primary_key)


def linking_token_for(schema: FormSchema, field_values: Dict[str, str]) -> Optional[Tuple[str, str]]:
    """
    Linking token to set after a successful save.

    Returns:
        (cookie_name, key) or None when the form declares no primary key
    """
    if not schema.has_primary_key:
        return None
    return linking_cookie_name(schema), primary_key_value(schema, field_values)
