"""
Semantic contracts for the conversational form-filling system.

This module defines immutable data structures that serve as contracts
between modules. These are NOT validators - they define shape and
semantics without enforcing rules.

Design principles:
- Frozen dataclasses (immutable after creation)
- No validation logic (FormConfig validates, contracts only describe)
- No dependencies on other modules
- Definition layer only (no enforcement)

Contents:
- FieldSpec: One settable field of a form
- FormSchema: Immutable form definition
- Say / SetField / Save: Directives of the assistant command protocol
- ChatMessage: Role-tagged conversation entry

Usage:
    from formchat.contracts import FormSchema, FieldSpec, SetField
"""

from dataclasses import dataclass
from typing import Optional, Tuple, Union

ROLE_SYSTEM = "system"
ROLE_USER = "user"
ROLE_ASSISTANT = "assistant"

VALID_ROLES = (ROLE_SYSTEM, ROLE_USER, ROLE_ASSISTANT)


@dataclass(frozen=True)
class FieldSpec:
    """
    One field of a form, as parsed from the field-definition text.

    Attributes:
        label: Human-readable label shown to the model ("First Name")
        name: Field name used as JSON key and in SET directives ("FirstName")
        example: Optional example value from the trailing parenthetical

    Examples:
        >>> FieldSpec(label='License', name='License', example='555-55-5555')
        FieldSpec(label='License', name='License', example='555-55-5555')
    """
    label: str
    name: str
    example: Optional[str] = None


@dataclass(frozen=True)
class FormSchema:
    """
    Immutable per-form definition.

    Built by FormConfig from the JSON configuration file. Every name in
    primary_key is guaranteed (by FormConfig) to exist in fields.

    Attributes:
        name: Unique form identifier, also used in URLs and storage paths
        fields: Ordered field specs
        primary_key: Field names forming the record identity, in order
        context_form: Form whose saved record is loaded as context ('' for none)
        system_prompt_template: Template with $global_prompt, $fields, $context
        title: Display title for the home page
        description: Display description for the home page
        button_text: Label of the start button
        greeting: First bot message shown by the chat widget
        next_form: Form suggested to the user after a successful save ('' for none)
    """
    name: str
    fields: Tuple[FieldSpec, ...] = ()
    primary_key: Tuple[str, ...] = ()
    context_form: str = ""
    system_prompt_template: str = ""
    title: str = ""
    description: str = ""
    button_text: str = ""
    greeting: str = ""
    next_form: str = ""

    @property
    def field_names(self) -> Tuple[str, ...]:
        return tuple(f.name for f in self.fields)

    @property
    def has_primary_key(self) -> bool:
        return len(self.primary_key) > 0


@dataclass(frozen=True)
class Say:
    """Human-visible message from the assistant."""
    text: str


@dataclass(frozen=True)
class SetField:
    """Assign a value to a form field."""
    field_name: str
    value: str


@dataclass(frozen=True)
class Save:
    """Persist the accumulated field values now."""
    pass


# Directive union type for type hints
Directive = Union[Say, SetField, Save]


@dataclass(frozen=True)
class ChatMessage:
    """
    Role-tagged conversation entry.

    Replayed in full to the LLM on every turn, so it mirrors the
    role/content shape chat-completion APIs expect.
    """
    role: str
    content: str

    def to_dict(self) -> dict:
        return {"role": self.role, "content": self.content}

    @staticmethod
    def from_dict(data: dict) -> "ChatMessage":
        return ChatMessage(role=data["role"], content=data.get("content", ""))
