"""
Prompt Builder - Construct the system prompt of a chat session

Responsibilities:
- Describe the SAY / SET / SAVE command language to the model
- Substitute global prompt, field schema text and context JSON into
  the form's system prompt template
- Tell the model which language to converse in

NOT responsible for:
- Loading context records (ContextLoader)
- Model-specific chat formatting (PromptFormatter)
- LLM calls

Template placeholders ($-style, so literal JSON braces in a template
need no escaping):
    $global_prompt   global system prompt from configuration
    $fields          rendered field schema ("Label: FieldName (e.g. ...)")
    $context         JSON of the context form's saved record ('' if none)
    $protocol        description of the command language
    $primary_key     primary-key field names, comma separated
    $language        conversation language instruction (see language_instruction)
"""

import logging
from string import Template

from formchat.contracts import FormSchema
from formchat.core.field_schema_parser import render_field_schema

logger = logging.getLogger(__name__)


PROTOCOL_INSTRUCTIONS = """Reply ONLY with command lines, one command per line:
SAY <message to show the user>
SET <FieldName> <value>
SAVE

Rules:
- Use SAY for everything the user should read. Ask one question at a time.
- Use SET as soon as the user gives a value, with the exact FieldName listed above.
- Repeat SET for a field if the user corrects it.
- When every field has a value and the user has confirmed them, output SAVE.
- Never write text outside of these commands."""

# Conversation language. The model detects the user's language itself;
# a configured language pins it instead.
AUTO_LANGUAGE_INSTRUCTION = (
    "Reply in the language the user writes in. "
    "Keep FieldNames exactly as listed and the command words SAY, SET and SAVE in English."
)
FIXED_LANGUAGE_INSTRUCTION = (
    "Speak with the user only in $language_name, whatever language they write in. "
    "Keep FieldNames exactly as listed and the command words SAY, SET and SAVE in English."
)

DEFAULT_TEMPLATE = """$global_prompt

You are helping a user fill out the "$form_title" form.

Fields:
$fields

Primary key: $primary_key

Information already on file (JSON, may be empty):
$context

$language

$protocol"""


def build_protocol_instructions() -> str:
    return PROTOCOL_INSTRUCTIONS


def language_instruction(language: str = "") -> str:
    """
    Language rule for the system prompt.

    Examples:
        >>> language_instruction("Spanish")
        'Speak with the user only in Spanish, whatever language they write in. Keep FieldNames exactly as listed and the command words SAY, SET and SAVE in English.'
    """
    language = (language or "").strip()
    if not language:
        return AUTO_LANGUAGE_INSTRUCTION
    return Template(FIXED_LANGUAGE_INSTRUCTION).substitute(language_name=language)


def build_system_prompt(
    schema: FormSchema,
    global_prompt: str,
    context_json: str = "",
    language: str = ""
) -> str:
    """
    Render the system message for a new session.

    Args:
        schema: Form definition
        global_prompt: Global system prompt shared by every form
        context_json: Context form record as JSON text ('' when none)
        language: Conversation language ('' follows the user's language)

    Returns:
        str: System prompt text

    Examples:
        >>> schema = FormSchema(name='visit', system_prompt_template='$global_prompt|$context')
        >>> build_system_prompt(schema, 'Be brief.', '{"License": "555"}')
        'Be brief.|{"License": "555"}'
    """
    template_text = schema.system_prompt_template or DEFAULT_TEMPLATE

    prompt = Template(template_text).safe_substitute(
        global_prompt=global_prompt or "",
        fields=render_field_schema(schema.fields),
        context=context_json or "",
        protocol=PROTOCOL_INSTRUCTIONS,
        language=language_instruction(language),
        primary_key=", ".join(schema.primary_key),
        form_title=schema.title or schema.name,
        form_name=schema.name,
    )

    logger.debug(f"Built system prompt for {schema.name}: {len(prompt)} chars")
    return prompt.strip()
