"""
Response Parser - Interpret the assistant command protocol

Responsibilities:
- Classify each line of an assistant turn as SAY / SET / SAVE
- Drop blank and unrecognized lines without raising
- Collect the turn outcome: messages, field updates, save flag
- Re-encode directives to protocol text (for prompts, tests, replay)

Protocol (one directive per line, leading/trailing whitespace ignored):
    SAY <message text>
    SET <FieldName> <value that may contain spaces>
    SAVE

Design principles:
- Variant-tagged line classifier: parse_line() -> Directive | None
- Lenient: model output is natural language and can't be made to
  conform strictly, so noise lines are ignored, not errors
- Order preserving: directives come back in line order
- Stateless: no LLM call here, the parser only reads text
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from formchat.contracts import Directive, Save, Say, SetField
from formchat.errors import ProtocolParseError

logger = logging.getLogger(__name__)

# Protocol tokens (case-sensitive)
TOKEN_SAY = "SAY"
TOKEN_SET = "SET"
TOKEN_SAVE = "SAVE"

SET_PATTERN = re.compile(r"^SET\s+(\S+)\s+(.+)$", re.DOTALL)
SAY_PATTERN = re.compile(r"^SAY\s+(.+)$", re.DOTALL)


@dataclass(frozen=True)
class ParsedTurn:
    """
    Interpreted assistant turn.

    Attributes:
        directives: Every recognized directive, in line order
        messages: Text of every SAY, in line order
        field_updates: Every SET collapsed to a map (last write wins)
        save_requested: Whether any SAVE was present
        ignored_lines: Number of non-blank lines that were not directives
    """
    directives: List[Directive] = field(default_factory=list)
    messages: List[str] = field(default_factory=list)
    field_updates: Dict[str, str] = field(default_factory=dict)
    save_requested: bool = False
    ignored_lines: int = 0

    @property
    def display_message(self) -> str:
        """First SAY text, or '' when the turn had none"""
        return self.messages[0] if self.messages else ""


class ResponseParser:
    """Decode assistant output into protocol directives"""

    def classify_line(self, line: str) -> Directive:
        """
        Classify one non-blank line.

        Args:
            line: Line already stripped of surrounding whitespace

        Returns:
            Say, SetField or Save

        Raises:
            ProtocolParseError: If the line is not a directive
        """
        if line == TOKEN_SAVE:
            return Save()

        match = SET_PATTERN.match(line)
        if match:
            return SetField(field_name=match.group(1), value=match.group(2).rstrip())

        match = SAY_PATTERN.match(line)
        if match:
            return Say(text=match.group(1).strip())

        raise ProtocolParseError(f"Not a directive: {line[:80]!r}")

    def parse_line(self, line: str) -> Optional[Directive]:
        """
        Parse a single line, returning None for blank or unrecognized lines.

        Examples:
            >>> ResponseParser().parse_line("SET FirstName John")
            SetField(field_name='FirstName', value='John')
            >>> ResponseParser().parse_line("Sure, let me help") is None
            True
        """
        stripped = line.strip()
        if not stripped:
            return None

        try:
            return self.classify_line(stripped)
        except ProtocolParseError as e:
            logger.debug(f"Ignoring line: {e}")
            return None

    def parse(self, text: str) -> ParsedTurn:
        """
        Interpret a complete assistant turn.

        Args:
            text: Raw assistant message (multi-line)

        Returns:
            ParsedTurn with directives, messages, field updates and save flag
        """
        directives: List[Directive] = []
        messages: List[str] = []
        field_updates: Dict[str, str] = {}
        save_requested = False
        ignored = 0

        for line in (text or "").splitlines():
            if not line.strip():
                continue

            directive = self.parse_line(line)
            if directive is None:
                ignored += 1
                continue

            directives.append(directive)

            if isinstance(directive, Say):
                messages.append(directive.text)
            elif isinstance(directive, SetField):
                field_updates[directive.field_name] = directive.value
            elif isinstance(directive, Save):
                save_requested = True

        if ignored:
            logger.warning(f"Ignored {ignored} non-directive line(s) in assistant output")

        if len(messages) > 1:
            logger.info(f"Assistant turn contained {len(messages)} SAY lines")

        logger.debug(
            f"Parsed turn: {len(directives)} directives, "
            f"{len(field_updates)} field updates, save={save_requested}"
        )

        return ParsedTurn(
            directives=directives,
            messages=messages,
            field_updates=field_updates,
            save_requested=save_requested,
            ignored_lines=ignored,
        )


def serialize_directive(directive: Directive) -> str:
    """Encode one directive as a protocol line"""
    if isinstance(directive, Say):
        return f"{TOKEN_SAY} {directive.text}"
    if isinstance(directive, SetField):
        return f"{TOKEN_SET} {directive.field_name} {directive.value}"
    if isinstance(directive, Save):
        return TOKEN_SAVE
    raise TypeError(f"Unknown directive type: {type(directive).__name__}")


def serialize_directives(directives: Iterable[Directive]) -> str:
    return "\n".join(serialize_directive(d) for d in directives)
