"""
Result types returned by DialogueManager.

These are the ONLY return types from the turn handler.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple


@dataclass(frozen=True)
class TurnResult:
    """
    Successful turn processing result.

    Attributes:
        display_message: First SAY text of the turn ('' when there was none)
        messages: Every SAY text of the turn, in order
        field_updates: Fields set this turn (last write wins)
        did_save: Whether at least one SAVE was performed
        saved_key: Primary key value the record was saved under
        saved_path: Absolute path of the last written record file
        linking_token: (cookie_name, value) to set after a save, or None
        next_form: Form to suggest after a save ('' for none)
        field_values: Complete field values after the turn
    """
    display_message: str
    messages: List[str] = field(default_factory=list)
    field_updates: Dict[str, str] = field(default_factory=dict)
    did_save: bool = False
    saved_key: Optional[str] = None
    saved_path: Optional[str] = None
    linking_token: Optional[Tuple[str, str]] = None
    next_form: str = ""
    field_values: Dict[str, str] = field(default_factory=dict)

    def to_response(self) -> dict:
        """Transport-independent response body."""
        return {
            "response": self.display_message,
            "messages": list(self.messages),
            "field_updates": dict(self.field_updates),
            "saved": self.did_save,
            "next_form": self.next_form if self.did_save else "",
        }


@dataclass(frozen=True)
class LoadedContext:
    """
    Context form record resolved for a dependent form.

    Attributes:
        form_name: Context form name ('' when the form declares none)
        key: Linking token value used for lookup (None when absent)
        record: Deserialized record ({} when absent)
        json_text: Record as JSON text ('' when absent)
    """
    form_name: str = ""
    key: Optional[str] = None
    record: Dict[str, str] = field(default_factory=dict)
    json_text: str = ""

    @property
    def found(self) -> bool:
        return bool(self.json_text)
