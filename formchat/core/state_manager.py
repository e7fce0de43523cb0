"""
Chat Session State - Per-session conversation and field values

Responsibilities:
- Store the role-tagged conversation (append-only)
- Store accumulated field values (overwrite on repeated SET)
- Snapshot / restore for inspection and debugging
- Carry the lock that serializes turns of this session

Design principles:
- Dumb container: no LLM calls, no parsing, no persistence
- Dialogue Manager = smart coordinator (decides what to append and commit)
- Messages are never edited or removed once appended
"""

import logging
import threading
import time
from typing import Any, Dict, List, Optional

from formchat.contracts import ChatMessage, ROLE_SYSTEM, VALID_ROLES

logger = logging.getLogger(__name__)


class ChatSession:
    """Conversation state of one user with one form"""

    def __init__(self, form_name: str, session_id: str, clock=time.monotonic):
        """
        Initialize empty session.

        Args:
            form_name: Form this session fills
            session_id: Browser/user identity the session belongs to
            clock: Monotonic time source (injectable for tests)
        """
        self.form_name = form_name
        self.session_id = session_id
        self.messages: List[ChatMessage] = []
        self.field_values: Dict[str, str] = {}
        self.context_form: str = ""
        self.context_key: Optional[str] = None
        self.lock = threading.Lock()

        self._clock = clock
        self.created_at = clock()
        self.last_active = self.created_at

        logger.debug(f"ChatSession created: {form_name}/{session_id}")

    # ========================
    # Conversation
    # ========================

    def add_message(self, role: str, content: str) -> ChatMessage:
        """
        Append a message to the conversation.

        Raises:
            ValueError: If role is unknown or a second system message is added
        """
        if role not in VALID_ROLES:
            raise ValueError(f"Unknown message role: {role}")
        if role == ROLE_SYSTEM and self.messages:
            raise ValueError("System message must be the first message")

        message = ChatMessage(role=role, content=content)
        self.messages.append(message)
        return message

    @property
    def system_prompt(self) -> str:
        if self.messages and self.messages[0].role == ROLE_SYSTEM:
            return self.messages[0].content
        return ""

    def turn_count(self) -> int:
        """Number of user messages recorded"""
        return sum(1 for m in self.messages if m.role == "user")

    # ========================
    # Field values
    # ========================

    def set_field(self, field_name: str, value: str) -> None:
        self.field_values[field_name] = value

    def set_fields(self, values: Dict[str, Any]) -> None:
        for field_name, value in values.items():
            self.field_values[field_name] = "" if value is None else str(value)

    def get_field(self, field_name: str, default: Optional[str] = None) -> Optional[str]:
        return self.field_values.get(field_name, default)

    def has_field(self, field_name: str) -> bool:
        return field_name in self.field_values

    # ========================
    # Lifecycle
    # ========================

    def touch(self) -> None:
        self.last_active = self._clock()

    def idle_seconds(self) -> float:
        return self._clock() - self.last_active

    def snapshot(self) -> Dict[str, Any]:
        """
        JSON-safe copy of the session state.

        Returns:
            dict: {'form_name', 'session_id', 'messages', 'field_values',
                   'context_form', 'context_key'}
        """
        return {
            "form_name": self.form_name,
            "session_id": self.session_id,
            "messages": [m.to_dict() for m in self.messages],
            "field_values": dict(self.field_values),
            "context_form": self.context_form,
            "context_key": self.context_key,
        }

    @classmethod
    def from_snapshot(cls, data: Dict[str, Any]) -> "ChatSession":
        session = cls(data["form_name"], data["session_id"])
        session.messages = [ChatMessage.from_dict(m) for m in data.get("messages", [])]
        session.field_values = dict(data.get("field_values", {}))
        session.context_form = data.get("context_form", "")
        session.context_key = data.get("context_key")
        return session
