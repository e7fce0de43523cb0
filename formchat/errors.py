"""
Error kinds for the form chat system.

Propagation policy:
- SchemaError and ProtocolParseError are recovered where they occur
  (the offending line is skipped) and never reach the turn caller.
- CollaboratorError, PersistenceError and MissingPrimaryKeyError
  propagate to the turn caller as explicit failures.
- ConfigError is raised at startup (fail fast on bad form definitions).
"""

from typing import Iterable, Optional


class FormChatError(Exception):
    """Base class for all form chat errors"""


class ConfigError(FormChatError):
    """Form configuration is missing or inconsistent"""


class SchemaError(FormChatError):
    """
    Malformed field-definition line.

    Raised internally by the line classifier and caught by the parser,
    which skips the line.
    """


class ProtocolParseError(FormChatError):
    """
    Assistant output line that is not a SAY/SET/SAVE directive.

    Raised internally by the line classifier and caught by the parser,
    which drops the line.
    """


class CollaboratorError(FormChatError):
    """
    LLM completion call failed (transport, timeout, non-2xx, malformed payload).

    Attributes:
        backend: Name of the LLM backend that failed
        cause: Original exception, if any
    """

    def __init__(self, message: str, backend: str = "", cause: Optional[BaseException] = None):
        super().__init__(message)
        self.backend = backend
        self.cause = cause


class PersistenceError(FormChatError):
    """
    Record could not be written or read.

    Attributes:
        path: File path involved in the failed operation
    """

    def __init__(self, message: str, path: str = ""):
        super().__init__(message)
        self.path = path


class MissingPrimaryKeyError(FormChatError):
    """
    SAVE attempted while primary-key field(s) are unset.

    Attributes:
        form_name: Form being saved
        missing_fields: Primary-key fields without a value
    """

    def __init__(self, form_name: str, missing_fields: Iterable[str]):
        self.form_name = form_name
        self.missing_fields = list(missing_fields)
        super().__init__(
            f"Cannot save form '{form_name}': primary key field(s) "
            f"{', '.join(self.missing_fields)} not set"
        )
