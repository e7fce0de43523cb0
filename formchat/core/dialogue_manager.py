"""
Dialogue Manager - Conversational form-filling orchestration

Responsibilities:
- Create chat sessions lazily (system prompt + context pre-fill)
- Run one turn: record user text, call LLM, interpret directives
- Apply SET directives and perform SAVEs through FormPersistence
- Report display text, field updates and linking token to the caller

Design principles:
- Thin orchestration layer (parsing, storage, prompts live elsewhere)
- One turn at a time per session (session lock held for the whole turn)
- No partial state: field values and the assistant message are committed
  only after every SAVE of the turn succeeded
- The user message stays recorded even when the turn fails, so a retry
  continues the same conversation

Session lifecycle:
    Uninitialized --first turn / start_session()--> Active
    Active --successful SAVE, reset_session(), idle TTL--> (gone)
    Active --prefill() with a different linking token--> (gone)
"""

import logging
import time
from typing import Dict, List, Optional, Tuple

from formchat.config import FormConfig
from formchat.contracts import ROLE_ASSISTANT, ROLE_SYSTEM, ROLE_USER, FormSchema, Save, SetField
from formchat.core.context_loader import ContextLoader, TokenLookup
from formchat.core.response_parser import ParsedTurn, ResponseParser
from formchat.core.session_registry import SessionRegistry
from formchat.core.state_manager import ChatSession
from formchat.errors import CollaboratorError
from formchat.persistence import FormPersistence
from formchat.results import LoadedContext, TurnResult
from formchat.utils.linking import linking_token_for, primary_key_value
from formchat.utils.prompt_builder import build_system_prompt

logger = logging.getLogger(__name__)


class DialogueManager:
    """
    Drives chat sessions for every configured form.

    Collaborators are injected; the manager holds no conversation
    state of its own beyond the session registry.
    """

    def __init__(
        self,
        forms: FormConfig,
        llm_client,
        persistence: FormPersistence,
        context_loader: Optional[ContextLoader] = None,
        registry: Optional[SessionRegistry] = None,
        response_parser: Optional[ResponseParser] = None,
        clock=time.monotonic
    ):
        """
        Initialize Dialogue Manager with collaborators

        Args:
            forms: Validated form definitions
            llm_client: Object with complete(messages) -> str
            persistence: Record store
            context_loader: Context resolver (built from forms + persistence if None)
            registry: Session registry (new one with default TTL if None)
            response_parser: Protocol interpreter (default ResponseParser())
            clock: Monotonic time source handed to new sessions

        Raises:
            TypeError: If llm_client has no callable complete()
        """
        if not callable(getattr(llm_client, "complete", None)):
            raise TypeError("llm_client must have callable complete() method")

        self.forms = forms
        self.llm_client = llm_client
        self.persistence = persistence
        self.context_loader = (
            context_loader if context_loader is not None else ContextLoader(forms, persistence)
        )
        self.registry = registry if registry is not None else SessionRegistry()
        self.parser = response_parser if response_parser is not None else ResponseParser()
        self._clock = clock

        logger.info("Dialogue Manager initialized")

    # ========================
    # Sessions
    # ========================

    def prefill(
        self,
        form_name: str,
        token_lookup: Optional[TokenLookup] = None,
        session_id: Optional[str] = None
    ) -> LoadedContext:
        """
        Context record for a form page, before any chat turn.

        When session_id names an active session that was started from a
        different context record (another linking token, or none), that
        session is dropped so the next turn starts from this context.

        Raises:
            KeyError: If the form is unknown
        """
        context = self.context_loader.load(self.forms.get(form_name), token_lookup)

        if session_id is not None:
            session = self.registry.get(form_name, session_id)
            current_key = context.key if context.found else None
            if session is not None and session.context_key != current_key:
                logger.info(
                    f"Session {form_name}/{session_id} started from context "
                    f"{session.context_key!r}, now {current_key!r}: starting over"
                )
                self.registry.discard(form_name, session_id)

        return context

    def _new_session(
        self,
        schema: FormSchema,
        session_id: str,
        token_lookup: Optional[TokenLookup]
    ) -> ChatSession:
        context = self.context_loader.load(schema, token_lookup)

        session = ChatSession(schema.name, session_id, clock=self._clock)
        session.add_message(
            ROLE_SYSTEM,
            build_system_prompt(
                schema, self.forms.global_system_prompt, context.json_text, self.forms.language
            )
        )

        if context.found:
            session.set_fields(context.record)
            session.context_form = context.form_name
            session.context_key = context.key
            logger.info(
                f"Session {schema.name}/{session_id} pre-filled with "
                f"{len(context.record)} field(s) from {context.form_name}"
            )

        return session

    def start_session(
        self,
        form_name: str,
        session_id: str,
        token_lookup: Optional[TokenLookup] = None
    ) -> ChatSession:
        """
        Return the active session, creating it (Uninitialized -> Active) if needed.

        Raises:
            KeyError: If the form is unknown
        """
        schema = self.forms.get(form_name)
        session, _ = self.registry.get_or_create(
            form_name, session_id,
            lambda: self._new_session(schema, session_id, token_lookup)
        )
        return session

    def get_session(self, form_name: str, session_id: str) -> Optional[ChatSession]:
        return self.registry.get(form_name, session_id)

    def reset_session(self, form_name: str, session_id: str) -> bool:
        return self.registry.discard(form_name, session_id)

    # ========================
    # Turns
    # ========================

    def handle_turn(
        self,
        form_name: str,
        session_id: str,
        user_text: str,
        token_lookup: Optional[TokenLookup] = None
    ) -> TurnResult:
        """
        Process a single turn of conversation

        Steps:
        1. Append user message
        2. Call LLM with the full conversation
        3. Interpret assistant text (SAY / SET / SAVE)
        4. Apply SETs in line order to a working copy of the field values
        5. Write a snapshot of the values at every SAVE
        6. Commit field values and append the raw assistant text
        7. End the session if anything was saved
        8. Return display text, field updates and save outcome

        Args:
            form_name: Form being filled
            session_id: Caller identity (e.g. session cookie)
            user_text: What the user typed
            token_lookup: Linking-token lookup, used when the session is created

        Returns:
            TurnResult

        Raises:
            KeyError: If the form is unknown
            ValueError: If user_text is empty
            CollaboratorError: If the LLM call failed
            MissingPrimaryKeyError: If SAVE was requested without the primary key
            PersistenceError: If the record could not be written
        """
        if not user_text or not user_text.strip():
            raise ValueError("user_text must be a non-empty string")

        schema = self.forms.get(form_name)

        while True:
            session = self.start_session(form_name, session_id, token_lookup)
            with session.lock:
                # Ended (saved, reset, expired) while this turn waited for the lock
                if self.registry.get(form_name, session_id) is session:
                    return self._run_turn(schema, session, user_text)
            logger.debug(f"Session {form_name}/{session_id} ended while waiting, retrying")

    def _run_turn(self, schema: FormSchema, session: ChatSession, user_text: str) -> TurnResult:
        """Steps 1-8 of handle_turn; caller holds session.lock"""
        form_name, session_id = schema.name, session.session_id

        session.touch()
        session.add_message(ROLE_USER, user_text)
        turn = session.turn_count()

        assistant_text = self._complete(session, turn)
        parsed = self.parser.parse(assistant_text)

        field_values, save_points = self._apply_directives(session.field_values, parsed)
        saves = self._resolve_save_keys(schema, session, save_points)

        saved_key: Optional[str] = None
        saved_path: Optional[str] = None
        for key, record in saves:
            saved_path = self.persistence.save(schema.name, key, record)
            saved_key = key

        # Commit (nothing below can fail)
        session.field_values = field_values
        session.add_message(ROLE_ASSISTANT, assistant_text)

        linking_token = None
        if saves:
            linking_token = linking_token_for(schema, saves[-1][1])
            logger.info(
                f"[{form_name}/{session_id} turn {turn}] Saved record {saved_key!r}, "
                f"conversation complete"
            )
            # The next message to this form starts a new record
            self.registry.discard(form_name, session_id)

        for name in parsed.field_updates:
            if name not in schema.field_names:
                logger.warning(f"[{form_name} turn {turn}] SET of undeclared field '{name}'")

        return TurnResult(
            display_message=parsed.display_message,
            messages=list(parsed.messages),
            field_updates=dict(parsed.field_updates),
            did_save=bool(saves),
            saved_key=saved_key,
            saved_path=saved_path,
            linking_token=linking_token,
            next_form=schema.next_form if saves else "",
            field_values=dict(field_values),
        )

    def _complete(self, session: ChatSession, turn: int) -> str:
        """Call the LLM collaborator, normalizing failures to CollaboratorError"""
        try:
            assistant_text = self.llm_client.complete(list(session.messages))
        except CollaboratorError as e:
            logger.error(f"[{session.form_name} turn {turn}] LLM call failed: {e}")
            raise
        except Exception as e:
            logger.error(
                f"[{session.form_name} turn {turn}] LLM call failed: {type(e).__name__} - {e}"
            )
            raise CollaboratorError(f"LLM call failed: {e}", cause=e) from e

        if not isinstance(assistant_text, str):
            raise CollaboratorError(
                f"LLM returned {type(assistant_text).__name__}, expected str"
            )

        logger.debug(f"[{session.form_name} turn {turn}] Assistant: {assistant_text[:200]}")
        return assistant_text

    @staticmethod
    def _apply_directives(
        current: Dict[str, str],
        parsed: ParsedTurn
    ) -> Tuple[Dict[str, str], List[Dict[str, str]]]:
        """
        Apply directives in line order to a copy of the field values.

        Returns:
            tuple: (final field values, snapshot of the values at each SAVE)
        """
        values = dict(current)
        save_points: List[Dict[str, str]] = []

        for directive in parsed.directives:
            if isinstance(directive, SetField):
                values[directive.field_name] = directive.value
            elif isinstance(directive, Save):
                save_points.append(dict(values))

        return values, save_points

    @staticmethod
    def _resolve_save_keys(
        schema: FormSchema,
        session: ChatSession,
        save_points: List[Dict[str, str]]
    ) -> List[Tuple[str, Dict[str, str]]]:
        """
        Storage key of every SAVE, checked before anything is written.

        Forms without a primary key store one record per chat session.

        Raises:
            MissingPrimaryKeyError: If a SAVE lacks primary-key values
        """
        saves = []
        for record in save_points:
            if schema.has_primary_key:
                key = primary_key_value(schema, record)
            else:
                key = session.session_id
            saves.append((key, record))
        return saves
