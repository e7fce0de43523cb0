"""
Context Loader - Load a prior form's record for a dependent form

Resolution chain:
    form.context_form -> context schema -> linking cookie name
        -> token value -> FormPersistence.load(context form, token)

Absence at any step (no context form, no token, no record) is the normal
state for a first visit and yields an empty LoadedContext, never an error.
"""

import json
import logging
from typing import Callable, Optional

from formchat.config import FormConfig
from formchat.contracts import FormSchema
from formchat.errors import PersistenceError
from formchat.persistence import FormPersistence
from formchat.results import LoadedContext
from formchat.utils.linking import linking_cookie_name

logger = logging.getLogger(__name__)

# get(cookie_name) -> value or None
TokenLookup = Callable[[str], Optional[str]]


def no_tokens(name: str) -> Optional[str]:
    return None


class ContextLoader:
    """Resolve and load context records through linking tokens"""

    def __init__(self, forms: FormConfig, persistence: FormPersistence):
        self.forms = forms
        self.persistence = persistence

    def load(self, schema: FormSchema, token_lookup: Optional[TokenLookup] = None) -> LoadedContext:
        """
        Load the context record for a form.

        Args:
            schema: Form being started
            token_lookup: Linking-token carrier lookup (e.g. request cookies)

        Returns:
            LoadedContext (empty when there is nothing to load)
        """
        if not schema.context_form:
            return LoadedContext()

        context_schema = self.forms.get(schema.context_form)
        cookie_name = linking_cookie_name(context_schema)
        lookup = token_lookup or no_tokens

        token = lookup(cookie_name)
        if not token:
            logger.debug(f"No linking token '{cookie_name}' for {schema.name}")
            return LoadedContext(form_name=context_schema.name)

        try:
            record = self.persistence.load(context_schema.name, token)
        except PersistenceError as e:
            logger.warning(
                f"Ignoring unreadable {context_schema.name} record for {schema.name}: {e}"
            )
            record = None

        if record is None:
            logger.info(f"No {context_schema.name} record for token {token!r}")
            return LoadedContext(form_name=context_schema.name, key=token)

        logger.info(f"Loaded {context_schema.name} context for {schema.name} ({token!r})")

        return LoadedContext(
            form_name=context_schema.name,
            key=token,
            record={k: "" if v is None else str(v) for k, v in record.items()},
            json_text=json.dumps(record, indent=2, ensure_ascii=False),
        )
