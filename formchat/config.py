"""
Configuration - Form definitions and runtime settings

Responsibilities:
- Load form definitions (fields, primary key, context form, prompts)
  from a JSON file into immutable FormSchema objects
- Validate cross-references on load (fail fast)
- Read runtime settings from the environment

Form file shape:
    {
        "global_system_prompt": "...",
        "language": "",
        "forms": [
            {
                "name": "registration",
                "title": "New Patient Registration",
                "fields": ["First Name: {{.FirstName}} (John)", ...],
                "primary_key": ["License"],
                "context_form": "",
                "next_form": "visit",
                "system_prompt_template": "...",
                "greeting": "Hello! What is your name?"
            }
        ]
    }
"""

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterator, List, Optional

from formchat.contracts import FormSchema
from formchat.core.field_schema_parser import parse_field_schema
from formchat.errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "data/forms.json"
DEFAULT_DATA_DIR = "outputs/forms"


class FormConfig:
    """Validated set of form definitions"""

    def __init__(
        self,
        forms: List[FormSchema],
        global_system_prompt: str = "",
        language: str = ""
    ):
        """
        Args:
            forms: Form definitions in display order
            global_system_prompt: Prompt text shared by every form
            language: Fixed conversation language ("" follows the user)

        Raises:
            ConfigError: If names collide or references are dangling
        """
        self.global_system_prompt = global_system_prompt
        self.language = (language or "").strip()
        self._forms: Dict[str, FormSchema] = {}

        for schema in forms:
            if schema.name in self._forms:
                raise ConfigError(f"Duplicate form name: {schema.name}")
            self._forms[schema.name] = schema

        self._validate()

        logger.info(f"FormConfig loaded with {len(self._forms)} forms: {', '.join(self._forms)}")

    @classmethod
    def from_file(cls, path: str = DEFAULT_CONFIG_PATH) -> "FormConfig":
        """
        Load form definitions from JSON.

        Raises:
            FileNotFoundError: If the file doesn't exist
            ConfigError: If the file is not valid JSON or fails validation
        """
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Form configuration not found: {path}")

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in {path}: {e}") from e

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict) -> "FormConfig":
        if not isinstance(data, dict) or not isinstance(data.get("forms"), list):
            raise ConfigError("Form configuration must be an object with a 'forms' list")

        forms = [cls._schema_from_dict(entry) for entry in data["forms"]]
        return cls(
            forms,
            global_system_prompt=data.get("global_system_prompt", ""),
            language=data.get("language", "") or "",
        )

    @staticmethod
    def _schema_from_dict(entry: dict) -> FormSchema:
        name = (entry.get("name") or "").strip()
        if not name:
            raise ConfigError(f"Form entry without a name: {entry}")

        fields_text = entry.get("fields", "")
        if isinstance(fields_text, list):
            fields_text = "\n".join(fields_text)

        primary_key = entry.get("primary_key") or []
        if isinstance(primary_key, str):
            primary_key = [primary_key]

        template = entry.get("system_prompt_template", "")
        if isinstance(template, list):
            template = "\n".join(template)

        return FormSchema(
            name=name,
            fields=tuple(parse_field_schema(fields_text)),
            primary_key=tuple(primary_key),
            context_form=entry.get("context_form", "") or "",
            system_prompt_template=template,
            title=entry.get("title", name),
            description=entry.get("description", ""),
            button_text=entry.get("button_text", entry.get("title", name)),
            greeting=entry.get("greeting", ""),
            next_form=entry.get("next_form", "") or "",
        )

    def _validate(self) -> None:
        for schema in self._forms.values():
            if not schema.fields:
                raise ConfigError(f"Form '{schema.name}' defines no parsable fields")

            names = set(schema.field_names)
            unknown = [pk for pk in schema.primary_key if pk not in names]
            if unknown:
                raise ConfigError(
                    f"Form '{schema.name}' primary key references unknown field(s): "
                    f"{', '.join(unknown)}"
                )

            if schema.context_form and schema.context_form not in self._forms:
                raise ConfigError(
                    f"Form '{schema.name}' context_form '{schema.context_form}' does not exist"
                )
            if schema.context_form and not self._forms[schema.context_form].has_primary_key:
                raise ConfigError(
                    f"Form '{schema.name}' context_form '{schema.context_form}' "
                    f"declares no primary key"
                )

            if schema.next_form and schema.next_form not in self._forms:
                raise ConfigError(
                    f"Form '{schema.name}' next_form '{schema.next_form}' does not exist"
                )

    def get(self, name: str) -> FormSchema:
        """
        Raises:
            KeyError: If no form has this name
        """
        if name not in self._forms:
            raise KeyError(f"Unknown form: {name}")
        return self._forms[name]

    def names(self) -> List[str]:
        return list(self._forms)

    def forms(self) -> List[FormSchema]:
        return list(self._forms.values())

    def __contains__(self, name: str) -> bool:
        return name in self._forms

    def __iter__(self) -> Iterator[FormSchema]:
        return iter(self._forms.values())


@dataclass(frozen=True)
class Settings:
    """Runtime settings (environment variables, see from_env)"""
    config_path: str = DEFAULT_CONFIG_PATH
    data_dir: str = DEFAULT_DATA_DIR
    llm_backend: str = "openai"
    model_name: str = "gpt-4o-mini"
    openai_api_key: Optional[str] = None
    llm_timeout: float = 30.0
    session_ttl: float = 3600.0
    secret_key: str = "formchat-dev-secret-key"
    load_in_4bit: bool = True
    device: str = "cuda"

    @classmethod
    def from_env(cls) -> "Settings":
        """
        Build settings from the process environment.

        Raises:
            ConfigError: If a numeric setting can't be parsed
        """
        env = os.environ
        backend = env.get("FORMCHAT_LLM_BACKEND", cls.llm_backend).strip().lower()
        default_model = (
            "mistralai/Mistral-7B-Instruct-v0.2" if backend == "huggingface" else cls.model_name
        )

        try:
            llm_timeout = float(env.get("FORMCHAT_LLM_TIMEOUT", cls.llm_timeout))
            session_ttl = float(env.get("FORMCHAT_SESSION_TTL", cls.session_ttl))
        except ValueError as e:
            raise ConfigError(f"Invalid numeric setting: {e}") from e

        return cls(
            config_path=env.get("FORMCHAT_CONFIG", cls.config_path),
            data_dir=env.get("FORMCHAT_DATA_DIR", cls.data_dir),
            llm_backend=backend,
            model_name=env.get("FORMCHAT_MODEL", default_model),
            openai_api_key=env.get("OPENAI_API_KEY"),
            llm_timeout=llm_timeout,
            session_ttl=session_ttl,
            secret_key=env.get("FORMCHAT_SECRET_KEY", cls.secret_key),
            load_in_4bit=env.get("FORMCHAT_LOAD_IN_4BIT", "1").lower() not in ("0", "false", "no"),
            device=env.get("FORMCHAT_DEVICE", cls.device),
        )
