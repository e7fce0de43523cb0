"""
Prompt Formatter - Render a chat conversation for a local causal LM

Responsibilities:
- Turn role-tagged messages into the single prompt string a local model
  generates from, ending where the assistant speaks next
- Prefer the tokenizer's own chat template
- Fall back to hand-written formats for known model families

Design principles:
- Stateless (format_messages has no side effects)
- Unknown families get a plain "Role: text" transcript rather than an error

Used only by HuggingFaceClient; hosted backends take the message list as is.
"""

import logging
from typing import Callable, Dict, List, Tuple

logger = logging.getLogger(__name__)

Messages = List[Dict[str, str]]

FAMILY_GENERIC = "generic"


def _inst_format(messages: Messages) -> str:
    # [INST] families have no system role: fold it into the first user turn
    parts = []
    system = ""
    for m in messages:
        if m["role"] == "system":
            system = m["content"]
        elif m["role"] == "user":
            content = f"{system}\n\n{m['content']}" if system else m["content"]
            system = ""
            parts.append(f"[INST] {content} [/INST]")
        else:
            parts.append(f" {m['content']}</s>")
    return "<s>" + "".join(parts)


def _llama3_format(messages: Messages) -> str:
    text = "<|begin_of_text|>"
    for m in messages:
        text += f"<|start_header_id|>{m['role']}<|end_header_id|>\n\n{m['content']}<|eot_id|>"
    return text + "<|start_header_id|>assistant<|end_header_id|>\n\n"


def _zephyr_format(messages: Messages) -> str:
    text = "".join(f"<|{m['role']}|>\n{m['content']}</s>\n" for m in messages)
    return text + "<|assistant|>\n"


def _phi_format(messages: Messages) -> str:
    text = "".join(f"<|{m['role']}|>\n{m['content']}<|end|>\n" for m in messages)
    return text + "<|assistant|>\n"


def _transcript_format(messages: Messages) -> str:
    lines = [f"{m['role'].capitalize()}: {m['content']}" for m in messages]
    lines.append("Assistant:")
    return "\n\n".join(lines)


# (family, name fragments, formatter), most specific family first
FAMILIES: Tuple[Tuple[str, Tuple[str, ...], Callable[[Messages], str]], ...] = (
    ("llama-3", ("llama-3", "llama3"), _llama3_format),
    ("llama-2", ("llama-2", "llama2"), _inst_format),
    ("llama", ("llama",), _inst_format),
    ("mixtral", ("mixtral",), _inst_format),
    ("mistral", ("mistral",), _inst_format),
    ("zephyr", ("zephyr",), _zephyr_format),
    ("phi", ("phi",), _phi_format),
)


def detect_model_family(model_name: str) -> str:
    """
    Map a HuggingFace model id to a known family.

    Examples:
        >>> detect_model_family("meta-llama/Meta-Llama-3-8B-Instruct")
        'llama-3'
        >>> detect_model_family("acme/unknown")
        'generic'
    """
    lowered = model_name.lower()
    for family, fragments, _ in FAMILIES:
        if any(fragment in lowered for fragment in fragments):
            return family
    return FAMILY_GENERIC


class PromptFormatter:
    """Conversation-to-prompt rendering for one model"""

    def __init__(self, model_name: str, tokenizer=None):
        """
        Args:
            model_name: HuggingFace model id, used to pick a manual format
            tokenizer: Loaded tokenizer; its chat_template wins when set
        """
        self.model_name = model_name
        self.tokenizer = tokenizer
        self.model_family = detect_model_family(model_name)
        self.has_chat_template = getattr(tokenizer, "chat_template", None) is not None

        self._manual = {family: fmt for family, _, fmt in FAMILIES}.get(self.model_family)

        logger.info(f"PromptFormatter for {model_name}: {self.method}")

    @property
    def method(self) -> str:
        if self.has_chat_template:
            return "tokenizer_template"
        if self._manual is not None:
            return "manual"
        return "transcript"

    def format_messages(self, messages: Messages) -> str:
        """
        Render a conversation as a generation prompt

        Order of preference: tokenizer chat template, manual family
        format, generic transcript. A template that rejects the
        conversation (e.g. no system role) falls through to the next.

        Args:
            messages: [{'role': 'system'|'user'|'assistant', 'content': str}, ...]

        Returns:
            str: Prompt ending where the assistant speaks next

        Examples:
            >>> formatter = PromptFormatter("mistralai/Mistral-7B-Instruct-v0.2")
            >>> formatter.format_messages([{"role": "user", "content": "Hi"}])
            '<s>[INST] Hi [/INST]'
        """
        if self.has_chat_template:
            try:
                return self.tokenizer.apply_chat_template(
                    messages, tokenize=False, add_generation_prompt=True
                )
            except Exception as e:
                logger.warning(f"Chat template rejected conversation ({e}), using manual format")

        if self._manual is not None:
            return self._manual(messages)

        return _transcript_format(messages)

    def get_info(self) -> dict:
        return {
            "model_name": self.model_name,
            "model_family": self.model_family,
            "has_chat_template": self.has_chat_template,
            "formatting_method": self.method,
        }
