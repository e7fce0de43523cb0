"""
LLM backend selection.

The HuggingFace backend is imported lazily so the openai backend never
pays for loading torch.
"""

import logging

from formchat.config import Settings
from formchat.errors import ConfigError

logger = logging.getLogger(__name__)

BACKEND_OPENAI = "openai"
BACKEND_HUGGINGFACE = "huggingface"


def build_llm_client(settings: Settings):
    """
    Create the LLM collaborator named by settings.llm_backend.

    Returns:
        Object with complete(messages) -> str

    Raises:
        ConfigError: If the backend name is unknown
    """
    if settings.llm_backend == BACKEND_OPENAI:
        from formchat.utils.openai_client import OpenAIChatClient
        return OpenAIChatClient(
            api_key=settings.openai_api_key,
            model_name=settings.model_name,
            timeout=settings.llm_timeout,
        )

    if settings.llm_backend == BACKEND_HUGGINGFACE:
        from formchat.utils.hf_client import HuggingFaceClient
        logger.info("Initializing HuggingFace model (this takes ~30 seconds)...")
        return HuggingFaceClient(
            model_name=settings.model_name,
            load_in_4bit=settings.load_in_4bit,
            device=settings.device,
            timeout=settings.llm_timeout,
        )

    raise ConfigError(
        f"Unknown LLM backend '{settings.llm_backend}' "
        f"(expected '{BACKEND_OPENAI}' or '{BACKEND_HUGGINGFACE}')"
    )
