"""
OpenAI Client - Hosted chat completion

Sends the full conversation to the chat completions API with a bounded
timeout and no automatic retries; failures surface as CollaboratorError.
"""

import logging
from typing import List, Optional

from openai import APIError, APITimeoutError, OpenAI, OpenAIError

from formchat.contracts import ChatMessage
from formchat.errors import CollaboratorError

logger = logging.getLogger(__name__)

BACKEND_NAME = "openai"


class OpenAIChatClient:
    """Chat completion through the OpenAI API"""

    def __init__(
        self,
        api_key: Optional[str],
        model_name: str = "gpt-4o-mini",
        timeout: float = 30.0,
        temperature: float = 0.3,
        client: Optional[OpenAI] = None
    ) -> None:
        """
        Args:
            api_key: OpenAI API key
            model_name: Chat model identifier
            timeout: Request timeout in seconds
            temperature: Sampling temperature
            client: Preconfigured OpenAI client (tests)

        Raises:
            ValueError: If no api_key and no client is given
        """
        if client is None and not api_key:
            raise ValueError("OPENAI_API_KEY is required for the openai backend")

        self.model_name = model_name
        self.timeout = timeout
        self.temperature = temperature
        self.client = client or OpenAI(api_key=api_key, timeout=timeout, max_retries=0)

        logger.info(f"OpenAI client initialized (model={model_name}, timeout={timeout}s)")

    def complete(self, messages: List[ChatMessage]) -> str:
        """
        Generate the next assistant turn

        Raises:
            CollaboratorError: On timeout, API error or empty/malformed response
        """
        try:
            response = self.client.chat.completions.create(
                model=self.model_name,
                messages=[m.to_dict() for m in messages],
                temperature=self.temperature,
                timeout=self.timeout,
            )
        except APITimeoutError as e:
            logger.error(f"OpenAI timeout after {self.timeout}s")
            raise CollaboratorError("LLM request timed out", backend=BACKEND_NAME, cause=e) from e
        except APIError as e:
            logger.error(f"OpenAI API error: {e}")
            raise CollaboratorError(f"LLM API error: {e}", backend=BACKEND_NAME, cause=e) from e
        except OpenAIError as e:
            logger.error(f"OpenAI client error: {e}")
            raise CollaboratorError(f"LLM client error: {e}", backend=BACKEND_NAME, cause=e) from e

        try:
            content = response.choices[0].message.content
        except (AttributeError, IndexError) as e:
            raise CollaboratorError(
                "Malformed completion payload", backend=BACKEND_NAME, cause=e
            ) from e

        if not content:
            raise CollaboratorError("LLM returned empty content", backend=BACKEND_NAME)

        usage = getattr(response, "usage", None)
        if usage is not None:
            logger.info(
                f"OpenAI completion: {usage.prompt_tokens} prompt + "
                f"{usage.completion_tokens} completion tokens"
            )

        return content
