"""
HuggingFace Client - Local model chat completion

Responsibilities:
- Load a causal LM, 4-bit NF4 quantized on CUDA when requested
- Render the conversation with PromptFormatter
- Generate the assistant turn with a bounded generation time
- Map generation failures to CollaboratorError

Design principles:
- Loading errors (no CUDA, OOM, missing weights) raise at startup
- No retry: a failed turn is reported to the caller
"""

import logging
import time
from typing import List, Optional

import torch
from transformers import (
    AutoModelForCausalLM,
    AutoTokenizer,
    BitsAndBytesConfig
)

from formchat.contracts import ChatMessage
from formchat.errors import CollaboratorError
from formchat.utils.prompt_formatter import PromptFormatter

logger = logging.getLogger(__name__)

DEVICE_CUDA = "cuda"

BACKEND_NAME = "huggingface"


def _quantization_config(load_in_4bit: bool, device: str) -> Optional[BitsAndBytesConfig]:
    # bitsandbytes kernels are CUDA only
    if not (load_in_4bit and device == DEVICE_CUDA):
        return None
    return BitsAndBytesConfig(
        load_in_4bit=True,
        bnb_4bit_quant_type="nf4",
        bnb_4bit_compute_dtype=torch.bfloat16,
        bnb_4bit_use_double_quant=True
    )


def _load_tokenizer(model_name: str):
    tokenizer = AutoTokenizer.from_pretrained(model_name)

    # generate() needs a pad token for the attention mask
    if tokenizer.pad_token is None:
        if tokenizer.eos_token is not None:
            tokenizer.pad_token = tokenizer.eos_token
        else:
            tokenizer.add_special_tokens({'pad_token': '[PAD]'})
            logger.warning(f"{model_name}: no eos token, added [PAD]")

    return tokenizer


class HuggingFaceClient:
    """Chat completion on a locally loaded HuggingFace model"""

    def __init__(
        self,
        model_name: str,
        load_in_4bit: bool = True,
        device: str = DEVICE_CUDA,
        max_tokens: int = 384,
        temperature: float = 0.3,
        timeout: float = 30.0
    ) -> None:
        """
        Load tokenizer and model.

        Args:
            model_name: HuggingFace model identifier
            load_in_4bit: NF4 quantization (CUDA only, needs bitsandbytes)
            device: "cuda" or "cpu"
            max_tokens: Maximum tokens generated per turn
            temperature: Sampling temperature (0.0 = greedy)
            timeout: Generation time limit in seconds (transformers max_time)

        Raises:
            RuntimeError: If CUDA is requested but unavailable
            torch.cuda.OutOfMemoryError: If the model doesn't fit
        """
        if device == DEVICE_CUDA and not torch.cuda.is_available():
            raise RuntimeError("FORMCHAT_DEVICE=cuda but no CUDA device is available")

        self.model_name = model_name
        self.device = device
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.timeout = timeout

        quantization_config = _quantization_config(load_in_4bit, device)
        logger.info(
            f"Loading {model_name} on {device} "
            f"({'4-bit NF4' if quantization_config else 'full precision'})"
        )

        self.tokenizer = _load_tokenizer(model_name)
        self.formatter = PromptFormatter(model_name, self.tokenizer)

        try:
            self.model = AutoModelForCausalLM.from_pretrained(
                model_name,
                quantization_config=quantization_config,
                device_map="auto" if device == DEVICE_CUDA else None,
                torch_dtype=torch.bfloat16 if device == DEVICE_CUDA else torch.float32
            )
        except torch.cuda.OutOfMemoryError:
            logger.error(f"Out of GPU memory loading {model_name}")
            raise

        self.model.eval()
        logger.info(f"{model_name} ready")

    def is_loaded(self) -> bool:
        return getattr(self, "model", None) is not None and self.tokenizer is not None

    def complete(self, messages: List[ChatMessage]) -> str:
        """
        Generate the next assistant turn

        Args:
            messages: Full conversation (system, user, assistant, ...)

        Returns:
            str: Assistant text

        Raises:
            CollaboratorError: If generation fails or produces no text
        """
        if not self.is_loaded():
            raise CollaboratorError("Model not loaded", backend=BACKEND_NAME)

        started = time.time()
        prompt = self.formatter.format_messages([m.to_dict() for m in messages])

        inputs = self.tokenizer(prompt, return_tensors="pt", add_special_tokens=False)
        if self.device == DEVICE_CUDA:
            inputs = inputs.to(DEVICE_CUDA)
        prompt_length = inputs.input_ids.shape[1]

        try:
            with torch.no_grad():
                output_ids = self.model.generate(
                    inputs.input_ids,
                    attention_mask=inputs.attention_mask,
                    max_new_tokens=self.max_tokens,
                    max_time=self.timeout,
                    temperature=self.temperature,
                    do_sample=self.temperature > 0,
                    pad_token_id=self.tokenizer.pad_token_id
                )
        except torch.cuda.OutOfMemoryError as e:
            logger.error(f"Out of GPU memory generating from a {prompt_length}-token prompt")
            raise CollaboratorError("CUDA out of memory", backend=BACKEND_NAME, cause=e) from e
        except RuntimeError as e:
            logger.error(f"Generation failed: {e}")
            raise CollaboratorError(f"Generation failed: {e}", backend=BACKEND_NAME, cause=e) from e

        new_ids = output_ids[0][prompt_length:]
        text = self.tokenizer.decode(new_ids, skip_special_tokens=True).strip()

        logger.info(
            f"Generated {len(new_ids)} tokens from a {prompt_length}-token prompt "
            f"in {(time.time() - started) * 1000:.0f}ms"
        )

        if not text:
            raise CollaboratorError("Model returned empty output", backend=BACKEND_NAME)

        return text
