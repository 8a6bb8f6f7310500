"""
OpenAI LLM Provider — Standard adapter for OpenAI-compatible APIs.

Compatible with: OpenAI, OpenRouter, Ollama, vLLM, LM Studio, and any
OpenAI-compatible endpoint.
"""

from __future__ import annotations

import logging
from typing import Optional

from tdd_guard.config import VerifierSettings
from tdd_guard.core.llm_provider import (
    LLMProviderError, LLMConnectionError, LLMResponseError, message_text,
)

logger = logging.getLogger(__name__)

# Models that take reasoning_effort instead of temperature
REASONING_MODELS = {"o1", "o3", "o4-mini", "o1-mini", "o3-mini", "deepseek-r1"}


def _is_reasoning_model(model: str) -> bool:
    m = model.lower()
    return any(r in m for r in REASONING_MODELS)


class OpenAIProvider:
    """
    Wrapper around the OpenAI Python SDK.
    Compatible with OpenAI, OpenRouter, Ollama, vLLM, etc.
    """

    def __init__(
        self,
        settings: Optional[VerifierSettings] = None,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
    ):
        self.settings = settings or VerifierSettings(provider="openai")
        pconf = self.settings.provider_config
        self.api_key = api_key if api_key is not None else pconf.api_key
        self.base_url = base_url or pconf.base_url
        self._client = None
        self.call_count = 0

    def _get_client(self):
        """Lazy-initialize the OpenAI client."""
        if self._client is None:
            try:
                from openai import OpenAI
            except ImportError:
                raise LLMProviderError(
                    "The 'openai' package is not installed. "
                    "Run: pip install openai"
                )

            self._client = OpenAI(
                api_key=self.api_key,
                base_url=self.base_url,
                timeout=self.settings.timeout,
            )
        return self._client

    def _build_params(self, model: str, messages: list[dict]) -> dict:
        """Build the API call parameters."""
        params = {
            "model": model,
            "messages": messages,
            "max_tokens": self.settings.max_tokens,
        }

        if _is_reasoning_model(model):
            params["reasoning_effort"] = "low"
        else:
            params["temperature"] = self.settings.temperature
            params["top_p"] = self.settings.top_p

        return params

    def chat(self, model: str, messages: list[dict]) -> str:
        """Send one chat completion and return the reply text."""
        client = self._get_client()
        params = self._build_params(model, messages)

        logger.info(f"Verifier call: provider={self.settings.provider}, model={model}")

        try:
            response = client.chat.completions.create(**params)
            self.call_count += 1
        except Exception as e:
            raise LLMConnectionError(f"OpenAI API call failed: {e}") from e

        if not getattr(response, "choices", None):
            raise LLMResponseError("OpenAI API returned no choices")
        return message_text(response.choices[0].message)
