"""
LLM Provider — Chat backends for the policy verifier.

Responsibilities:
1. Define the one call the verifier needs: chat(model, messages) -> str.
2. Wrap the Together SDK behind that call.
3. Normalize SDK failures into the LLMProviderError family.

The verifier never retries. Retry and timeout behaviour belong to the SDK
client configured here.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Protocol, runtime_checkable

from tdd_guard.config import VerifierSettings

logger = logging.getLogger(__name__)


# -- Exceptions --

class LLMProviderError(Exception):
    """Base exception for LLM provider errors."""
    pass


class LLMConnectionError(LLMProviderError):
    """Failed to reach the backend."""
    pass


class LLMResponseError(LLMProviderError):
    """Malformed or unexpected response from the backend."""
    pass


# -- Client Interface --

@runtime_checkable
class ChatClient(Protocol):
    """Anything the verifier can talk to."""

    def chat(self, model: str, messages: list[dict]) -> str:
        ...


def message_text(message: Any) -> str:
    """Pull the text content out of an OpenAI-style chat message."""
    content = getattr(message, "content", None)
    if content is None:
        raise LLMResponseError("Backend returned an empty message")
    if isinstance(content, list):
        return "".join(
            part.get("text", "") if isinstance(part, dict) else getattr(part, "text", "")
            for part in content
        )
    return str(content)


# -- Provider --

class TogetherProvider:
    """
    Wrapper around the Together Python SDK.

    Usage:
        provider = TogetherProvider(VerifierSettings(provider="together"))
        text = provider.chat("Qwen/Qwen3-Coder-Next-FP8", messages)
    """

    def __init__(self, settings: Optional[VerifierSettings] = None):
        self.settings = settings or VerifierSettings(provider="together")
        self._client = None  # Lazy init
        self.call_count = 0

    def _get_client(self):
        """Lazy-initialize the Together client."""
        if self._client is None:
            try:
                from together import Together
            except ImportError:
                raise LLMProviderError(
                    "The 'together' package is not installed. "
                    "Run: pip install tdd-guard[together]"
                )

            api_key = self.settings.provider_config.api_key
            if not api_key:
                raise LLMProviderError(
                    "TOGETHER_API_KEY environment variable is not set."
                )

            self._client = Together(api_key=api_key, timeout=self.settings.timeout)

        return self._client

    def chat(self, model: str, messages: list[dict]) -> str:
        """
        Send one chat completion and return the reply text.

        Raises:
            LLMConnectionError: If the API call fails.
            LLMResponseError: If the response carries no text.
        """
        client = self._get_client()
        logger.info(f"Verifier call: provider=together, model={model}")

        try:
            response = client.chat.completions.create(
                model=model,
                messages=messages,
                temperature=self.settings.temperature,
                top_p=self.settings.top_p,
                max_tokens=self.settings.max_tokens,
            )
            self.call_count += 1
        except Exception as e:
            raise LLMConnectionError(f"Together API call failed: {e}") from e

        if not getattr(response, "choices", None):
            raise LLMResponseError("Together API returned no choices")
        return message_text(response.choices[0].message)
