"""
Provider Factory — Create the verifier backend named by TDD_PROVIDER.

Supports: together | openai | openrouter | ollama

OpenRouter and Ollama both use the OpenAI-compatible API, just with
different base_urls and API keys.
"""
from __future__ import annotations

import logging
from typing import Optional, Union

from tdd_guard.config import VerifierSettings
from tdd_guard.core.llm_provider import LLMProviderError, TogetherProvider
from tdd_guard.core.openai_provider import OpenAIProvider

logger = logging.getLogger(__name__)


Provider = Union[TogetherProvider, OpenAIProvider]


def create_provider(settings: Optional[VerifierSettings] = None) -> Provider:
    """
    Instantiate the provider named in settings.provider.

    Supported values:
        "together"   → TogetherProvider
        "openai"     → OpenAIProvider with api.openai.com (default)
        "openrouter" → OpenAIProvider with openrouter.ai (uses OPENROUTER_API_KEY)
        "ollama"     → OpenAIProvider with localhost Ollama (no auth needed)
    """
    settings = settings or VerifierSettings()
    provider_name = (settings.provider or "openai").lower().strip()

    logger.info(f"Creating verifier provider: {provider_name}")

    if provider_name == "together":
        return TogetherProvider(settings)

    if provider_name in ("openai", "openrouter"):
        if not settings.has_api_key:
            logger.warning(
                f"{settings.provider_config.env_key} not set; verifier calls will fail"
            )
        return OpenAIProvider(settings)

    if provider_name == "ollama":
        # Ollama ignores the key, but the OpenAI client requires a non-empty value
        return OpenAIProvider(settings, api_key="ollama")

    raise ValueError(
        f"Unknown provider '{provider_name}'. "
        f"Valid providers: together, openai, openrouter, ollama"
    )


def create_default_client(settings: Optional[VerifierSettings] = None) -> Optional[Provider]:
    """
    Backend for runs without a host-supplied client.

    Returns None when the selected provider has no credentials or cannot be
    built, which the gate treats as "no verifier available".
    """
    settings = settings or VerifierSettings()
    if not settings.has_api_key:
        logger.info(f"No credentials for provider '{settings.provider}'; verifier disabled")
        return None
    try:
        return create_provider(settings)
    except (ValueError, LLMProviderError) as e:
        logger.warning(f"Verifier disabled: {e}")
        return None
