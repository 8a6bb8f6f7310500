from .logger import AuditLogger
from .llm_provider import ChatClient, TogetherProvider, LLMProviderError, LLMConnectionError, LLMResponseError
from .openai_provider import OpenAIProvider
from .provider_factory import create_provider, create_default_client
