from shaperunner.settings import Settings, settings as default_settings
from shaperunner.agents.llm.base import LLMClient
from shaperunner.agents.llm.ollama import OllamaGenerateClient, PromptEndpointClient
from shaperunner.agents.llm.openai_compat import OpenAICompatClient

PROVIDERS = ("auto", "ollama", "prompt", "openai")


def _looks_like_ollama(url: str) -> bool:
    return "11434" in url or "/api/generate" in url


def get_llm_client(settings: Settings | None = None) -> LLMClient:
    settings = settings or default_settings
    provider = settings.llm_provider.lower()

    if provider not in PROVIDERS:
        raise ValueError(f"Unknown LLM provider {settings.llm_provider!r}, expected one of {PROVIDERS}")

    if provider == "openai":
        if not settings.openai_api_key:
            raise ValueError("OPENAI_API_KEY must be set for the openai provider")
        return OpenAICompatClient(
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
            model=settings.llm_model,
            temperature=settings.llm_temperature,
            timeout=settings.request_timeout_seconds,
        )

    if provider == "ollama" or (provider == "auto" and _looks_like_ollama(settings.llm_base_url)):
        return OllamaGenerateClient(
            base_url=settings.llm_base_url,
            model=settings.llm_model,
            timeout=settings.request_timeout_seconds,
        )

    return PromptEndpointClient(settings.llm_base_url, timeout=settings.request_timeout_seconds)
