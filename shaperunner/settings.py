## Application settings configuration

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    env: str = "dev"
    host: str = "0.0.0.0"
    port: int = 8000

    # "auto" picks ollama for :11434 or /api/generate URLs, else the prompt endpoint
    llm_provider: str = "auto"
    llm_base_url: str = "http://localhost:11434/api/generate"
    llm_model: str = "llama3.2:3b"
    llm_temperature: float = 0.2

    # OpenAI-compatible providers (Groq, OpenAI, Ollama /v1)
    openai_api_key: str | None = None
    openai_base_url: str = "https://api.groq.com/openai/v1"

    # Overall budget for one /run call, across all attempts
    request_timeout_seconds: float = 120

    log_level: str = "INFO"

    # Mock LLM server
    mock_llm_fail_attempts: int = 1


settings = Settings()
