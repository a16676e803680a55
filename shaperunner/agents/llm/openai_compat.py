import openai
from openai import OpenAI

from shaperunner.agents.llm.base import LLMClient, ModelTimeoutError, TransportError

SYSTEM_JSON_ONLY = "You must return ONLY valid JSON (no markdown, no code fences, no commentary)."


class OpenAICompatClient(LLMClient):
    """Chat completions endpoint (OpenAI, Groq, Ollama /v1)."""

    def __init__(self, *, api_key: str, base_url: str, model: str, temperature: float = 0.2,
                 timeout: float = 120, http_client=None):
        # retries belong to the orchestrator, and only for content problems
        self.client = OpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=0,
            http_client=http_client,
        )
        self.model = model
        self.temperature = temperature
        self._owns_http = http_client is None

    def generate_text(self, prompt: str, *, timeout: float | None = None) -> str:
        client = self.client.with_options(timeout=timeout) if timeout else self.client
        try:
            resp = client.chat.completions.create(
                model=self.model,
                temperature=self.temperature,
                messages=[
                    {"role": "system", "content": SYSTEM_JSON_ONLY},
                    {"role": "user", "content": prompt},
                ],
            )
        except openai.APITimeoutError as e:
            raise ModelTimeoutError(f"Chat completion timed out: {e}") from e
        except openai.APIError as e:
            raise TransportError(f"Chat completion failed: {e}") from e

        return (resp.choices[0].message.content or "").strip()

    def close(self) -> None:
        if self._owns_http:
            self.client.close()
