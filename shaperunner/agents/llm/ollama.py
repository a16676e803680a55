import httpx

from shaperunner.agents.llm.base import LLMClient, ModelTimeoutError, TransportError

GENERATE_PATH = "/api/generate"


def _post_json(client: httpx.Client, url: str, payload: dict, timeout: float | None, label: str) -> dict:
    try:
        r = client.post(url, json=payload, headers={"Connection": "close"}, timeout=timeout)
    except httpx.TimeoutException as e:
        raise ModelTimeoutError(f"{label} request timed out. URL: {url}") from e
    except httpx.HTTPError as e:
        raise TransportError(f"{label} HTTP error: {e}. URL: {url}") from e

    if r.is_error:
        raise TransportError(f"{label} HTTP error {r.status_code}: {r.text}")

    try:
        data = r.json()
    except ValueError as e:
        raise TransportError(f"{label} returned a non-JSON body: {r.text[:200]}") from e

    if not isinstance(data, dict):
        raise TransportError(f"{label} returned an unexpected envelope: {r.text[:200]}")
    return data


class OllamaGenerateClient(LLMClient):
    """Ollama native endpoint: POST {model, prompt, stream: false} -> {response, done}."""

    def __init__(self, base_url: str, model: str, *, timeout: float = 120,
                 http_client: httpx.Client | None = None):
        base_url = base_url.rstrip("/")
        if not base_url.endswith(GENERATE_PATH):
            base_url = f"{base_url}{GENERATE_PATH}"
        self.url = base_url
        self.model = model
        self._owns_http = http_client is None
        self.http = http_client or httpx.Client(timeout=timeout)

    def generate_text(self, prompt: str, *, timeout: float | None = None) -> str:
        payload = {
            "model": self.model,
            "prompt": prompt,
            "stream": False,
        }
        data = _post_json(self.http, self.url, payload, timeout or self.http.timeout, "Ollama")

        text = data.get("response")
        if not isinstance(text, str):
            raise TransportError(f"Ollama response missing 'response' field: {str(data)[:200]}")
        return text

    def close(self) -> None:
        if self._owns_http:
            self.http.close()


class PromptEndpointClient(LLMClient):
    """Minimal endpoint: POST {prompt} -> {output}."""

    def __init__(self, url: str, *, timeout: float = 120, http_client: httpx.Client | None = None):
        self.url = url
        self._owns_http = http_client is None
        self.http = http_client or httpx.Client(timeout=timeout)

    def generate_text(self, prompt: str, *, timeout: float | None = None) -> str:
        data = _post_json(self.http, self.url, {"prompt": prompt}, timeout or self.http.timeout, "LLM")

        text = data.get("output")
        if not isinstance(text, str):
            raise TransportError(f"LLM response missing 'output' field: {str(data)[:200]}")
        return text

    def close(self) -> None:
        if self._owns_http:
            self.http.close()
