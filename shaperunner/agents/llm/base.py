## Base LLM Client Interface
from abc import ABC, abstractmethod


class TransportError(Exception):
    """The model endpoint could not be reached or answered with an error."""


class ModelTimeoutError(TransportError):
    pass


class LLMClient(ABC):
    """Text in, text out. Any failure to get text back is a TransportError."""

    @abstractmethod
    def generate_text(self, prompt: str, *, timeout: float | None = None) -> str:
        raise NotImplementedError

    def close(self) -> None:
        """Release connections held by the client."""
