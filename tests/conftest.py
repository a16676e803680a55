import json

import pytest

from shaperunner.agents.llm.base import LLMClient


class ScriptedLLM(LLMClient):
    """Returns canned responses in order and records every prompt it saw."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.prompts: list[str] = []
        self.timeouts: list[float | None] = []

    def generate_text(self, prompt: str, *, timeout: float | None = None) -> str:
        self.prompts.append(prompt)
        self.timeouts.append(timeout)
        # repeat the last response once the script runs out
        item = self.responses[min(len(self.prompts) - 1, len(self.responses) - 1)]
        if isinstance(item, Exception):
            raise item
        return item


FEATURE_DESIGN_DOC = {
    "name": "Search",
    "rationale": "Adds **full-text** search.",
    "components": [
        {"id": "indexer", "responsibility": "Builds the index", "api": "`index(doc)`"},
        {"id": "query", "responsibility": "Answers queries", "api": "`search(q)`"},
    ],
    "risks": ["Index drift", "Latency"],
}


@pytest.fixture
def feature_design_doc():
    return json.loads(json.dumps(FEATURE_DESIGN_DOC))


@pytest.fixture
def scripted_llm():
    return ScriptedLLM
