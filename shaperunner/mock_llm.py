## Mock LLM server: POST /llm {prompt} -> {output}
# Fails the first N calls with malformed JSON so the retry loop can be exercised.
import json
import logging
import threading

from fastapi import FastAPI
from pydantic import BaseModel

from shaperunner.logs import configure_logging, preview
from shaperunner.settings import settings

logger = logging.getLogger(__name__)

INVALID_OUTPUT = '{"invalid": "json", missing_fields: true}'

VALID_FEATURE_DESIGN = {
    "name": "Task Management & Collaboration System",
    "rationale": "Tasks and projects with real-time collaboration. PostgreSQL for persistence, "
                 "WebSockets for live updates and a REST API for integration.",
    "components": [
        {
            "id": "task-service",
            "responsibility": "Task CRUD, assignment and status management",
            "api": "POST /api/tasks\nGET /api/tasks\nPUT /api/tasks/:id\nDELETE /api/tasks/:id",
        },
        {
            "id": "websocket-service",
            "responsibility": "Push task and project updates to connected clients",
            "api": "WS /ws\nMessages: {type: 'task_updated', data: {...}}",
        },
        {
            "id": "auth-service",
            "responsibility": "Authentication and session management",
            "api": "POST /api/auth/login\nPOST /api/auth/logout\nGET /api/auth/me",
        },
    ],
    "risks": [
        "WebSocket fan-out needs a scaling strategy across servers",
        "Connection pooling is required under high concurrency",
        "Concurrent task assignment can conflict",
    ],
}


class LLMRequest(BaseModel):
    prompt: str


class LLMResponse(BaseModel):
    output: str


def create_mock_app(fail_attempts: int = 1) -> FastAPI:
    app = FastAPI(title="Mock LLM")
    lock = threading.Lock()
    state = {"attempts": 0}

    @app.post("/llm", response_model=LLMResponse)
    def generate(body: LLMRequest):
        with lock:
            state["attempts"] += 1
            attempt = state["attempts"]

        logger.info("Mock LLM attempt %d, prompt: %s", attempt, preview(body.prompt))
        if attempt <= fail_attempts:
            logger.info("Mock LLM: returning invalid JSON")
            return LLMResponse(output=INVALID_OUTPUT)

        return LLMResponse(output=json.dumps(VALID_FEATURE_DESIGN, indent=4))

    return app


app = create_mock_app(settings.mock_llm_fail_attempts)


def serve() -> None:
    import uvicorn

    configure_logging(settings.log_level)
    logger.info("Mock LLM will fail the first %d attempt(s)", settings.mock_llm_fail_attempts)
    uvicorn.run(app, host=settings.host, port=8081)
