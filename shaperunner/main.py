## Main application entry point
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from shaperunner.agents.llm.base import LLMClient, TransportError
from shaperunner.agents.llm.client import get_llm_client
from shaperunner.agents.orchestrator import (
    OrchestratorError,
    OrchestratorTimeout,
    ShapeOrchestrator,
)
from shaperunner.logs import configure_logging
from shaperunner.rpc.dispatcher import (
    InvalidPayloadError,
    OutputEncodingError,
    ShapeDispatcher,
    UnknownTaskError,
)
from shaperunner.rpc.messages import RunResponse
from shaperunner.rpc.routes import router as rpc_router
from shaperunner.settings import Settings, settings as default_settings

logger = logging.getLogger(__name__)


def _failure(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(RunResponse.failure(message).model_dump(mode="json"), status_code=status_code)


def create_app(
    settings: Settings | None = None,
    llm: LLMClient | None = None,
    on_attempt=None,
) -> FastAPI:
    settings = settings or default_settings
    owns_llm = llm is None
    llm = llm or get_llm_client(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        # injected clients belong to the caller
        if owns_llm:
            llm.close()

    app = FastAPI(title="ShapeRunner", lifespan=lifespan)
    app.state.settings = settings
    app.state.dispatcher = ShapeDispatcher(
        ShapeOrchestrator(llm, timeout=settings.request_timeout_seconds, on_attempt=on_attempt)
    )

    @app.exception_handler(UnknownTaskError)
    async def unknown_task_handler(request: Request, exc: UnknownTaskError):
        return _failure(404, str(exc))

    @app.exception_handler(InvalidPayloadError)
    async def invalid_payload_handler(request: Request, exc: InvalidPayloadError):
        return _failure(400, str(exc))

    @app.exception_handler(OutputEncodingError)
    async def output_encoding_handler(request: Request, exc: OutputEncodingError):
        logger.error("Validated output could not be encoded: %s", exc)
        return _failure(500, str(exc))

    @app.exception_handler(TransportError)
    async def transport_error_handler(request: Request, exc: TransportError):
        logger.error("Model endpoint failure: %s", exc)
        return _failure(502, f"LLM error: {exc}")

    @app.exception_handler(OrchestratorError)
    async def orchestrator_error_handler(request: Request, exc: OrchestratorError):
        status_code = 504 if isinstance(exc, OrchestratorTimeout) else 500
        logger.error("Task failed after %d attempt(s): %s", exc.attempts, exc)
        return _failure(status_code, f"LLM error: {exc}")

    app.include_router(rpc_router)
    return app


def serve() -> None:
    import uvicorn

    configure_logging(default_settings.log_level)
    logger.info("Using LLM endpoint: %s (model %s)", default_settings.llm_base_url, default_settings.llm_model)
    uvicorn.run(create_app(), host=default_settings.host, port=default_settings.port)
