# shaperunner/agents/orchestrator.py
"""
Bounded self-correcting loop around one model call.

Each attempt: render prompt -> call model -> sanitize -> parse -> validate
-> decode -> domain check. Parse and validation problems from attempt n are
written into the prompt of attempt n+1. Transport failures end the run at
once; only content problems are retried.
"""
import json
import logging
import time
from dataclasses import dataclass
from typing import Callable, Sequence

from pydantic import BaseModel, ValidationError

from shaperunner.agents.llm.base import LLMClient, ModelTimeoutError
from shaperunner.agents.prompts import render_prompt
from shaperunner.agents.sanitize import sanitize
from shaperunner.logs import preview
from shaperunner.shapes.registry import ShapeTask
from shaperunner.shapes.types import FieldError, TypeMismatch, kind_of, validate

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 3

SUCCESS = "success"
PARSE_FAILED = "parse_failed"
VALIDATION_FAILED = "validation_failed"


class OrchestratorError(Exception):
    def __init__(self, message: str, attempts: int):
        super().__init__(message)
        self.attempts = attempts


class ParseFailure(OrchestratorError):
    def __init__(self, parse_error: str, attempts: int):
        super().__init__(
            f"LLM did not return valid JSON after {attempts} attempts. Last error: {parse_error}",
            attempts,
        )
        self.parse_error = parse_error


class ValidationFailure(OrchestratorError):
    def __init__(self, errors: Sequence[FieldError], attempts: int):
        detail = "; ".join(str(e) for e in errors)
        super().__init__(
            f"LLM output failed validation after {attempts} attempts: {detail}",
            attempts,
        )
        self.errors = list(errors)


class OrchestratorTimeout(OrchestratorError):
    pass


@dataclass(frozen=True)
class AttemptEvent:
    task_id: str
    attempt: int
    max_attempts: int
    outcome: str
    errors: tuple[str, ...] = ()


def _check_utf8(value) -> None:
    # json.loads accepts lone surrogate escapes ("\ud800"); the wire codecs cannot encode them
    json.dumps(value, ensure_ascii=False).encode("utf-8")


def _parse_error_message(exc: Exception) -> str:
    if isinstance(exc, RecursionError):
        return "JSON nesting is too deep to parse"
    if isinstance(exc, UnicodeEncodeError):
        return f"JSON string is not valid UTF-8: {exc}"
    return str(exc)


def decode_errors(exc: ValidationError) -> list[FieldError]:
    """Turn pydantic decode errors into $-rooted TypeMismatch entries."""
    errors: list[FieldError] = []
    for err in exc.errors():
        path = "$"
        for part in err["loc"]:
            path += f"[{part}]" if isinstance(part, int) else f".{part}"
        errors.append(TypeMismatch(path, err["type"], kind_of(err.get("input")), note=err["msg"]))
    return errors


class ShapeOrchestrator:
    def __init__(
        self,
        llm: LLMClient,
        *,
        max_attempts: int = MAX_ATTEMPTS,
        timeout: float | None = None,
        on_attempt: Callable[[AttemptEvent], None] | None = None,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.llm = llm
        self.max_attempts = max_attempts
        self.timeout = timeout
        self.on_attempt = on_attempt

    def _emit(self, task: ShapeTask, attempt: int, outcome: str, errors: Sequence[str] = ()) -> None:
        event = AttemptEvent(task.task_id, attempt, self.max_attempts, outcome, tuple(errors))
        if outcome == SUCCESS:
            logger.info("[%s] attempt %d/%d passed", task.task_id, attempt, self.max_attempts)
        else:
            logger.info(
                "[%s] attempt %d/%d %s: %s",
                task.task_id, attempt, self.max_attempts, outcome, "; ".join(errors),
            )
        if self.on_attempt:
            self.on_attempt(event)

    def _remaining(self, deadline: float | None, attempt: int) -> float | None:
        if deadline is None:
            return None
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise OrchestratorTimeout(
                f"Request timed out after {self.timeout}s before attempt {attempt}", attempt - 1
            )
        return remaining

    def run(self, task: ShapeTask, task_input: BaseModel) -> BaseModel:
        """
        Return a validated task.output_model instance or raise.

        Raises TransportError, ParseFailure, ValidationFailure or
        OrchestratorTimeout. Never returns a value that failed validation.
        """
        context = task.context(task_input)
        deadline = time.monotonic() + self.timeout if self.timeout is not None else None

        last_parse_error: str | None = None
        last_errors: list[FieldError] | None = None

        for attempt in range(1, self.max_attempts + 1):
            is_last = attempt == self.max_attempts
            remaining = self._remaining(deadline, attempt)

            prompt = render_prompt(context, task.schema, last_parse_error, last_errors)

            try:
                raw_text = self.llm.generate_text(prompt, timeout=remaining)
            except ModelTimeoutError as e:
                if deadline is None:
                    raise
                raise OrchestratorTimeout(
                    f"Request timed out after {self.timeout}s during attempt {attempt}", attempt
                ) from e

            logger.debug("[%s] raw response: %s", task.task_id, preview(raw_text, 500))

            # 1) Parse
            try:
                value = json.loads(sanitize(raw_text))
                _check_utf8(value)
            except (json.JSONDecodeError, RecursionError, UnicodeEncodeError) as e:
                message = _parse_error_message(e)
                self._emit(task, attempt, PARSE_FAILED, [message])
                if is_last:
                    raise ParseFailure(message, attempt) from e
                last_parse_error, last_errors = message, None
                continue

            # 2) Structural validation, then decode + domain rules
            errors = validate(task.schema, value)
            if not errors:
                try:
                    output = task.output_model.model_validate(value)
                except ValidationError as e:
                    errors = decode_errors(e)
                else:
                    if task.check is not None:
                        errors = task.check(task_input, output)

            if errors:
                self._emit(task, attempt, VALIDATION_FAILED, [str(e) for e in errors])
                if is_last:
                    raise ValidationFailure(errors, attempt)
                last_parse_error, last_errors = None, errors
                continue

            self._emit(task, attempt, SUCCESS)
            return output

        # unreachable: the last attempt always returns or raises
        raise OrchestratorError(f"LLM failed to produce valid output after {self.max_attempts} attempts",
                                self.max_attempts)
