# shaperunner/rpc/dispatcher.py
import logging

from shaperunner.agents.orchestrator import ShapeOrchestrator
from shaperunner.rpc.codec import CodecError, get_codec
from shaperunner.shapes.registry import TASKS, ShapeTask

logger = logging.getLogger(__name__)


class DispatchError(Exception):
    pass


class UnknownTaskError(DispatchError):
    def __init__(self, task_id: str):
        super().__init__(f"unknown task_id: {task_id}")
        self.task_id = task_id


class InvalidPayloadError(DispatchError):
    pass


class OutputEncodingError(DispatchError):
    pass


class ShapeDispatcher:
    """Routes a task id + encoded input to the orchestrator and encodes the result."""

    def __init__(self, orchestrator: ShapeOrchestrator, tasks: dict[str, ShapeTask] | None = None):
        self.orchestrator = orchestrator
        self._tasks = TASKS if tasks is None else tasks

    def tasks(self) -> list[str]:
        return sorted(self._tasks)

    def run(self, task_id: str, input_bytes: bytes, encoding: str = "msgpack") -> bytes:
        task = self._tasks.get(task_id)
        if task is None:
            raise UnknownTaskError(task_id)

        try:
            codec = get_codec(encoding)
            task_input = codec.decode(input_bytes, task.input_model)
        except CodecError as e:
            raise InvalidPayloadError(f"decode input failed: {e}") from e

        logger.info("Running task=%s encoding=%s", task_id, encoding)
        output = self.orchestrator.run(task, task_input)
        try:
            return codec.encode(output)
        except CodecError as e:
            raise OutputEncodingError(f"encode output failed: {e}") from e
