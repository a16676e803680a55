# shaperunner/rpc/routes.py
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from shaperunner.rpc.dispatcher import ShapeDispatcher
from shaperunner.rpc.messages import RunRequest, RunResponse

router = APIRouter()


def get_dispatcher(request: Request) -> ShapeDispatcher:
    return request.app.state.dispatcher


@router.get("/tasks")
def list_tasks(dispatcher: ShapeDispatcher = Depends(get_dispatcher)):
    return JSONResponse({"tasks": dispatcher.tasks()})


# sync handler: FastAPI runs it in the threadpool, one retry loop per call
@router.post("/run")
def run_task(body: RunRequest, dispatcher: ShapeDispatcher = Depends(get_dispatcher)):
    output = dispatcher.run(body.task_id, body.input, body.encoding)
    return JSONResponse(RunResponse.success(output).model_dump(mode="json"))
