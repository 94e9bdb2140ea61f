from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from taskservice.api.deps import get_task_service
from taskservice.services.task_service import TaskService

router = APIRouter(tags=["tasks"])

TASK_STARTED_MESSAGE = "Task has been started!"
FAULT_MESSAGE = "Something went wrong!"


@router.get("/start-task", response_class=PlainTextResponse)
def start_task(service: TaskService = Depends(get_task_service)) -> str:
    service.execute_task()
    return TASK_STARTED_MESSAGE


@router.get("/exception", response_class=PlainTextResponse)
def trigger_fault() -> str:
    raise RuntimeError(FAULT_MESSAGE)
