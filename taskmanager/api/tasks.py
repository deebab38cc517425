"""
Tasks API

CRUD, filters, completion and statistics for task records.
Each endpoint calls one TaskService operation and maps its result.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Header, Request, Response
from fastapi.responses import JSONResponse

from ..tasks.deadline import Deadline
from ..tasks.errors import ErrorKind, TaskError, TaskResult
from ..tasks.service import TaskService
from .deps import get_deadline, get_service
from .models import (
    ErrorResponse,
    TaskCreateRequest,
    TaskResponse,
    TaskStatisticsResponse,
    TaskUpdateRequest,
)


router = APIRouter(prefix="/tasks", tags=["tasks"])


STATUS_BY_KIND = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.INVALID_ARGUMENT: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONCURRENCY_CONFLICT: 409,
    ErrorKind.STORE_UNAVAILABLE: 503,
    ErrorKind.DEADLINE_EXCEEDED: 504,
}

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid input"},
    404: {"model": ErrorResponse, "description": "Task not found"},
    409: {"model": ErrorResponse, "description": "Concurrency conflict"},
    503: {"model": ErrorResponse, "description": "Store unavailable"},
    504: {"model": ErrorResponse, "description": "Deadline exceeded"},
}


# =============================================================================
# Helpers
# =============================================================================

def error_response(error: TaskError) -> JSONResponse:
    """Convert a service error into the JSON error envelope."""
    body = ErrorResponse(
        error=error.kind.value,
        message=error.message,
        details=[d.to_dict() for d in error.details],
    )
    return JSONResponse(
        status_code=STATUS_BY_KIND.get(error.kind, 500),
        content=body.model_dump(),
    )


def format_etag(token: Optional[str]) -> Optional[str]:
    return f'"{token}"' if token else None


def parse_if_match(value: Optional[str]) -> Optional[str]:
    """Token from an If-Match header. '*' and absent mean "any version"."""
    if value is None:
        return None
    value = value.strip()
    if not value or value == "*":
        return None
    if value.startswith("W/"):
        value = value[2:]
    return value.strip('"')


def _list_response(result: TaskResult):
    if not result.success:
        return error_response(result.error)
    return [TaskResponse.from_view(v) for v in result.value]


def _single_response(result: TaskResult, response: Response):
    if not result.success:
        return error_response(result.error)
    etag = format_etag(result.etag)
    if etag:
        response.headers["ETag"] = etag
    return TaskResponse.from_view(result.value)


# =============================================================================
# Collection
# =============================================================================

@router.get("", response_model=List[TaskResponse])
def list_tasks(
    service: TaskService = Depends(get_service),
    deadline: Deadline = Depends(get_deadline),
):
    """All tasks, newest first."""
    return _list_response(service.list_tasks(deadline=deadline))


@router.post(
    "",
    response_model=TaskResponse,
    status_code=201,
    responses={400: ERROR_RESPONSES[400]},
)
def create_task(
    data: TaskCreateRequest,
    request: Request,
    response: Response,
    service: TaskService = Depends(get_service),
    deadline: Deadline = Depends(get_deadline),
):
    """Create a new task."""
    result = service.create_task(data.to_input(), deadline=deadline)
    if not result.success:
        return error_response(result.error)

    response.headers["Location"] = str(request.url_for("get_task", task_id=result.value.id))
    etag = format_etag(result.etag)
    if etag:
        response.headers["ETag"] = etag
    return TaskResponse.from_view(result.value)


@router.get("/statistics", response_model=TaskStatisticsResponse)
def get_statistics(
    service: TaskService = Depends(get_service),
    deadline: Deadline = Depends(get_deadline),
):
    """Counts and completion rate over one snapshot."""
    result = service.get_statistics(deadline=deadline)
    if not result.success:
        return error_response(result.error)
    return TaskStatisticsResponse.from_statistics(result.value)


@router.get("/overdue", response_model=List[TaskResponse])
def list_overdue(
    service: TaskService = Depends(get_service),
    deadline: Deadline = Depends(get_deadline),
):
    """Pending tasks past their due date, most overdue first."""
    return _list_response(service.list_overdue(deadline=deadline))


@router.get("/status/{completed}", response_model=List[TaskResponse])
def list_by_status(
    completed: bool,
    service: TaskService = Depends(get_service),
    deadline: Deadline = Depends(get_deadline),
):
    """Tasks filtered by completion status."""
    return _list_response(service.list_by_status(completed, deadline=deadline))


@router.get(
    "/priority/{priority}",
    response_model=List[TaskResponse],
    responses={400: ERROR_RESPONSES[400]},
)
def list_by_priority(
    priority: int,
    service: TaskService = Depends(get_service),
    deadline: Deadline = Depends(get_deadline),
):
    """Tasks with the given priority (1-5)."""
    return _list_response(service.list_by_priority(priority, deadline=deadline))


# =============================================================================
# Single task
# =============================================================================

@router.get(
    "/{task_id}",
    response_model=TaskResponse,
    responses={404: ERROR_RESPONSES[404]},
)
def get_task(
    task_id: int,
    response: Response,
    service: TaskService = Depends(get_service),
    deadline: Deadline = Depends(get_deadline),
):
    """Get single task by ID."""
    return _single_response(service.get_task(task_id, deadline=deadline), response)


@router.put(
    "/{task_id}",
    status_code=204,
    response_class=Response,
    responses={k: ERROR_RESPONSES[k] for k in (400, 404, 409)},
)
def update_task(
    task_id: int,
    data: TaskUpdateRequest,
    if_match: Optional[str] = Header(None),
    service: TaskService = Depends(get_service),
    deadline: Deadline = Depends(get_deadline),
):
    """Replace a task's fields. Send If-Match with the last ETag to detect lost updates."""
    result = service.update_task(
        task_id,
        data.to_input(),
        expected_token=parse_if_match(if_match),
        deadline=deadline,
    )
    if not result.success:
        return error_response(result.error)

    headers = {}
    etag = format_etag(result.etag)
    if etag:
        headers["ETag"] = etag
    return Response(status_code=204, headers=headers)


@router.delete(
    "/{task_id}",
    status_code=204,
    response_class=Response,
    responses={404: ERROR_RESPONSES[404]},
)
def delete_task(
    task_id: int,
    service: TaskService = Depends(get_service),
    deadline: Deadline = Depends(get_deadline),
):
    """Delete a task."""
    result = service.delete_task(task_id, deadline=deadline)
    if not result.success:
        return error_response(result.error)
    return Response(status_code=204)


@router.patch(
    "/{task_id}/complete",
    response_model=TaskResponse,
    responses={404: ERROR_RESPONSES[404]},
)
def complete_task(
    task_id: int,
    response: Response,
    service: TaskService = Depends(get_service),
    deadline: Deadline = Depends(get_deadline),
):
    """Mark a task complete. Repeating the call returns the same task unchanged."""
    return _single_response(service.complete_task(task_id, deadline=deadline), response)
