"""
Task endpoints for speech-to-text and text-to-speech work.
"""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from speechtask.config import LIST_DEFAULT_LIMIT
from speechtask.errors import ValidationError, TaskNotFoundError, TaskAlreadyTerminalError, PersistenceError
from speechtask.routers.dependencies import get_orchestrator
from speechtask.schemas.task import TaskCreate, TaskCancel, TaskResponse, TaskListResponse
from speechtask.services.task_orchestrator import TaskOrchestrator


router = APIRouter(prefix='/tasks', tags=['tasks'])


def _http_error(error: Exception) -> HTTPException:
    if isinstance(error, ValidationError):
        return HTTPException(status_code=422, detail=str(error))
    if isinstance(error, TaskNotFoundError):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, TaskAlreadyTerminalError):
        return HTTPException(status_code=409, detail=str(error))
    return HTTPException(status_code=503, detail=str(error))


@router.get('', response_model=TaskListResponse)
async def list_tasks(
    owner_id: Optional[str] = Query(default=None),
    limit: int = Query(default=LIST_DEFAULT_LIMIT),
    offset: int = Query(default=0),
    task_type: Optional[str] = Query(default=None),
    status: Optional[str] = Query(default=None),
    orchestrator: TaskOrchestrator = Depends(get_orchestrator),
) -> TaskListResponse:
    """
    List an owner's tasks with pagination.

    Returns tasks ordered by creation time (newest first).
    """
    try:
        page = await orchestrator.list_by_owner(
            owner_id, limit=limit, offset=offset, task_type=task_type, status=status,
        )
    except (ValidationError, PersistenceError) as e:
        raise _http_error(e)

    return TaskListResponse(
        tasks=[TaskResponse.model_validate(task) for task in page.tasks],
        total=page.total,
        limit=page.limit,
        offset=page.offset,
        page=page.page,
        total_pages=page.total_pages,
    )


@router.post('', response_model=TaskResponse, status_code=201)
async def create_task(
    task_data: TaskCreate,
    orchestrator: TaskOrchestrator = Depends(get_orchestrator),
) -> TaskResponse:
    """
    Submit a new task.

    Returns immediately with task ID and pending status.
    Task is processed asynchronously in the background.
    """
    try:
        task = await orchestrator.submit(task_data)
    except (ValidationError, PersistenceError) as e:
        raise _http_error(e)
    return TaskResponse.model_validate(task)


@router.get('/{task_id}', response_model=TaskResponse)
async def get_task(
    task_id: str,
    orchestrator: TaskOrchestrator = Depends(get_orchestrator),
) -> TaskResponse:
    """
    Get details for a specific task.

    Returns status, timestamps and the result once the task is terminal.
    """
    try:
        task = await orchestrator.get_by_id(task_id)
    except (TaskNotFoundError, PersistenceError) as e:
        raise _http_error(e)
    return TaskResponse.model_validate(task)


@router.post('/{task_id}/cancel', response_model=TaskResponse)
async def cancel_task(
    task_id: str,
    cancel: Optional[TaskCancel] = None,
    orchestrator: TaskOrchestrator = Depends(get_orchestrator),
) -> TaskResponse:
    """
    Force a pending or processing task to failed.

    Raises:
        404: Task not found
        409: Task already completed or failed
    """
    message = (cancel or TaskCancel()).message
    try:
        task = await orchestrator.cancel(task_id, message)
    except (TaskNotFoundError, TaskAlreadyTerminalError, PersistenceError) as e:
        raise _http_error(e)
    return TaskResponse.model_validate(task)
