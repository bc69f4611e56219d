"""
Durable task storage.

Result writes are conditional on the task still being active, so a task
that reached completed or failed can never be overwritten: whichever
terminal write lands first wins.
"""
from typing import Any, Dict, List, Optional, Protocol, Tuple

from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import async_sessionmaker

from speechtask.database import async_session_factory, session_scope
from speechtask.errors import TaskNotFoundError, TaskAlreadyTerminalError
from speechtask.models.task import Task, TaskType, TaskStatus, ACTIVE_STATUSES, utcnow
from speechtask.schemas.task import (
    TaskOutcome,
    Failed,
    SynthesisResult,
    TranscriptionResult,
)


_ACTIVE_VALUES = [status.value for status in ACTIVE_STATUSES]


class TaskStore(Protocol):
    """Persistence contract consumed by the task orchestrator."""

    async def create(self, task: Task) -> Task: ...

    async def get(self, task_id: str) -> Optional[Task]: ...

    async def list(
        self,
        owner_id: Optional[str],
        limit: int,
        offset: int,
        task_type: Optional[TaskType] = None,
        status: Optional[TaskStatus] = None,
    ) -> Tuple[List[Task], int]: ...

    async def mark_processing(self, task_id: str) -> bool: ...

    async def update_result(self, task_id: str, outcome: TaskOutcome) -> Task: ...


def _outcome_values(outcome: TaskOutcome) -> Dict[str, Any]:
    """Column values for a terminal outcome."""
    if isinstance(outcome, Failed):
        return {
            'status': TaskStatus.failed.value,
            'error_message': outcome.message,
            'duration_ms': outcome.duration_ms,
        }

    values: Dict[str, Any] = {
        'status': TaskStatus.completed.value,
        'error_message': None,
        'duration_ms': outcome.duration_ms,
    }
    result = outcome.result
    if isinstance(result, SynthesisResult):
        values['output_url'] = result.output_url
        values['file_size_bytes'] = result.file_size_bytes
    elif isinstance(result, TranscriptionResult):
        transcript = result.transcript
        values['transcript'] = transcript.model_dump() if transcript is not None else None
        values['transcript_text'] = (transcript.transcript_text or None) if transcript is not None else None
    return values


class SqlAlchemyTaskStore:
    """Task store backed by an async SQLAlchemy session factory."""

    def __init__(self, session_factory: async_sessionmaker = async_session_factory):
        self._session_factory = session_factory

    async def create(self, task: Task) -> Task:
        """Persist a new task and return it with its assigned id."""
        now = utcnow()
        task.status = TaskStatus.pending.value
        task.created_at = now
        task.updated_at = now
        async with session_scope(self._session_factory) as session:
            session.add(task)
            await session.commit()
            await session.refresh(task)
        return task

    async def get(self, task_id: str) -> Optional[Task]:
        async with session_scope(self._session_factory) as session:
            result = await session.execute(select(Task).where(Task.id == task_id))
            return result.scalar_one_or_none()

    async def list(
        self,
        owner_id: Optional[str],
        limit: int,
        offset: int,
        task_type: Optional[TaskType] = None,
        status: Optional[TaskStatus] = None,
    ) -> Tuple[List[Task], int]:
        """
        List an owner's tasks, newest first.

        Returns:
            Tuple of (page of tasks, total matching count)
        """
        conditions = [Task.owner_id.is_(None) if owner_id is None else Task.owner_id == owner_id]
        if task_type is not None:
            conditions.append(Task.task_type == TaskType(task_type).value)
        if status is not None:
            conditions.append(Task.status == TaskStatus(status).value)

        async with session_scope(self._session_factory) as session:
            count_result = await session.execute(select(func.count(Task.id)).where(*conditions))
            total = count_result.scalar() or 0

            result = await session.execute(
                select(Task)
                .where(*conditions)
                .order_by(Task.created_at.desc(), Task.id.desc())
                .limit(limit)
                .offset(offset)
            )
            tasks = list(result.scalars().all())

        return tasks, total

    async def mark_processing(self, task_id: str) -> bool:
        """
        Move a pending task to processing.

        Returns:
            False if the task is gone or no longer pending
        """
        async with session_scope(self._session_factory) as session:
            result = await session.execute(
                update(Task)
                .where(Task.id == task_id, Task.status == TaskStatus.pending.value)
                .values(status=TaskStatus.processing.value, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            await session.commit()
            return result.rowcount == 1

    async def update_result(self, task_id: str, outcome: TaskOutcome) -> Task:
        """
        Record a terminal outcome for an active task.

        Raises:
            TaskNotFoundError: No task with this id
            TaskAlreadyTerminalError: Task is already completed or failed
        """
        values = _outcome_values(outcome)
        values['updated_at'] = utcnow()

        async with session_scope(self._session_factory) as session:
            result = await session.execute(
                update(Task)
                .where(Task.id == task_id, Task.status.in_(_ACTIVE_VALUES))
                .values({getattr(Task, key): value for key, value in values.items()})
                .execution_options(synchronize_session=False)
            )
            await session.commit()

            current = await session.execute(
                select(Task)
                .where(Task.id == task_id)
                .execution_options(populate_existing=True)
            )
            task = current.scalar_one_or_none()

        if task is None:
            raise TaskNotFoundError(task_id)
        if result.rowcount != 1:
            raise TaskAlreadyTerminalError(task_id, task.status)
        return task
