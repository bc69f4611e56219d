"""
Task orchestrator: submission, background execution and task lifecycle.

submit() persists a pending task and returns at once. The provider call
and every write that follows it run in a detached asyncio task, one per
submitted task, so only that unit ever drives a task to its terminal
state. Failures inside the unit become the task's error_message; they
are never raised back to the submitter.

Lifecycle::

    pending -> processing -> completed | failed

Terminal states are written with a conditional update, so a cancel and
a provider completion racing each other resolve to whichever lands
first. In-flight work lives only in this process: tasks whose unit is
lost (crash, shutdown) stay pending/processing.
"""
import asyncio
import logging
import math
import time
from dataclasses import dataclass
from typing import Dict, List, Optional
from urllib.parse import quote, urlparse, unquote

from speechtask.config import STT_DEFAULT_LANGUAGE, TTS_MODEL, LIST_DEFAULT_LIMIT, LIST_MAX_LIMIT
from speechtask.errors import (
    SpeechTaskError,
    ValidationError,
    TaskNotFoundError,
    TaskAlreadyTerminalError,
    PersistenceError,
)
from speechtask.models.task import Task, TaskType, TaskStatus
from speechtask.schemas.task import (
    TaskCreate,
    TaskInput,
    TextToSpeechInput,
    SpeechToTextInput,
    TaskOutcome,
    Completed,
    Failed,
    SynthesisResult,
    TranscriptionResult,
)
from speechtask.services.asset_store import AssetStore
from speechtask.services.normalizer import TranscriptNormalizer
from speechtask.services.object_storage import ObjectStorage, extension_for
from speechtask.services.provider_client import SpeechProviderClient
from speechtask.services.task_store import TaskStore

logger = logging.getLogger(__name__)

DEFAULT_CANCEL_MESSAGE = 'Cancelled by administrator'


@dataclass
class TaskPage:
    """One page of an owner's tasks."""
    tasks: List[Task]
    total: int
    limit: int
    offset: int

    @property
    def page(self) -> int:
        return self.offset // self.limit + 1

    @property
    def total_pages(self) -> int:
        return max(1, math.ceil(self.total / self.limit))


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


def _describe(error: Exception) -> str:
    message = str(error)
    return message if message else type(error).__name__


def _owner_segment(owner_id: Optional[str]) -> str:
    """Single object-key path segment for an owner ('system' when unowned)."""
    if not owner_id:
        return 'system'
    segment = quote(owner_id, safe='')
    # quote() leaves dots alone; '.' and '..' are not valid segments
    if segment in ('.', '..'):
        segment = segment.replace('.', '%2E')
    return segment


def _display_name_from_url(url: str) -> str:
    path = urlparse(url).path
    name = unquote(path.rstrip('/').rsplit('/', 1)[-1]) if path else ''
    return name or url


class TaskOrchestrator:
    """
    Owns the task state machine.

    All collaborators are injected; the orchestrator holds no global state
    apart from the set of execution units it has launched.
    """

    def __init__(
        self,
        task_store: TaskStore,
        asset_store: AssetStore,
        object_storage: ObjectStorage,
        provider: SpeechProviderClient,
        normalizer: TranscriptNormalizer,
        default_language: str = STT_DEFAULT_LANGUAGE,
        default_voice: str = TTS_MODEL,
        max_list_limit: int = LIST_MAX_LIMIT,
    ):
        self._task_store = task_store
        self._asset_store = asset_store
        self._object_storage = object_storage
        self._provider = provider
        self._normalizer = normalizer
        self._default_language = default_language
        self._default_voice = default_voice
        self._max_list_limit = max_list_limit
        self._inflight: Dict[str, asyncio.Task] = {}

    @property
    def inflight_count(self) -> int:
        """Number of execution units that have not finished yet."""
        return len(self._inflight)

    # ------------------------------------------------------------------
    # Submission and queries
    # ------------------------------------------------------------------

    def validate(self, request: TaskCreate) -> TaskInput:
        """
        Check a submission and resolve it into its typed input.

        Raises:
            ValidationError: Unknown task type or missing/conflicting input
        """
        try:
            task_type = TaskType.parse(request.task_type)
        except ValueError:
            raise ValidationError(f'Invalid task_type: {request.task_type!r}') from None

        text = (request.input_text or '').strip()
        url = (request.input_url or '').strip()

        if task_type == TaskType.text_to_speech:
            if not text:
                raise ValidationError('input_text is required for text_to_speech')
            if url:
                raise ValidationError('input_url is not accepted for text_to_speech')
            return TextToSpeechInput(text=request.input_text, voice=request.voice or self._default_voice)

        if not url:
            raise ValidationError('input_url is required for speech_to_text')
        if text:
            raise ValidationError('input_text is not accepted for speech_to_text')
        return SpeechToTextInput(source_url=url, language=request.language or self._default_language)

    async def submit(self, request: TaskCreate) -> Task:
        """
        Persist a pending task and launch its execution in the background.

        Returns immediately with the pending task; poll get_by_id() for
        the outcome.

        Raises:
            ValidationError: Invalid submission (no task is created)
            PersistenceError: Task could not be stored (no task is created)
        """
        task_input = self.validate(request)

        if isinstance(task_input, TextToSpeechInput):
            task = Task(
                task_type=TaskType.text_to_speech.value,
                input_text=task_input.text,
                voice=task_input.voice,
                owner_id=request.owner_id,
            )
        else:
            task = Task(
                task_type=TaskType.speech_to_text.value,
                input_url=task_input.source_url,
                language=task_input.language,
                owner_id=request.owner_id,
            )

        task = await self._task_store.create(task)
        logger.info('Task %s (%s) submitted', task.id, task.task_type)
        self._launch(task.id, task.owner_id, task_input)
        return task

    async def get_by_id(self, task_id: str) -> Task:
        """
        Fetch a task.

        Ownership is not checked here; callers compare owner_id themselves.

        Raises:
            TaskNotFoundError: No task with this id
        """
        task = await self._task_store.get(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    async def list_by_owner(
        self,
        owner_id: Optional[str],
        limit: int = LIST_DEFAULT_LIMIT,
        offset: int = 0,
        task_type: Optional[str] = None,
        status: Optional[str] = None,
    ) -> TaskPage:
        """
        List an owner's tasks, newest first.

        limit above the maximum is clamped; non-positive limit or negative
        offset is rejected.

        Raises:
            ValidationError: Bad pagination bounds or unknown filter value
        """
        if limit <= 0:
            raise ValidationError(f'limit must be positive, got {limit}')
        if offset < 0:
            raise ValidationError(f'offset must not be negative, got {offset}')
        limit = min(limit, self._max_list_limit)

        type_filter = None
        if task_type:
            try:
                type_filter = TaskType.parse(task_type)
            except ValueError:
                raise ValidationError(f'Invalid task_type filter: {task_type!r}') from None

        status_filter = None
        if status:
            try:
                status_filter = TaskStatus(status)
            except ValueError:
                raise ValidationError(f'Invalid status filter: {status!r}') from None

        tasks, total = await self._task_store.list(
            owner_id, limit, offset, task_type=type_filter, status=status_filter,
        )
        return TaskPage(tasks=tasks, total=total, limit=limit, offset=offset)

    async def cancel(self, task_id: str, message: str = DEFAULT_CANCEL_MESSAGE) -> Task:
        """
        Force a non-terminal task to failed.

        Does not interrupt an in-flight provider call; its later result
        is dropped because the task is already terminal.

        Raises:
            TaskNotFoundError: No task with this id
            TaskAlreadyTerminalError: Task already completed or failed
        """
        task = await self._task_store.update_result(task_id, Failed(message=message))
        logger.info('Task %s cancelled: %s', task_id, message)
        return task

    # ------------------------------------------------------------------
    # Background execution
    # ------------------------------------------------------------------

    def _launch(self, task_id: str, owner_id: Optional[str], task_input: TaskInput):
        unit = asyncio.create_task(
            self._execute(task_id, owner_id, task_input),
            name=f'speechtask-{task_id}',
        )
        self._inflight[task_id] = unit
        unit.add_done_callback(lambda _: self._inflight.pop(task_id, None))

    async def _execute(self, task_id: str, owner_id: Optional[str], task_input: TaskInput):
        """Run one task to a terminal state. Never raises except on cancellation."""
        try:
            started = await self._task_store.mark_processing(task_id)
        except PersistenceError:
            logger.exception('Could not mark task %s as processing; task left pending', task_id)
            return
        if not started:
            logger.warning('Task %s is no longer pending; skipping execution', task_id)
            return

        start_time = time.monotonic()
        try:
            if isinstance(task_input, SpeechToTextInput):
                result = await self._run_speech_to_text(task_id, owner_id, task_input)
            else:
                result = await self._run_text_to_speech(task_id, owner_id, task_input)
            outcome: TaskOutcome = Completed(result=result, duration_ms=_elapsed_ms(start_time))
        except asyncio.CancelledError:
            logger.warning('Execution of task %s was cancelled; task left processing', task_id)
            raise
        except SpeechTaskError as e:
            logger.error('Task %s failed: %s', task_id, e)
            outcome = Failed(message=_describe(e), duration_ms=_elapsed_ms(start_time))
        except Exception as e:
            logger.exception('Task %s failed with unexpected error', task_id)
            outcome = Failed(message=_describe(e), duration_ms=_elapsed_ms(start_time))

        await self._record(task_id, outcome)

    async def _run_speech_to_text(
        self,
        task_id: str,
        owner_id: Optional[str],
        task_input: SpeechToTextInput,
    ) -> TranscriptionResult:
        payload = await self._provider.transcribe_from_url(task_input.source_url, task_input.language)
        transcript = self._normalizer.normalize(payload)

        await self._ensure_source_asset(owner_id, task_input.source_url)

        if transcript.is_empty:
            logger.warning(
                'No transcript data for task %s (%s); completing with null transcript',
                task_id, task_input.source_url,
            )
            return TranscriptionResult(transcript=None)

        logger.info(
            'Task %s transcribed: %d utterances, %d words',
            task_id, len(transcript.utterances), len(transcript.words),
        )
        return TranscriptionResult(transcript=transcript)

    async def _run_text_to_speech(
        self,
        task_id: str,
        owner_id: Optional[str],
        task_input: TextToSpeechInput,
    ) -> SynthesisResult:
        audio, content_type = await self._provider.synthesize(task_input.text, task_input.voice)

        extension = extension_for(content_type)
        key = f'text-to-speech/{_owner_segment(owner_id)}/{task_id}{extension}'
        output_url = await self._object_storage.put(key, audio, content_type)

        # Every synthesis is a new artifact; no dedup against earlier assets
        await self._asset_store.create_asset(
            owner_id,
            output_url,
            display_name=f'tts-{task_id}{extension}',
            description=task_input.text,
        )
        logger.info('Task %s synthesized %d bytes to %s', task_id, len(audio), output_url)
        return SynthesisResult(output_url=output_url, file_size_bytes=len(audio))

    async def _ensure_source_asset(self, owner_id: Optional[str], source_url: str):
        existing = await self._asset_store.find_by_owner_and_location(owner_id, source_url)
        if existing:
            return
        await self._asset_store.create_asset(
            owner_id,
            source_url,
            display_name=_display_name_from_url(source_url),
        )

    async def _record(self, task_id: str, outcome: TaskOutcome):
        try:
            await self._task_store.update_result(task_id, outcome)
        except TaskAlreadyTerminalError as e:
            logger.warning('Dropping %s result for task %s: %s', outcome.status, task_id, e)
        except TaskNotFoundError:
            logger.error('Task %s disappeared before its %s result was recorded', task_id, outcome.status)
        except PersistenceError:
            logger.exception(
                'Could not record %s result for task %s; task left in its prior non-terminal state',
                outcome.status, task_id,
            )

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    async def join(self):
        """Wait until every launched execution unit has finished."""
        while self._inflight:
            await asyncio.gather(*list(self._inflight.values()), return_exceptions=True)

    async def stop(self, timeout: float = 5.0):
        """
        Wait for in-flight units, then cancel the stragglers.

        Cancelled tasks keep their non-terminal status.
        """
        units = list(self._inflight.values())
        if not units:
            return
        _, pending = await asyncio.wait(units, timeout=timeout)
        for unit in pending:
            unit.cancel()
        if pending:
            logger.warning('Cancelled %d unfinished task execution(s) at shutdown', len(pending))
            await asyncio.gather(*pending, return_exceptions=True)
