"""
Exception hierarchy for the task pipeline.

Errors raised while submitting a task propagate to the caller. Errors
raised inside a task's background execution never escape it; they are
recorded on the task as its error message.
"""
from typing import Optional


class SpeechTaskError(Exception):
    """Base class for all pipeline errors."""


class ValidationError(SpeechTaskError):
    """Malformed submission or query parameters. No task is created."""


class TaskNotFoundError(SpeechTaskError):
    """No task exists with the requested id."""

    def __init__(self, task_id: str):
        super().__init__(f'Task not found: {task_id}')
        self.task_id = task_id


class TaskAlreadyTerminalError(SpeechTaskError):
    """A write was attempted against a completed or failed task."""

    def __init__(self, task_id: str, status: str):
        super().__init__(f'Task {task_id} is already {status}')
        self.task_id = task_id
        self.status = status


class PersistenceError(SpeechTaskError):
    """The task or asset store could not be reached or rejected the write."""


class NormalizationError(SpeechTaskError):
    """Provider response lacks the structure needed to build a transcript."""


class ProviderError(SpeechTaskError):
    """Base class for speech provider failures."""


class ProviderNotConfiguredError(ProviderError):
    """Provider credentials are missing."""


class ProviderTransientError(ProviderError):
    """Retryable failure: transport error, timeout, 5xx or rate limiting."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ProviderRejectedError(ProviderError):
    """Non-retryable error status from the provider (4xx or an unexpected 3xx)."""

    def __init__(self, status_code: int, payload: str):
        super().__init__(f'Provider rejected request with status {status_code}: {payload}')
        self.status_code = status_code
        self.payload = payload


class ProviderExhaustedError(ProviderError):
    """Every attempt failed with a transient error."""

    def __init__(self, attempts: int, last_error: ProviderTransientError):
        super().__init__(f'Provider request failed after {attempts} attempts: {last_error}')
        self.attempts = attempts
        self.last_error = last_error
