"""
Pydantic schemas for task submission, results and API responses.
"""
from speechtask.schemas.task import (
    TaskCreate,
    TaskCancel,
    TaskResponse,
    TaskListResponse,
    TextToSpeechInput,
    SpeechToTextInput,
    TaskInput,
    SynthesisResult,
    TranscriptionResult,
    Completed,
    Failed,
    TaskOutcome,
)
from speechtask.schemas.transcript import SimpleTranscript, SimpleWord, SimpleUtterance

__all__ = [
    'TaskCreate',
    'TaskCancel',
    'TaskResponse',
    'TaskListResponse',
    'TextToSpeechInput',
    'SpeechToTextInput',
    'TaskInput',
    'SynthesisResult',
    'TranscriptionResult',
    'Completed',
    'Failed',
    'TaskOutcome',
    'SimpleTranscript',
    'SimpleWord',
    'SimpleUtterance',
]
