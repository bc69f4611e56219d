"""
Pydantic schemas for task submission, results and API responses.
"""
from datetime import datetime
from typing import Optional, List, Literal, Union
from pydantic import BaseModel, Field, ConfigDict

from speechtask.schemas.transcript import SimpleTranscript


class TaskCreate(BaseModel):
    """Schema for submitting a new task."""
    task_type: str = Field(..., description="speech_to_text / text_to_speech (or 'stt' / 'tts')")
    input_text: Optional[str] = Field(None, description='Text to synthesize (text_to_speech)')
    input_url: Optional[str] = Field(None, description='Source audio/video URL (speech_to_text)')
    owner_id: Optional[str] = Field(None, description='Submitting principal (null = system task)')
    language: Optional[str] = Field(None, description='Language hint for speech_to_text')
    voice: Optional[str] = Field(None, description='Voice/model identifier for text_to_speech')


class TaskCancel(BaseModel):
    """Schema for cancelling a non-terminal task."""
    message: str = Field('Cancelled by administrator', min_length=1)


# Validated task input, one variant per task type.

class TextToSpeechInput(BaseModel):
    kind: Literal['text_to_speech'] = 'text_to_speech'
    text: str = Field(..., min_length=1)
    voice: str


class SpeechToTextInput(BaseModel):
    kind: Literal['speech_to_text'] = 'speech_to_text'
    source_url: str = Field(..., min_length=1)
    language: str


TaskInput = Union[TextToSpeechInput, SpeechToTextInput]


# Terminal outcome written by the orchestrator, one variant per terminal status.

class SynthesisResult(BaseModel):
    output_url: str
    file_size_bytes: Optional[int] = None


class TranscriptionResult(BaseModel):
    # None records "no transcript data": the provider found no speech
    transcript: Optional[SimpleTranscript] = None


class Completed(BaseModel):
    status: Literal['completed'] = 'completed'
    result: Union[SynthesisResult, TranscriptionResult]
    duration_ms: Optional[int] = None


class Failed(BaseModel):
    status: Literal['failed'] = 'failed'
    message: str
    duration_ms: Optional[int] = None


TaskOutcome = Union[Completed, Failed]


class TaskResponse(BaseModel):
    """Schema for task response."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    task_type: str
    status: str
    input_text: Optional[str]
    input_url: Optional[str]
    language: Optional[str]
    voice: Optional[str]
    output_url: Optional[str]
    transcript_text: Optional[str]
    transcript: Optional[SimpleTranscript]
    error_message: Optional[str]
    owner_id: Optional[str]
    duration_ms: Optional[int]
    file_size_bytes: Optional[int]
    created_at: datetime
    updated_at: datetime


class TaskListResponse(BaseModel):
    """Schema for paginated task list response."""
    tasks: List[TaskResponse]
    total: int
    limit: int
    offset: int
    page: int
    total_pages: int
