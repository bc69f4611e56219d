"""
Task model for speech-to-text and text-to-speech work.
"""
import uuid
import enum
from datetime import datetime, timezone
from sqlalchemy import Column, String, Text, DateTime, Integer, JSON, Index
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp, as stored by SQLite."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class TaskType(str, enum.Enum):
    """Kinds of speech work a task can perform."""
    speech_to_text = 'speech_to_text'
    text_to_speech = 'text_to_speech'

    @classmethod
    def parse(cls, value) -> 'TaskType':
        """Resolve a task type, accepting the short 'stt' / 'tts' forms."""
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower()
        key = _TASK_TYPE_ALIASES.get(key, key)
        return cls(key)


_TASK_TYPE_ALIASES = {
    'stt': TaskType.speech_to_text.value,
    'tts': TaskType.text_to_speech.value,
}


class TaskStatus(str, enum.Enum):
    """Lifecycle states for tasks."""
    pending = 'pending'
    processing = 'processing'
    completed = 'completed'
    failed = 'failed'

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({TaskStatus.completed, TaskStatus.failed})
ACTIVE_STATUSES = frozenset({TaskStatus.pending, TaskStatus.processing})


class Task(Base):
    """
    Represents one unit of asynchronous speech work.

    Attributes:
        id: Unique task identifier (UUID)
        task_type: speech_to_text or text_to_speech
        status: Current lifecycle status
        input_text: Text to synthesize (text_to_speech only)
        input_url: Audio/video source URL (speech_to_text only)
        language: Language hint passed to the STT provider
        voice: Voice/model identifier passed to the TTS provider
        output_url: Storage location of synthesized audio
        transcript_text: Flattened best transcript
        transcript: Normalized transcript payload (null when no speech was found)
        error_message: Error details if failed
        owner_id: Submitting principal (null = system task)
        duration_ms: Time spent in the background execution unit
        file_size_bytes: Size of synthesized audio
        created_at: Task creation timestamp
        updated_at: Timestamp of the last status transition
    """
    __tablename__ = 'tasks'
    __table_args__ = (
        Index('ix_tasks_owner_created', 'owner_id', 'created_at'),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    task_type = Column(String(20), nullable=False)
    status = Column(String(20), nullable=False, default=TaskStatus.pending.value)
    input_text = Column(Text, nullable=True)
    input_url = Column(Text, nullable=True)
    language = Column(String(20), nullable=True)
    voice = Column(String(100), nullable=True)
    output_url = Column(Text, nullable=True)
    transcript_text = Column(Text, nullable=True)
    transcript = Column('transcript_json', JSON(none_as_null=True), nullable=True)
    error_message = Column(Text, nullable=True)
    owner_id = Column(String(64), nullable=True)
    duration_ms = Column(Integer, nullable=True)
    file_size_bytes = Column(Integer, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow)

    @property
    def is_terminal(self) -> bool:
        return TaskStatus(self.status).is_terminal

    def __repr__(self):
        return f'<Task {self.id} type={self.task_type} status={self.status}>'
