"""
Pydantic schemas for the canonical normalized transcript.
"""
from typing import List
from pydantic import BaseModel, Field, model_validator


class SimpleWord(BaseModel):
    """A single recognized word with its time range in seconds."""
    word: str
    start: float = 0.0
    end: float = 0.0

    @model_validator(mode='after')
    def _end_not_before_start(self):
        if self.end < self.start:
            self.end = self.start
        return self


class SimpleUtterance(BaseModel):
    """A contiguous speech segment (often one speaker turn)."""
    start: float = 0.0
    end: float = 0.0
    transcript: str = ''


class SimpleTranscript(BaseModel):
    """Provider-independent speech-to-text result."""
    transcript_text: str = ''
    words: List[SimpleWord] = Field(default_factory=list)
    utterances: List[SimpleUtterance] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        """True when the provider detected no speech at all."""
        return not (self.transcript_text or self.words or self.utterances)
