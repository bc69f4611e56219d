"""
Asset model for stored audio/video objects.
"""
import uuid
from sqlalchemy import Column, String, Text, DateTime, Index

from speechtask.models.task import Base, utcnow


class Asset(Base):
    """
    An audio/video object tracked independently of tasks.

    Sources ingested by speech-to-text tasks and audio produced by
    text-to-speech tasks both become assets.
    """
    __tablename__ = 'assets'
    __table_args__ = (
        Index('ix_assets_owner_location', 'owner_id', 'location'),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    owner_id = Column(String(64), nullable=True)
    location = Column(Text, nullable=False)
    display_name = Column(String(255), nullable=False, default='')
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow)

    def __repr__(self):
        return f'<Asset {self.id} location={self.location}>'
