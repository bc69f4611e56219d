"""
Asset storage: audio/video objects tracked independently of tasks.
"""
from typing import List, Optional, Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from speechtask.database import async_session_factory, session_scope
from speechtask.models.asset import Asset
from speechtask.models.task import utcnow


class AssetStore(Protocol):
    """Asset persistence contract consumed by the task orchestrator."""

    async def create_asset(
        self,
        owner_id: Optional[str],
        location: str,
        display_name: str,
        description: Optional[str] = None,
    ) -> Asset: ...

    async def find_by_owner_and_location(self, owner_id: Optional[str], location: str) -> List[Asset]: ...


class SqlAlchemyAssetStore:
    """Asset store backed by an async SQLAlchemy session factory."""

    def __init__(self, session_factory: async_sessionmaker = async_session_factory):
        self._session_factory = session_factory

    async def create_asset(
        self,
        owner_id: Optional[str],
        location: str,
        display_name: str,
        description: Optional[str] = None,
    ) -> Asset:
        now = utcnow()
        asset = Asset(
            owner_id=owner_id,
            location=location,
            display_name=display_name,
            description=description,
            created_at=now,
            updated_at=now,
        )
        async with session_scope(self._session_factory) as session:
            session.add(asset)
            await session.commit()
            await session.refresh(asset)
        return asset

    async def find_by_owner_and_location(self, owner_id: Optional[str], location: str) -> List[Asset]:
        owner_condition = Asset.owner_id.is_(None) if owner_id is None else Asset.owner_id == owner_id
        async with session_scope(self._session_factory) as session:
            result = await session.execute(
                select(Asset)
                .where(owner_condition, Asset.location == location)
                .order_by(Asset.created_at)
            )
            return list(result.scalars().all())
