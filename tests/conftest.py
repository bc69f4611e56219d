"""
Pytest fixtures for testing.
"""
import asyncio
from pathlib import Path
from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from speechtask.models import Base
from speechtask.services.asset_store import SqlAlchemyAssetStore
from speechtask.services.normalizer import DeepgramNormalizer
from speechtask.services.object_storage import LocalObjectStorage
from speechtask.services.task_orchestrator import TaskOrchestrator
from speechtask.services.task_store import SqlAlchemyTaskStore


STORAGE_BASE_URL = 'http://storage.test/objects'


def deepgram_response(transcript='hello world', utterances=None, channels=True):
    """Build a Deepgram-style prerecorded response."""
    if utterances is None:
        utterances = [{
            'start': 0.0,
            'end': 0.9,
            'transcript': transcript,
            'words': [
                {'word': 'hello', 'punctuated_word': 'hello', 'start': 0.0, 'end': 0.4},
                {'word': 'world', 'punctuated_word': 'world', 'start': 0.5, 'end': 0.9},
            ],
        }]
    results = {'utterances': utterances}
    if channels:
        results['channels'] = [{'alternatives': [{'transcript': transcript, 'words': []}]}]
    return {'results': results}


class FakeSpeechProvider:
    """
    Stand-in for SpeechProviderClient.

    Set `gate` to an asyncio.Event to hold calls until it is set, and
    `error` to make calls fail.
    """

    def __init__(self):
        self.is_configured = True
        self.stt_payload = deepgram_response()
        self.audio = b'ID3-fake-audio-bytes'
        self.content_type = 'audio/mpeg'
        self.error: Optional[Exception] = None
        self.gate: Optional[asyncio.Event] = None
        self.transcribe_calls = []
        self.synthesize_calls = []

    async def _respond(self):
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error

    async def transcribe_from_url(self, url, language):
        self.transcribe_calls.append((url, language))
        await self._respond()
        return self.stt_payload

    async def synthesize(self, text, voice):
        self.synthesize_calls.append((text, voice))
        await self._respond()
        return self.audio, self.content_type

    def release(self):
        if self.gate is not None:
            self.gate.set()


@pytest.fixture(scope='function')
def test_db_url(tmp_path):
    """Generate a fresh test database URL per test."""
    return f'sqlite+aiosqlite:///{tmp_path / "test.db"}'


@pytest_asyncio.fixture(scope='function')
async def test_engine(test_db_url):
    """Create a test database engine."""
    engine = create_async_engine(test_db_url, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    """Session factory bound to the test engine."""
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture(scope='function')
async def test_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def task_store(session_factory):
    return SqlAlchemyTaskStore(session_factory)


@pytest.fixture
def asset_store(session_factory):
    return SqlAlchemyAssetStore(session_factory)


@pytest.fixture
def storage_dir(tmp_path) -> Path:
    return tmp_path / 'objects'


@pytest.fixture
def object_storage(storage_dir):
    return LocalObjectStorage(storage_dir, STORAGE_BASE_URL)


@pytest.fixture
def fake_provider():
    return FakeSpeechProvider()


@pytest_asyncio.fixture
async def orchestrator(task_store, asset_store, object_storage, fake_provider):
    """Orchestrator wired to the test database and a fake provider."""
    orchestrator = TaskOrchestrator(
        task_store=task_store,
        asset_store=asset_store,
        object_storage=object_storage,
        provider=fake_provider,
        normalizer=DeepgramNormalizer(),
    )
    yield orchestrator

    # Never leave execution units running against a disposed engine
    fake_provider.release()
    await orchestrator.stop(timeout=2.0)


@pytest_asyncio.fixture
async def client(orchestrator, fake_provider):
    """Create a test client with the orchestrator and provider overridden."""
    from server import app
    from speechtask.routers.dependencies import get_orchestrator, get_provider

    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    app.dependency_overrides[get_provider] = lambda: fake_provider

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url='http://test') as client:
        yield client

    # Clean up
    app.dependency_overrides.clear()


@pytest.fixture
def make_deepgram_response():
    """Builder for Deepgram-style responses."""
    return deepgram_response
