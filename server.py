#!/usr/bin/env python3
"""
SpeechTask FastAPI Server

An asynchronous task server for speech-to-text and text-to-speech.
Tasks are submitted, processed in the background against the speech
provider, and polled for their outcome.
"""
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from starlette.staticfiles import StaticFiles

from speechtask.config import (
    APP_NAME,
    APP_VERSION,
    SERVER_HOST,
    SERVER_PORT,
    STORAGE_DIR,
    STT_NORMALIZER,
)
from speechtask.database import init_db, close_db, async_session_factory
from speechtask.routers import health_router, tasks_router
from speechtask.services.asset_store import SqlAlchemyAssetStore
from speechtask.services.normalizer import get_normalizer
from speechtask.services.object_storage import LocalObjectStorage
from speechtask.services.provider_client import SpeechProviderClient
from speechtask.services.task_orchestrator import TaskOrchestrator
from speechtask.services.task_store import SqlAlchemyTaskStore


def build_orchestrator(session_factory, provider: SpeechProviderClient) -> TaskOrchestrator:
    """Wire the orchestrator to its stores, storage, provider and normalizer."""
    return TaskOrchestrator(
        task_store=SqlAlchemyTaskStore(session_factory),
        asset_store=SqlAlchemyAssetStore(session_factory),
        object_storage=LocalObjectStorage(),
        provider=provider,
        normalizer=get_normalizer(STT_NORMALIZER),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan context manager.

    Startup:
        - Initialize database and create tables
        - Build provider client and task orchestrator

    Shutdown:
        - Wait for (then cancel) in-flight task executions
        - Close provider client
        - Close database connections
    """
    print(f'Starting {APP_NAME} v{APP_VERSION}...')

    # Initialize database
    print('Initializing database...')
    await init_db()

    provider = SpeechProviderClient()
    if not provider.is_configured:
        print('DEEPGRAM_API_KEY is not set; speech tasks will fail until it is configured')

    app.state.provider = provider
    app.state.orchestrator = build_orchestrator(async_session_factory, provider)

    print(f'Server ready at http://{SERVER_HOST}:{SERVER_PORT}')
    print('API documentation available at /docs')

    yield

    # Shutdown
    print('Shutting down...')

    await app.state.orchestrator.stop()
    await provider.aclose()

    # Close database
    await close_db()

    print('Shutdown complete.')


# Create FastAPI application
app = FastAPI(
    title=APP_NAME,
    description='An asynchronous speech-to-text / text-to-speech task server.',
    version=APP_VERSION,
    lifespan=lifespan,
)

# Register routers
app.include_router(health_router)
app.include_router(tasks_router)

# Serve synthesized audio
app.mount('/objects', StaticFiles(directory=str(STORAGE_DIR), check_dir=False), name='objects')


if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s %(name)s: %(message)s')
    uvicorn.run(
        app,
        host=SERVER_HOST,
        port=SERVER_PORT,
        reload=False,
        log_level='info',
    )
