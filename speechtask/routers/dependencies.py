"""
FastAPI dependencies shared by routers.
"""
from fastapi import Request

from speechtask.services.provider_client import SpeechProviderClient
from speechtask.services.task_orchestrator import TaskOrchestrator


def get_orchestrator(request: Request) -> TaskOrchestrator:
    """
    Orchestrator built at startup and stored on the application state.

    Usage with FastAPI dependency injection:
        @router.get('/tasks/{task_id}')
        async def get_task(orchestrator: TaskOrchestrator = Depends(get_orchestrator)):
            ...
    """
    return request.app.state.orchestrator


def get_provider(request: Request) -> SpeechProviderClient:
    """Provider client built at startup and stored on the application state."""
    return request.app.state.provider
