"""
FastAPI routers.
"""
from speechtask.routers.health import router as health_router
from speechtask.routers.tasks import router as tasks_router

__all__ = ['health_router', 'tasks_router']
