"""
SQLAlchemy models.
"""
from speechtask.models.task import Base, Task, TaskType, TaskStatus, TERMINAL_STATUSES, ACTIVE_STATUSES
from speechtask.models.asset import Asset

__all__ = [
    'Base',
    'Task',
    'TaskType',
    'TaskStatus',
    'TERMINAL_STATUSES',
    'ACTIVE_STATUSES',
    'Asset',
]
