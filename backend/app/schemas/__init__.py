from app.schemas.base import StandardError
from app.schemas.task import Task, TaskActionResult, TaskBase

__all__ = [
    # Base
    "StandardError",
    # Task
    "Task",
    "TaskBase",
    "TaskActionResult",
]
