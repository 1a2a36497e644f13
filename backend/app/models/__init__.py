from app.models.base import Base
from app.models.task import Task

__all__ = [
    "Base",
    "Task",
]
