from app.routers.storage import router as storage_router
from app.routers.tasks import router as tasks_router

__all__ = [
    "storage_router",
    "tasks_router",
]
