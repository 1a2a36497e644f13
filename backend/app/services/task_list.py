"""List view logic: newest-first listing and confirmed deletion."""

import logging
from uuid import UUID

from app.schemas.task import Task, TaskActionResult
from app.services.errors import (
    ConfirmationRequiredError,
    DatabaseError,
    TaskFlowError,
    TaskNotFoundError,
    UnexpectedTaskError,
)
from app.services.records import RecordStore, RecordStoreError
from app.services.storage import BlobStore, BlobStoreError, parse_blob_key

logger = logging.getLogger(__name__)

DELETE_PROMPT = "Are you sure you want to delete this task?\n\nTask: {title}\nDetail: {detail}"
IMAGE_CLEANUP_WARNING = "Error deleting the image from storage."


class TaskListView:
    """The in-memory task list and the actions offered on it."""

    def __init__(self, records: RecordStore, blobs: BlobStore):
        self.records = records
        self.blobs = blobs
        self.tasks: list[Task] = []

    async def refresh(self) -> list[Task]:
        try:
            self.tasks = await self.records.select(order_by="create_at", descending=True)
        except RecordStoreError as e:
            self.tasks = []
            logger.error(f"Failed to fetch tasks: {e!r}")
            raise DatabaseError("Error fetching tasks, please try again later.") from e
        return self.tasks

    def find(self, task_id: UUID) -> Task | None:
        return next((t for t in self.tasks if t.id == task_id), None)

    async def fetch_one(self, task_id: UUID) -> Task:
        """Fetch a single task by id, tracking it in the list."""
        try:
            rows = await self.records.select(task_id=task_id)
        except RecordStoreError as e:
            logger.error(f"Failed to fetch task {task_id}: {e!r}")
            raise DatabaseError("Error fetching tasks, please try again later.") from e
        if not rows:
            raise TaskNotFoundError("Task not found.")

        task = rows[0]
        if self.find(task.id) is None:
            self.tasks.append(task)
        return task

    @staticmethod
    def confirmation_prompt(task: Task) -> str:
        return DELETE_PROMPT.format(title=task.title, detail=task.detail)

    async def _remove_image(self, task: Task) -> str | None:
        """Best-effort removal of the task's blob; returns a warning on failure."""
        key = parse_blob_key(task.image_url, self.blobs.bucket)
        if key is None:
            if task.image_url:
                logger.warning(f"Cannot parse storage key from {task.image_url}, skipping blob removal")
            return None
        try:
            await self.blobs.remove([key])
        except BlobStoreError as e:
            logger.warning(f"Error deleting image {key} of task {task.id}: {e!r}")
            return IMAGE_CLEANUP_WARNING
        return None

    async def delete(self, task: Task, confirmed: bool) -> TaskActionResult:
        if not confirmed:
            raise ConfirmationRequiredError(self.confirmation_prompt(task))

        try:
            warning = await self._remove_image(task)
            try:
                await self.records.delete(task.id)
            except RecordStoreError as e:
                logger.error(f"Error deleting task record {task.id}: {e!r}")
                raise DatabaseError("Error deleting task record, please try again later.") from e
        except TaskFlowError:
            raise
        except Exception as e:
            logger.error(f"Unexpected error while deleting task {task.id}: {e!r}", exc_info=True)
            raise UnexpectedTaskError("An unexpected error occurred.") from e

        self.tasks = [t for t in self.tasks if t.id != task.id]
        message = f'Task "{task.title}" deleted.'
        if warning:
            message += " (but there was a problem deleting its image from storage)"
        logger.info(f"Deleted task {task.id}")
        return TaskActionResult(message=message, warning=warning, task=task)
