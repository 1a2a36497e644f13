"""Create and edit logic for tasks and their images.

Both forms hold an explicit ``FormPhase`` and an image sub-state that is
exactly one of ``NoImage``, ``OldImage`` or ``StagedImage``. Every
multi-step flow runs its remote calls strictly in sequence and stops at
the first failure, except for the best-effort removal of a replaced
image.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from uuid import UUID

from app.config import settings
from app.models.base import utcnow
from app.schemas.task import Task, TaskActionResult
from app.services.errors import (
    ConfirmationRequiredError,
    DatabaseError,
    FormStateError,
    ImageStorageError,
    ImageUploadError,
    TaskFlowError,
    TaskNotFoundError,
    TaskValidationError,
    UnexpectedTaskError,
)
from app.services.records import RecordStore, RecordStoreError
from app.services.storage import (
    BlobStore,
    BlobStoreError,
    create_image_key,
    last_path_segment,
    parse_blob_key,
    replacement_image_key,
)

logger = logging.getLogger(__name__)

REMOVE_IMAGE_PROMPT = "Do you want to remove the current image?"


class FormPhase(str, Enum):
    LOADING = "loading"
    READY = "ready"
    SUBMITTING = "submitting"
    SUBMITTED = "submitted"


@dataclass(frozen=True)
class ImageUpload:
    """An image chosen locally and not yet sent to the blob store."""

    filename: str
    content: bytes
    content_type: str | None = None


@dataclass(frozen=True)
class NoImage:
    pass


@dataclass(frozen=True)
class OldImage:
    url: str


@dataclass(frozen=True)
class StagedImage:
    upload: ImageUpload
    previous_url: str | None = None


ImageState = NoImage | OldImage | StagedImage


# =============================================================================
# Shared Helpers
# =============================================================================


def require_title(title: str) -> None:
    if not title or not title.strip():
        raise TaskValidationError("Please enter a task title.", details={"field": "title"})


def validate_image(upload: ImageUpload) -> None:
    if upload.content_type not in settings.allowed_image_types:
        raise TaskValidationError(
            f"Invalid file type. Allowed types: {', '.join(settings.allowed_image_types)}",
            details={"field": "image"},
        )
    if len(upload.content) > settings.max_image_size_bytes:
        raise TaskValidationError(
            f"File too large. Maximum size: {settings.max_image_size_bytes // (1024*1024)} MB",
            details={"field": "image"},
        )


async def upload_image(blobs: BlobStore, key: str, upload: ImageUpload) -> str:
    """Upload ``upload`` under ``key`` and return its public URL."""
    try:
        await blobs.upload(key, upload.content, content_type=upload.content_type)
        return await blobs.get_public_url(key)
    except BlobStoreError as e:
        logger.error(f"Image upload failed for key={key}: {e!r}")
        raise ImageUploadError(f"Error uploading image: {e}") from e


def _unexpected(action: str, exc: Exception) -> UnexpectedTaskError:
    logger.error(f"Unexpected error while {action}: {exc!r}", exc_info=True)
    return UnexpectedTaskError("An unexpected error occurred.")


# =============================================================================
# Create
# =============================================================================


class CreateTaskForm:
    """Form state and submit flow for a new task."""

    def __init__(
        self,
        records: RecordStore,
        blobs: BlobStore,
        title: str = "",
        detail: str = "",
        is_complete: bool = False,
    ):
        self.records = records
        self.blobs = blobs
        self.title = title
        self.detail = detail
        self.is_complete = is_complete
        self.image: ImageState = NoImage()
        self.phase = FormPhase.READY

    def select_image(self, upload: ImageUpload) -> None:
        validate_image(upload)
        self.image = StagedImage(upload=upload)

    def clear_image(self) -> None:
        self.image = NoImage()

    def reset(self) -> None:
        self.title = ""
        self.detail = ""
        self.is_complete = False
        self.image = NoImage()

    async def submit(self) -> TaskActionResult:
        if self.phase is not FormPhase.READY:
            raise FormStateError("This task is already being saved.")
        require_title(self.title)

        self.phase = FormPhase.SUBMITTING
        try:
            image_url = None
            if isinstance(self.image, StagedImage):
                key = create_image_key(self.image.upload.filename)
                image_url = await upload_image(self.blobs, key, self.image.upload)

            try:
                task = await self.records.insert(
                    {
                        "title": self.title,
                        "detail": self.detail,
                        "is_complete": self.is_complete,
                        "image_url": image_url,
                    }
                )
            except RecordStoreError as e:
                if image_url:
                    logger.warning(f"Insert failed after upload, image left orphaned: {image_url}")
                raise DatabaseError("Error saving the task.") from e
        except TaskFlowError:
            self.phase = FormPhase.READY
            raise
        except Exception as e:
            self.phase = FormPhase.READY
            raise _unexpected("creating task", e) from e

        logger.info(f"Created task {task.id} (image={'yes' if task.image_url else 'no'})")
        self.reset()
        self.phase = FormPhase.READY
        return TaskActionResult(message="Task saved.", task=task)


# =============================================================================
# Edit
# =============================================================================


class EditTaskForm:
    """Form state and flows for editing one existing task.

    Use ``EditTaskForm.load`` to build a ready form. A new image is only
    staged locally until ``submit``; the current image can be removed on
    its own with ``remove_old_image``.
    """

    def __init__(self, task_id: UUID, records: RecordStore, blobs: BlobStore):
        self.task_id = task_id
        self.records = records
        self.blobs = blobs
        self.task: Task | None = None
        self.title = ""
        self.detail = ""
        self.is_complete = False
        self.image: ImageState = NoImage()
        self.phase = FormPhase.LOADING

    @classmethod
    async def load(cls, task_id: UUID, records: RecordStore, blobs: BlobStore) -> "EditTaskForm":
        form = cls(task_id, records, blobs)
        try:
            rows = await records.select(task_id=task_id)
        except RecordStoreError as e:
            logger.error(f"Failed to fetch task {task_id}: {e!r}")
            raise DatabaseError(f"Error fetching task details: {e}") from e

        if not rows:
            raise TaskNotFoundError("Task not found.")

        form._populate(rows[0])
        form.phase = FormPhase.READY
        return form

    def _populate(self, task: Task) -> None:
        self.task = task
        self.title = task.title
        self.detail = task.detail
        self.is_complete = task.is_complete
        self.image = OldImage(url=task.image_url) if task.image_url else NoImage()

    def _image_key(self, url: str) -> str | None:
        return parse_blob_key(url, self.blobs.bucket) or last_path_segment(url)

    @property
    def original_image_url(self) -> str | None:
        if isinstance(self.image, OldImage):
            return self.image.url
        if isinstance(self.image, StagedImage):
            return self.image.previous_url
        return None

    def stage_image(self, upload: ImageUpload) -> None:
        if self.phase is not FormPhase.READY:
            raise FormStateError("The form is not ready for changes.")
        validate_image(upload)
        self.image = StagedImage(upload=upload, previous_url=self.original_image_url)

    def unstage_image(self) -> None:
        if isinstance(self.image, StagedImage):
            previous = self.image.previous_url
            self.image = OldImage(url=previous) if previous else NoImage()

    async def remove_old_image(self, confirmed: bool) -> TaskActionResult:
        if self.phase is not FormPhase.READY:
            raise FormStateError("The form is not ready for changes.")
        if isinstance(self.image, StagedImage):
            raise FormStateError("Discard the new image before removing the current one.")
        if not isinstance(self.image, OldImage):
            raise FormStateError("This task has no image to remove.")
        if not confirmed:
            raise ConfirmationRequiredError(REMOVE_IMAGE_PROMPT)

        try:
            key = self._image_key(self.image.url)
            if key is None:
                logger.warning(f"Cannot parse storage key from {self.image.url}, skipping blob removal")
            else:
                try:
                    await self.blobs.remove([key])
                except BlobStoreError as e:
                    logger.error(f"Failed to remove image {key} of task {self.task_id}: {e!r}")
                    raise ImageStorageError(f"Error removing the image: {e}") from e

            try:
                updated = await self.records.update(
                    self.task_id, {"image_url": None, "update_at": utcnow()}
                )
            except RecordStoreError as e:
                logger.error(f"Failed to clear image of task {self.task_id}: {e!r}")
                raise DatabaseError(f"Error updating the database: {e}") from e
        except TaskFlowError:
            raise
        except Exception as e:
            raise _unexpected("removing image", e) from e

        if updated is None:
            raise TaskNotFoundError("Task not found.")

        logger.info(f"Removed image from task {self.task_id}")
        self._populate(updated)
        return TaskActionResult(message="Image removed.", task=updated)

    async def _discard_previous(self, url: str) -> str | None:
        key = self._image_key(url)
        if key is None:
            logger.warning(f"Cannot parse storage key from {url}, previous image left in place")
            return None
        try:
            await self.blobs.remove([key])
        except BlobStoreError as e:
            logger.warning(f"Failed to remove previous image {key} of task {self.task_id}: {e!r}")
            return "The previous image could not be removed from storage."
        return None

    async def submit(self) -> TaskActionResult:
        if self.phase is not FormPhase.READY:
            raise FormStateError("This task cannot be saved right now.")
        require_title(self.title)

        self.phase = FormPhase.SUBMITTING
        warning = None
        try:
            image_url = self.original_image_url
            if isinstance(self.image, StagedImage):
                staged = self.image
                if staged.previous_url:
                    # Old image goes first; a failed upload below leaves the
                    # record pointing at a removed blob.
                    warning = await self._discard_previous(staged.previous_url)
                key = replacement_image_key(self.task_id, staged.upload.filename)
                image_url = await upload_image(self.blobs, key, staged.upload)

            try:
                updated = await self.records.update(
                    self.task_id,
                    {
                        "title": self.title,
                        "detail": self.detail,
                        "is_complete": self.is_complete,
                        "image_url": image_url,
                        "update_at": utcnow(),
                    },
                )
            except RecordStoreError as e:
                logger.error(f"Failed to update task {self.task_id}: {e!r}")
                raise DatabaseError(f"Error updating the task: {e}") from e

            if updated is None:
                raise TaskNotFoundError("Task not found.")
        except TaskFlowError:
            self.phase = FormPhase.READY
            raise
        except Exception as e:
            self.phase = FormPhase.READY
            raise _unexpected("updating task", e) from e

        logger.info(f"Updated task {self.task_id}")
        self._populate(updated)
        self.phase = FormPhase.SUBMITTED
        return TaskActionResult(message="Task updated.", warning=warning, task=updated)
