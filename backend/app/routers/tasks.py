from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status

from app.database import get_record_store
from app.schemas import StandardError, Task, TaskActionResult
from app.services.records import RecordStore
from app.services.storage import BlobStore, get_blob_store
from app.services.task_forms import CreateTaskForm, EditTaskForm, ImageUpload
from app.services.task_list import TaskListView

router = APIRouter()


async def _read_upload(file: UploadFile | None) -> ImageUpload | None:
    if file is None or not file.filename:
        return None
    content = await file.read()
    return ImageUpload(filename=file.filename, content=content, content_type=file.content_type)


@router.get(
    "/tasks",
    response_model=list[Task],
    summary="List tasks",
    description="Retrieve all tasks, most recently created first.",
    responses={
        500: {"model": StandardError, "description": "Database error"},
    },
)
async def list_tasks(
    records: RecordStore = Depends(get_record_store),
    blobs: BlobStore = Depends(get_blob_store),
):
    view = TaskListView(records, blobs)
    return await view.refresh()


@router.post(
    "/tasks",
    response_model=TaskActionResult,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new task",
    description="Create a task, uploading the optional image before the record is inserted.",
    responses={
        400: {"model": StandardError, "description": "Validation error"},
        500: {"model": StandardError, "description": "Database error"},
        502: {"model": StandardError, "description": "Image upload failed"},
    },
)
async def create_task(
    title: str = Form(default=""),
    detail: str = Form(default=""),
    is_complete: bool = Form(default=False),
    image: UploadFile | None = File(default=None),
    records: RecordStore = Depends(get_record_store),
    blobs: BlobStore = Depends(get_blob_store),
):
    form = CreateTaskForm(records, blobs, title=title, detail=detail, is_complete=is_complete)
    upload = await _read_upload(image)
    if upload is not None:
        form.select_image(upload)
    return await form.submit()


@router.get(
    "/tasks/{task_id}",
    response_model=Task,
    summary="Get task by ID",
    description="Load a single task for editing.",
    responses={
        404: {"model": StandardError, "description": "Task not found"},
        500: {"model": StandardError, "description": "Database error"},
    },
)
async def get_task(
    task_id: UUID,
    records: RecordStore = Depends(get_record_store),
    blobs: BlobStore = Depends(get_blob_store),
):
    form = await EditTaskForm.load(task_id, records, blobs)
    return form.task


@router.put(
    "/tasks/{task_id}",
    response_model=TaskActionResult,
    summary="Update task",
    description="Update a task's fields, optionally replacing its image.",
    responses={
        400: {"model": StandardError, "description": "Validation error"},
        404: {"model": StandardError, "description": "Task not found"},
        500: {"model": StandardError, "description": "Database error"},
        502: {"model": StandardError, "description": "Image upload failed"},
    },
)
async def update_task(
    task_id: UUID,
    title: str = Form(default=""),
    detail: str = Form(default=""),
    is_complete: bool = Form(default=False),
    image: UploadFile | None = File(default=None),
    records: RecordStore = Depends(get_record_store),
    blobs: BlobStore = Depends(get_blob_store),
):
    form = await EditTaskForm.load(task_id, records, blobs)
    form.title = title
    form.detail = detail
    form.is_complete = is_complete

    upload = await _read_upload(image)
    if upload is not None:
        form.stage_image(upload)
    return await form.submit()


@router.delete(
    "/tasks/{task_id}/image",
    response_model=TaskActionResult,
    summary="Remove task image",
    description="Remove the task's current image from storage and clear its reference.",
    responses={
        404: {"model": StandardError, "description": "Task not found"},
        409: {"model": StandardError, "description": "Confirmation required or no image"},
        500: {"model": StandardError, "description": "Database error"},
        502: {"model": StandardError, "description": "Storage error"},
    },
)
async def remove_task_image(
    task_id: UUID,
    confirm: bool = Query(default=False, description="Confirm the removal"),
    records: RecordStore = Depends(get_record_store),
    blobs: BlobStore = Depends(get_blob_store),
):
    form = await EditTaskForm.load(task_id, records, blobs)
    return await form.remove_old_image(confirmed=confirm)


@router.delete(
    "/tasks/{task_id}",
    response_model=TaskActionResult,
    summary="Delete task",
    description="Delete a task and, on a best-effort basis, its image.",
    responses={
        404: {"model": StandardError, "description": "Task not found"},
        409: {"model": StandardError, "description": "Confirmation required"},
        500: {"model": StandardError, "description": "Database error"},
    },
)
async def delete_task(
    task_id: UUID,
    confirm: bool = Query(default=False, description="Confirm the deletion"),
    records: RecordStore = Depends(get_record_store),
    blobs: BlobStore = Depends(get_blob_store),
):
    view = TaskListView(records, blobs)
    task = await view.fetch_one(task_id)
    return await view.delete(task, confirmed=confirm)
