from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class TaskBase(BaseModel):
    title: str = Field(description="Task title")
    detail: str = Field(default="", description="Free-text task detail")
    is_complete: bool = Field(default=False, description="Whether the task is done")


class Task(TaskBase):
    id: UUID = Field(description="Task unique identifier")
    image_url: str | None = Field(default=None, description="Public URL of the task image")
    create_at: datetime = Field(description="Creation timestamp")
    update_at: datetime = Field(description="Last update timestamp")

    model_config = {"from_attributes": True}


class TaskActionResult(BaseModel):
    """Outcome of a create, edit, image removal or delete action."""

    message: str = Field(description="User-facing outcome message")
    warning: str | None = Field(
        default=None, description="Non-fatal problem encountered along the way"
    )
    task: Task | None = Field(default=None, description="The task after the action")
