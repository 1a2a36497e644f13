"""Record store access for the task table.

The form and list logic only talk to the ``RecordStore`` protocol, so a
test double can stand in for the database.
"""

import logging
from typing import Any, Protocol
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.task import Task as TaskModel
from app.schemas.task import Task

logger = logging.getLogger(__name__)

ORDERABLE_COLUMNS = {"create_at", "update_at", "title"}


class RecordStoreError(Exception):
    """Exception raised when the record store rejects an operation."""

    pass


class RecordStore(Protocol):
    async def insert(self, fields: dict[str, Any]) -> Task: ...

    async def select(
        self,
        task_id: UUID | None = None,
        order_by: str = "create_at",
        descending: bool = True,
    ) -> list[Task]: ...

    async def update(self, task_id: UUID, fields: dict[str, Any]) -> Task | None: ...

    async def delete(self, task_id: UUID) -> None: ...


class SqlTaskRecordStore:
    """RecordStore backed by the ``task_tb`` table.

    Every call commits on its own, so each operation is one independent
    remote call from the caller's point of view.
    """

    def __init__(self, db: Session):
        self.db = db

    def _fail(self, operation: str, exc: SQLAlchemyError) -> RecordStoreError:
        self.db.rollback()
        logger.error(f"Record store {operation} failed: {exc!r}")
        return RecordStoreError(f"{operation} failed: {exc}")

    async def insert(self, fields: dict[str, Any]) -> Task:
        try:
            row = TaskModel(**fields)
            self.db.add(row)
            self.db.commit()
            self.db.refresh(row)
        except SQLAlchemyError as e:
            raise self._fail("insert", e) from e
        return Task.model_validate(row)

    async def select(
        self,
        task_id: UUID | None = None,
        order_by: str = "create_at",
        descending: bool = True,
    ) -> list[Task]:
        if order_by not in ORDERABLE_COLUMNS:
            raise RecordStoreError(f"Cannot order by {order_by!r}")

        column = getattr(TaskModel, order_by)
        stmt = select(TaskModel).order_by(column.desc() if descending else column.asc())
        if task_id is not None:
            stmt = stmt.where(TaskModel.id == task_id)

        try:
            rows = self.db.scalars(stmt).all()
        except SQLAlchemyError as e:
            raise self._fail("select", e) from e
        return [Task.model_validate(row) for row in rows]

    async def update(self, task_id: UUID, fields: dict[str, Any]) -> Task | None:
        try:
            result = self.db.execute(
                update(TaskModel).where(TaskModel.id == task_id).values(**fields)
            )
            self.db.commit()
            if result.rowcount == 0:
                return None
            row = self.db.get(TaskModel, task_id, populate_existing=True)
        except SQLAlchemyError as e:
            raise self._fail("update", e) from e
        return Task.model_validate(row) if row else None

    async def delete(self, task_id: UUID) -> None:
        try:
            self.db.execute(delete(TaskModel).where(TaskModel.id == task_id))
            self.db.commit()
        except SQLAlchemyError as e:
            raise self._fail("delete", e) from e
