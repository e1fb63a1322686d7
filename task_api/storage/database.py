"""Relational task store using the SQLAlchemy async engine.

Works with any async driver SQLAlchemy supports, e.g.
``mysql+aiomysql://``, ``postgresql+asyncpg://`` or ``sqlite+aiosqlite://``.
Every mutation is one short transaction around a single-row statement.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    delete,
    func,
    select,
    update,
)
from sqlalchemy.dialects import mysql
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from ..models.task import Task, TaskPatch, TaskStatus, utcnow
from .base import clean_title

logger = logging.getLogger(__name__)

# MySQL DATETIME defaults to whole seconds
_Timestamp = DateTime(timezone=True).with_variant(mysql.DATETIME(fsp=6), "mysql")


class Base(DeclarativeBase):
    pass


class TaskRecord(Base):
    __tablename__ = "tasks"
    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'in-progress', 'completed')",
            name="ck_tasks_status",
        ),
        Index("idx_tasks_status", "status"),
        Index("idx_tasks_created_at", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False, default="")
    status = Column(String(20), nullable=False, default=TaskStatus.PENDING.value)
    created_at = Column(_Timestamp, nullable=False, default=utcnow)
    updated_at = Column(_Timestamp, nullable=False, default=utcnow)


def _aware(value: datetime) -> datetime:
    # SQLite and MySQL hand back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class DatabaseTaskStore:
    """Task store persisted in a relational database."""

    name = "database"

    def __init__(self, database_url: str):
        self._engine = create_async_engine(
            database_url,
            echo=False,
            pool_pre_ping=True,
            pool_recycle=3600,
        )
        self._session_factory = async_sessionmaker(
            self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    async def initialize(self) -> None:
        """Create the ``tasks`` table if it does not exist."""
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info(f"Database task store ready ({self._engine.url.render_as_string(hide_password=True)})")

    async def close(self) -> None:
        await self._engine.dispose()
        logger.info("Database task store closed")

    @staticmethod
    def _record_to_task(record: TaskRecord) -> Task:
        return Task(
            id=record.id,
            title=record.title,
            description=record.description or "",
            status=TaskStatus(record.status),
            created_at=_aware(record.created_at),
            updated_at=_aware(record.updated_at),
        )

    @staticmethod
    def _newest_first(query):
        return query.order_by(TaskRecord.created_at.desc(), TaskRecord.id.desc())

    async def list_all(self) -> List[Task]:
        async with self._session_factory() as session:
            result = await session.execute(self._newest_first(select(TaskRecord)))
            return [self._record_to_task(record) for record in result.scalars()]

    async def get_by_id(self, task_id: int) -> Optional[Task]:
        async with self._session_factory() as session:
            record = await session.get(TaskRecord, task_id)
            return self._record_to_task(record) if record is not None else None

    async def list_by_status(self, status: TaskStatus) -> List[Task]:
        query = select(TaskRecord).where(TaskRecord.status == status.value)
        async with self._session_factory() as session:
            result = await session.execute(self._newest_first(query))
            return [self._record_to_task(record) for record in result.scalars()]

    async def create(self, title: str, description: str = "", status: TaskStatus = TaskStatus.PENDING) -> Task:
        title = clean_title(title)
        now = utcnow()

        async with self._session_factory() as session:
            async with session.begin():
                record = TaskRecord(
                    title=title,
                    description=description or "",
                    status=status.value,
                    created_at=now,
                    updated_at=now,
                )
                session.add(record)
            task = self._record_to_task(record)

        logger.info(f"Created task {task.id}: {task.title}")
        return task

    async def update(self, task_id: int, patch: TaskPatch) -> Optional[Task]:
        if patch.title is not None:
            clean_title(patch.title)

        values = patch.changes()
        values["updated_at"] = utcnow()

        async with self._session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    update(TaskRecord)
                    .where(TaskRecord.id == task_id)
                    .values(**values)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 0:
                    logger.warning(f"Task {task_id} not found for update")
                    return None
                record = await session.get(TaskRecord, task_id, populate_existing=True)
                task = self._record_to_task(record)

        logger.info(f"Updated task {task_id}: {sorted(patch.changes())}")
        return task

    async def delete(self, task_id: int) -> bool:
        async with self._session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    delete(TaskRecord)
                    .where(TaskRecord.id == task_id)
                    .execution_options(synchronize_session=False)
                )

        if result.rowcount == 0:
            logger.warning(f"Task {task_id} not found for deletion")
            return False
        logger.info(f"Deleted task {task_id}")
        return True

    async def count(self) -> int:
        async with self._session_factory() as session:
            result = await session.execute(select(func.count()).select_from(TaskRecord))
            return result.scalar_one()
