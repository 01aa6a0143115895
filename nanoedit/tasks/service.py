"""
nanoedit/tasks/service.py - Task record store
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional, Tuple
from uuid import uuid4

from sqlalchemy import select, func
from sqlalchemy.orm import Session

from nanoedit.schemas.history import HistoryQueryParams
from .models import (
    ALLOWED_TRANSITIONS,
    ExternalProvider,
    Task,
    TaskStatus,
    TaskType,
)

logger = logging.getLogger(__name__)


class InvalidTaskTransition(ValueError):
    """Raised when a status change would move a task backwards"""

    def __init__(self, task_id: str, current: str, requested: str):
        self.task_id = task_id
        self.current = current
        self.requested = requested
        super().__init__(
            f"Task {task_id} cannot move from {current} to {requested}"
        )


class TaskNotFoundError(LookupError):
    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(f"Task {task_id} not found")


def generate_task_id(task_type: TaskType) -> str:
    return f"{TaskType(task_type).value}_{uuid4().hex}"


class TaskService:
    """Service for managing task records"""

    def __init__(self, db: Session):
        self.db = db

    def create_task_record(
        self,
        user_uuid: str,
        task_type: TaskType,
        credits_consumed: int,
        credits_remaining: int,
        external_task_id: Optional[str] = None,
        external_provider: Optional[ExternalProvider] = None,
    ) -> Task:
        """Insert a pending task; the caller supplies the balance snapshot"""
        if credits_consumed < 0:
            raise ValueError("credits_consumed must be >= 0")

        now = datetime.utcnow()
        task = Task(
            id=generate_task_id(task_type),
            user_uuid=user_uuid,
            task_type=TaskType(task_type).value,
            credits_consumed=credits_consumed,
            credits_remaining=max(0, credits_remaining),
            task_status=TaskStatus.Pending.value,
            external_task_id=external_task_id,
            external_provider=(
                ExternalProvider(external_provider).value
                if external_provider
                else None
            ),
            created_at=now,
            updated_at=now,
        )
        self.db.add(task)
        self.db.commit()
        self.db.refresh(task)

        logger.info(
            f"Task record created: {task.id}, user: {user_uuid}, "
            f"credits: {credits_consumed}"
        )
        return task

    def get_task(
        self, task_id: str, user_uuid: Optional[str] = None
    ) -> Optional[Task]:
        """Get task by ID, optionally filtered by owner"""
        query = select(Task).where(Task.id == task_id)

        if user_uuid:
            query = query.where(Task.user_uuid == user_uuid)

        return self.db.scalars(query).first()

    def get_task_by_external_id(
        self, external_task_id: str
    ) -> Optional[Task]:
        return self.db.scalars(
            select(Task).where(Task.external_task_id == external_task_id)
        ).first()

    def update_task_status(
        self,
        task_id: str,
        status: TaskStatus,
        error_message: Optional[str] = None,
    ) -> Task:
        """
        Move a task along the status lattice.

        Rewriting the current status is a no-op. Any transition outside
        ALLOWED_TRANSITIONS raises InvalidTaskTransition.
        """
        task = self.get_task(task_id)
        if not task:
            raise TaskNotFoundError(task_id)

        status = TaskStatus(status)
        current = TaskStatus(task.task_status)

        if status == current:
            return task

        if status not in ALLOWED_TRANSITIONS[current]:
            raise InvalidTaskTransition(task_id, current.value, status.value)

        task.task_status = status.value
        if error_message is not None:
            task.error_message = error_message
        task.updated_at = datetime.utcnow()

        self.db.commit()
        self.db.refresh(task)

        logger.info(f"Task status updated: {task_id}, status: {status.value}")
        return task

    def set_credits_remaining(
        self, task_id: str, credits_remaining: int
    ) -> Task:
        """Replace the provisional balance snapshot with the ledger's"""
        task = self.get_task(task_id)
        if not task:
            raise TaskNotFoundError(task_id)

        task.credits_remaining = max(0, credits_remaining)
        self.db.commit()
        self.db.refresh(task)
        return task

    def mark_task_as_processing(self, task_id: str) -> Task:
        return self.update_task_status(task_id, TaskStatus.Processing)

    def mark_task_as_success(self, task_id: str) -> Task:
        return self.update_task_status(task_id, TaskStatus.Success)

    def mark_task_as_failed(self, task_id: str, error_message: str) -> Task:
        return self.update_task_status(
            task_id, TaskStatus.Failed, error_message=error_message
        )

    def mark_task_as_cancelled(self, task_id: str) -> Task:
        return self.update_task_status(task_id, TaskStatus.Cancelled)

    def get_user_tasks(
        self, user_uuid: str, params: HistoryQueryParams
    ) -> Tuple[List[Task], int]:
        """Paginated tasks for a user, newest first"""
        base_query = select(Task).where(Task.user_uuid == user_uuid)

        if params.task_type:
            base_query = base_query.where(Task.task_type == params.task_type)

        if params.task_status:
            base_query = base_query.where(
                Task.task_status == params.task_status
            )

        if params.date_from:
            base_query = base_query.where(Task.created_at >= params.date_from)

        if params.date_to:
            base_query = base_query.where(Task.created_at <= params.date_to)

        total = self.db.scalar(
            select(func.count()).select_from(base_query.subquery())
        )

        tasks = self.db.scalars(
            base_query.order_by(Task.created_at.desc())
            .limit(params.limit)
            .offset(params.offset)
        ).all()

        return list(tasks), total or 0

    def expire_stale_tasks(
        self, older_than_minutes: int, reason: str = "Task timed out"
    ) -> List[str]:
        """Fail non-terminal tasks created before the cutoff"""
        cutoff = datetime.utcnow() - timedelta(minutes=older_than_minutes)

        stale = self.db.scalars(
            select(Task).where(
                Task.task_status.in_(
                    [TaskStatus.Pending.value, TaskStatus.Processing.value]
                ),
                Task.created_at < cutoff,
            )
        ).all()

        now = datetime.utcnow()
        for task in stale:
            task.task_status = TaskStatus.Failed.value
            task.error_message = reason
            task.updated_at = now

        self.db.commit()

        if stale:
            logger.info(f"Expired {len(stale)} stale tasks")
        return [task.id for task in stale]
