"""
nanoedit/tasks/models.py - One row per user-initiated generation request
"""

from enum import Enum
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Integer, Text, DateTime, Index
from datetime import datetime
from typing import Optional

from nanoedit.database import Base


class TaskType(str, Enum):
    AIImageEdit = "ai_image_edit"
    AITextGeneration = "ai_text_generation"
    AIVideoGeneration = "ai_video_generation"


class TaskStatus(str, Enum):
    Pending = "pending"
    Processing = "processing"
    Success = "success"
    Failed = "failed"
    Cancelled = "cancelled"


class ExternalProvider(str, Enum):
    KieAI = "kie.ai"
    OpenAI = "openai"
    Anthropic = "anthropic"


TERMINAL_STATUSES = frozenset(
    {TaskStatus.Success, TaskStatus.Failed, TaskStatus.Cancelled}
)

# Forward-only lattice; nothing returns to pending
ALLOWED_TRANSITIONS = {
    TaskStatus.Pending: frozenset(
        {
            TaskStatus.Processing,
            TaskStatus.Success,
            TaskStatus.Failed,
            TaskStatus.Cancelled,
        }
    ),
    TaskStatus.Processing: frozenset(
        {TaskStatus.Success, TaskStatus.Failed, TaskStatus.Cancelled}
    ),
    TaskStatus.Success: frozenset(),
    TaskStatus.Failed: frozenset(),
    TaskStatus.Cancelled: frozenset(),
}


class Task(Base):
    """Append-only audit record of a generation request"""

    __tablename__ = "tasks"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    user_uuid: Mapped[str] = mapped_column(String(36), index=True)

    task_type: Mapped[str] = mapped_column(String(50))
    credits_consumed: Mapped[int] = mapped_column(Integer, default=0)
    credits_remaining: Mapped[int] = mapped_column(Integer, default=0)
    task_status: Mapped[str] = mapped_column(
        String(20), default=TaskStatus.Pending.value
    )

    external_task_id: Mapped[Optional[str]] = mapped_column(
        String(255), unique=True, index=True
    )
    external_provider: Mapped[Optional[str]] = mapped_column(String(50))
    error_message: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow
    )

    __table_args__ = (
        Index("idx_tasks_user_created", "user_uuid", "created_at"),
        Index("idx_tasks_status_created", "task_status", "created_at"),
    )

    @property
    def is_terminal(self) -> bool:
        return TaskStatus(self.task_status) in TERMINAL_STATUSES

    def __repr__(self) -> str:
        return (
            f"<Task(id='{self.id}', type='{self.task_type}', "
            f"status='{self.task_status}')>"
        )
