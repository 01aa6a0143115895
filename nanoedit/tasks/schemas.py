"""
nanoedit/tasks/schemas.py - Task history response schemas
"""

from pydantic import BaseModel, ConfigDict
from typing import Optional, List
from datetime import datetime

from nanoedit.schemas.response import Pagination


class TaskResponse(BaseModel):
    """Single task as shown in the history page"""

    model_config = ConfigDict(from_attributes=True)

    id: str
    task_type: str
    task_status: str
    credits_consumed: int
    credits_remaining: int
    external_provider: Optional[str] = None
    error_message: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class TaskListResponse(BaseModel):
    """Page of tasks"""

    tasks: List[TaskResponse]
    pagination: Pagination
