"""
nanoedit/tasks/views.py
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .service import TaskService
from .schemas import TaskResponse, TaskListResponse
from nanoedit.auth.dependencies import get_current_user
from nanoedit.auth.models import User
from nanoedit.database import get_db_session
from nanoedit.schemas.history import HistoryQueryParams, history_query_params
from nanoedit.schemas.response import (
    APIResponse,
    build_pagination,
    success_response,
)

tasks_router = APIRouter(prefix="/tasks", tags=["Tasks"])


@tasks_router.get("", response_model=APIResponse[TaskListResponse])
def list_my_tasks(
    params: HistoryQueryParams = Depends(history_query_params),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db_session),
):
    """List the caller's tasks, newest first"""
    service = TaskService(db)
    tasks, total = service.get_user_tasks(current_user.uuid, params)

    return success_response(
        data=TaskListResponse(
            tasks=[TaskResponse.model_validate(t) for t in tasks],
            pagination=build_pagination(total, params.page, params.limit),
        ),
        message=f"Found {total} tasks",
    )
