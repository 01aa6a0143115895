"""
nanoedit/schemas/history.py - Query parameters shared by history listings
"""

from datetime import datetime
from typing import Optional

from fastapi import Query
from pydantic import BaseModel, Field

from nanoedit.config import settings


class HistoryQueryParams(BaseModel):
    task_type: Optional[str] = None
    task_status: Optional[str] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1, le=100)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def history_query_params(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1),
    task_type: Optional[str] = Query(None),
    task_status: Optional[str] = Query(None),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
) -> HistoryQueryParams:
    """Parse listing filters; oversized page sizes are clamped, not rejected"""
    return HistoryQueryParams(
        page=page,
        limit=min(limit, settings.TASKS_PAGE_LIMIT_MAX),
        task_type=task_type or None,
        task_status=task_status or None,
        date_from=date_from,
        date_to=date_to,
    )
