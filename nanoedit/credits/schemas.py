"""
nanoedit/credits/schemas.py - Balance and usage history schemas
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from nanoedit.schemas.response import Pagination


class CreditsResponse(BaseModel):
    left_credits: int


class UsageRecordResponse(BaseModel):
    """Usage record without provider ids or raw payloads"""

    model_config = ConfigDict(from_attributes=True)

    record_no: str
    task_type: str
    task_description: Optional[str] = None
    credits_consumed: int
    credits_remaining: int
    task_status: str
    external_provider: Optional[str] = None
    error_message: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: datetime


class UsageRecordListResponse(BaseModel):
    records: List[UsageRecordResponse]
    pagination: Pagination
