"""
nanoedit/credits/views.py
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .schemas import (
    CreditsResponse,
    UsageRecordListResponse,
    UsageRecordResponse,
)
from .service import CreditService
from nanoedit.auth.dependencies import get_current_user
from nanoedit.auth.models import User
from nanoedit.database import get_db_session
from nanoedit.schemas.history import HistoryQueryParams, history_query_params
from nanoedit.schemas.response import (
    APIResponse,
    build_pagination,
    success_response,
)

credits_router = APIRouter(tags=["Credits"])


@credits_router.get("/credits", response_model=APIResponse[CreditsResponse])
def get_my_credits(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db_session),
):
    """Current balance of the caller"""
    left_credits = CreditService(db).get_user_credits(current_user.uuid)
    return success_response(data=CreditsResponse(left_credits=left_credits))


@credits_router.get(
    "/credit-usage-records",
    response_model=APIResponse[UsageRecordListResponse],
)
def list_my_usage_records(
    params: HistoryQueryParams = Depends(history_query_params),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db_session),
):
    """What the caller's credits were spent on, newest first"""
    records, total = CreditService(db).get_user_usage_records(
        current_user.uuid, params
    )

    return success_response(
        data=UsageRecordListResponse(
            records=[UsageRecordResponse.model_validate(r) for r in records],
            pagination=build_pagination(total, params.page, params.limit),
        ),
        message=f"Found {total} records",
    )
