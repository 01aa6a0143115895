"""
nanoedit/generation/views.py

Image editing endpoints: create, status polling, provider callback
"""

import asyncio
import logging
from typing import Optional

from fastapi import Depends, Query, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.orm import Session

from . import generation_router
from .dependencies import get_imgbb_client, get_kie_client
from .orchestrator import CreditDeductionError, TaskOrchestrator
from .providers import (
    ImgBBClient,
    KieClient,
    ProviderConfigError,
    ProviderError,
)
from .schemas import (
    GenerateImageRequest,
    GenerateImageResponse,
    TaskStatusResponse,
)
from nanoedit.auth.dependencies import get_optional_user
from nanoedit.auth.models import User
from nanoedit.config import settings
from nanoedit.credits.service import CreditService
from nanoedit.database import get_db_session
from nanoedit.logging import RequestLogger
from nanoedit.schemas.errors import ErrorCode
from nanoedit.schemas.response import error_response
from nanoedit.tasks.models import ExternalProvider, TaskType
from nanoedit.tasks.service import TaskNotFoundError

logger = logging.getLogger(__name__)

TASK_DESCRIPTION = "AI image editing with Nano Banana"


def _client_ip(request: Request) -> str:
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def _error(
    status_code: int,
    code: ErrorCode,
    error: Optional[str] = None,
    details=None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=error_response(error=error, code=code, details=details),
    )


def _provider_error(exc: ProviderError) -> JSONResponse:
    return _error(
        exc.status_code,
        ErrorCode.PROVIDER_ERROR,
        error=exc.message,
        details=exc.details,
    )


@generation_router.post("", response_model=GenerateImageResponse)
async def generate_image(
    request: Request,
    user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db_session),
    kie: KieClient = Depends(get_kie_client),
    imgbb: ImgBBClient = Depends(get_imgbb_client),
):
    """Upload the source images, submit an edit job and bill the user"""
    log = RequestLogger(
        logger,
        getattr(request.state, "request_id", None),
        user.uuid if user else None,
    )
    log.info("Generate image request", client_ip=_client_ip(request))

    try:
        payload = GenerateImageRequest.model_validate(await request.json())
    except (ValueError, ValidationError) as e:
        log.warning(f"Invalid generate image body: {e}")
        return _error(
            status.HTTP_400_BAD_REQUEST,
            ErrorCode.VALIDATION_ERROR,
            error=(
                "Missing images or invalid format. "
                "Please provide an array of images."
            ),
        )

    if not payload.turnstile_token or len(payload.turnstile_token) < 10:
        log.warning("Missing turnstileToken, or invalid length")

    if not payload.images:
        return _error(
            status.HTTP_400_BAD_REQUEST,
            ErrorCode.VALIDATION_ERROR,
            error=(
                "Missing images or invalid format. "
                "Please provide an array of images."
            ),
        )

    if not payload.prompt or not payload.prompt.strip():
        return _error(
            status.HTTP_400_BAD_REQUEST,
            ErrorCode.VALIDATION_ERROR,
            error="Missing or empty prompt",
        )

    if user is None:
        return _error(status.HTTP_401_UNAUTHORIZED, ErrorCode.LOGIN_REQUIRED)

    credits_required = settings.IMAGE_EDIT_CREDITS
    if not CreditService(db).has_enough_credits(user.uuid, credits_required):
        return _error(
            status.HTTP_402_PAYMENT_REQUIRED,
            ErrorCode.INSUFFICIENT_CREDITS,
            error=(
                f"Insufficient credits. You need at least "
                f"{credits_required} credits for AI image editing."
            ),
        )

    if not kie.api_key:
        log.error("Missing KIE_API_KEY in environment variables")
        return _error(
            status.HTTP_500_INTERNAL_SERVER_ERROR, ErrorCode.CONFIG_ERROR
        )

    async def submit() -> str:
        log.info(f"Uploading {len(payload.images)} images to ImgBB")
        image_urls = await asyncio.gather(
            *(imgbb.upload(image) for image in payload.images)
        )
        return await kie.create_task(
            payload.prompt, list(image_urls), payload.aspect_ratio
        )

    orchestrator = TaskOrchestrator(db, kie)
    try:
        created = await orchestrator.create(
            user.uuid,
            TaskType.AIImageEdit,
            credits_required,
            submit,
            external_provider=ExternalProvider.KieAI,
            task_description=TASK_DESCRIPTION,
            task_input={
                "prompt": payload.prompt,
                "aspect_ratio": payload.aspect_ratio,
                "image_count": len(payload.images),
            },
        )
    except ProviderConfigError as e:
        log.error(f"Provider configuration error: {e}")
        return _error(
            status.HTTP_500_INTERNAL_SERVER_ERROR, ErrorCode.CONFIG_ERROR
        )
    except ProviderError as e:
        return _provider_error(e)
    except CreditDeductionError as e:
        log.error(f"Credit deduction failed for task {e.task_id}")
        return _error(
            status.HTTP_500_INTERNAL_SERVER_ERROR, ErrorCode.PAYMENT_FAILED
        )

    log = log.bind(
        task_id=created.task_id, external_task_id=created.external_task_id
    )
    log.info("Image editing task created")
    return GenerateImageResponse(
        taskId=created.external_task_id,
        recordNo=created.task_id,
    )


@generation_router.get(
    "/task-status",
    response_model=TaskStatusResponse,
    response_model_exclude_none=True,
)
async def get_task_status(
    taskId: Optional[str] = Query(None),
    recordNo: Optional[str] = Query(None),
    db: Session = Depends(get_db_session),
    kie: KieClient = Depends(get_kie_client),
):
    """Poll the provider and reconcile the task record"""
    if not taskId:
        return _error(
            status.HTTP_400_BAD_REQUEST,
            ErrorCode.VALIDATION_ERROR,
            error="Missing taskId parameter",
        )

    if not kie.api_key:
        logger.error("Missing KIE_API_KEY in environment variables")
        return _error(
            status.HTTP_500_INTERNAL_SERVER_ERROR, ErrorCode.CONFIG_ERROR
        )

    orchestrator = TaskOrchestrator(db, kie)
    try:
        result = await orchestrator.status(taskId, recordNo or None)
    except TaskNotFoundError:
        return _error(status.HTTP_404_NOT_FOUND, ErrorCode.TASK_NOT_FOUND)
    except ProviderError as e:
        return _provider_error(e)

    return TaskStatusResponse(
        success=result.success,
        status=result.status,
        editedImage=result.result_url,
        error=result.error,
        message=result.message,
    )


@generation_router.post("/callback")
async def provider_callback(request: Request):
    """Acknowledge provider push notifications; status is reconciled by
    polling, not here"""
    try:
        data = await request.json()
    except ValueError as e:
        logger.error(f"Error processing callback: {e}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_response("Failed to process callback"),
        )

    logger.info(
        "Received callback from Kie.ai", extra={"extra": {"payload": data}}
    )
    return {"success": True, "message": "Callback received successfully"}

