"""
nanoedit/tasks/tasks.py

Background maintenance for task records
"""

from celery import shared_task
from celery.utils.log import get_task_logger

from nanoedit.config import settings
from nanoedit.credits.service import CreditService
from nanoedit.database import db_context
from nanoedit.tasks.models import TaskStatus
from nanoedit.tasks.service import TaskService

logger = get_task_logger(__name__)

EXPIRED_MESSAGE = "Task timed out"


@shared_task(name="maintenance:expire_stale_tasks")
def expire_stale_tasks(minutes: int = None):
    """
    Periodic task that fails tasks nobody finished polling

    Args:
        minutes: Age after which a pending or processing task is expired
            (default: TASK_EXPIRY_MINUTES)
    """
    minutes = minutes or settings.TASK_EXPIRY_MINUTES
    with db_context() as session:
        expired = TaskService(session).expire_stale_tasks(
            minutes, reason=EXPIRED_MESSAGE
        )

        credits = CreditService(session)
        for task_id in expired:
            credits.update_usage_record_status(
                task_id, TaskStatus.Failed, error_message=EXPIRED_MESSAGE
            )

    logger.info(f"Expired {len(expired)} tasks older than {minutes} minutes")
    return {
        "success": True,
        "expired_count": len(expired),
        "task_ids": expired,
    }
