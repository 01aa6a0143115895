"""Celery application for background maintenance"""

from celery import Celery, Task
from celery.signals import task_prerun, task_postrun, task_failure
from nanoedit.config import settings
import logging

logger = logging.getLogger(__name__)


class MaintenanceTask(Task):
    """Base task with retries and connection cleanup"""

    autoretry_for = (Exception,)
    retry_kwargs = {"max_retries": 3, "countdown": 5}
    retry_backoff = True
    retry_backoff_max = 600
    retry_jitter = True

    def after_return(self, status, retval, task_id, args, kwargs, einfo):
        """Return pooled DB connections after each run"""
        from sqlalchemy.orm import close_all_sessions

        close_all_sessions()


def create_celery() -> Celery:
    """Create the Celery app used by workers and beat"""

    celery_app = Celery(
        "nanoedit",
        broker=settings.CELERY_BROKER_URL,
        backend=settings.CELERY_RESULT_BACKEND,
        task_cls=MaintenanceTask,
    )

    celery_app.conf.update(
        # Task execution
        task_serializer="json",
        accept_content=["json"],
        result_serializer="json",
        timezone="UTC",
        enable_utc=True,
        task_always_eager=settings.CELERY_TASK_ALWAYS_EAGER,

        task_acks_late=True,
        worker_prefetch_multiplier=4,
        worker_max_tasks_per_child=1000,

        # Results
        result_expires=3600,

        # Broker connection
        broker_connection_retry_on_startup=True,
        broker_connection_retry=True,
        broker_connection_max_retries=10,

        # Task routing
        task_routes=settings.CELERY_TASK_ROUTES,
        task_default_queue=settings.CELERY_TASK_DEFAULT_QUEUE,
        task_queues=settings.CELERY_TASK_QUEUES,
        task_create_missing_queues=settings.CELERY_TASK_CREATE_MISSING_QUEUES,

        # Beat schedule
        beat_schedule=settings.CELERY_BEAT_SCHEDULE,

        worker_redirect_stdouts=False,

        # The reaper is a single UPDATE sweep
        task_soft_time_limit=120,
        task_time_limit=300,
    )

    celery_app.autodiscover_tasks(["nanoedit.tasks"])

    return celery_app


@task_prerun.connect
def task_prerun_handler(task_id, task, *args, **kwargs):
    """Log task start"""
    logger.info(f"Task {task.name} [{task_id}] started")


@task_postrun.connect
def task_postrun_handler(task_id, task, retval, *args, **kwargs):
    """Log task completion"""
    logger.info(f"Task {task.name} [{task_id}] completed")


@task_failure.connect
def task_failure_handler(task_id, exception, *args, **kwargs):
    """Log task failure"""
    logger.error(f"Task [{task_id}] failed: {exception}")
