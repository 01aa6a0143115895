"""
nanoedit/generation/orchestrator.py

Task lifecycle for external generation jobs: submit, record, bill,
then reconcile provider state on every status poll.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from sqlalchemy.orm import Session

from nanoedit.credits.service import CreditService
from nanoedit.tasks.models import ExternalProvider, Task, TaskStatus, TaskType
from nanoedit.tasks.service import TaskNotFoundError, TaskService
from .providers import KieClient, ProviderError, parse_record

logger = logging.getLogger(__name__)

GENERATING_STATES = frozenset({"running", "pending", "queuing", "waiting"})
SUCCESS_STATES = frozenset({"succeeded", "success"})
FAILED_STATES = frozenset({"failed", "fail"})

DEDUCTION_FAILED_MESSAGE = "Failed to deduct credits"

ProviderSubmitFn = Callable[[], Awaitable[str]]


class ClientStatus(str, Enum):
    SUCCESS = "SUCCESS"
    GENERATING = "GENERATING"
    FAILED = "FAILED"


class CreditDeductionError(Exception):
    """The ledger refused the debit after the task row was written"""

    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(f"Failed to deduct credits for task {task_id}")


@dataclass
class CreatedTask:
    task_id: str
    external_task_id: str
    credits_remaining: int


@dataclass
class TaskStatusResult:
    status: str
    result_url: Optional[str] = None
    error: Optional[str] = None
    message: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.status != ClientStatus.FAILED.value


class TaskOrchestrator:
    def __init__(self, db: Session, kie: Optional[KieClient] = None):
        self.db = db
        self.kie = kie
        self.tasks = TaskService(db)
        self.credits = CreditService(db)

    async def create(
        self,
        user_uuid: str,
        task_type: TaskType,
        credits_required: int,
        provider_submit_fn: ProviderSubmitFn,
        external_provider: ExternalProvider = ExternalProvider.KieAI,
        task_description: Optional[str] = None,
        task_input: Any = None,
    ) -> CreatedTask:
        """
        Submit a job and record it.

        The caller has authenticated the user and pre-checked the balance.
        A failing submit propagates and leaves no rows behind. When the
        debit fails the task ends up failed and CreditDeductionError is
        raised; the provider job keeps running.
        """
        external_task_id = await provider_submit_fn()

        if self.tasks.get_task_by_external_id(external_task_id):
            raise ProviderError(
                "Provider returned a task id that is already recorded",
                details={"taskId": external_task_id},
            )

        # Provisional until the debit reports the real balance
        balance = self.credits.get_user_credits(user_uuid)
        task = self.tasks.create_task_record(
            user_uuid,
            task_type,
            credits_consumed=credits_required,
            credits_remaining=balance - credits_required,
            external_task_id=external_task_id,
            external_provider=external_provider,
        )

        balance_after = self.credits.deduct_credits(
            user_uuid,
            credits_required,
            task_description or TaskType(task_type).value,
            task_id=task.id,
        )
        if balance_after is None:
            logger.error(
                f"Failed to deduct {credits_required} credits for user "
                f"{user_uuid}, failing task {task.id}"
            )
            self.tasks.mark_task_as_failed(task.id, DEDUCTION_FAILED_MESSAGE)
            raise CreditDeductionError(task.id)

        task = self.tasks.set_credits_remaining(task.id, balance_after)
        self.credits.create_usage_record(
            task, task_description=task_description, task_input=task_input
        )

        return CreatedTask(
            task_id=task.id,
            external_task_id=external_task_id,
            credits_remaining=task.credits_remaining,
        )

    async def status(
        self, external_task_id: str, task_id: Optional[str] = None
    ) -> TaskStatusResult:
        """
        Poll the provider and fold terminal outcomes into the task row.

        Intermediate provider states never write to the row. Terminal
        outcomes are applied once; repeating the poll returns the same
        result without touching the row again.
        """
        task = None
        if task_id:
            task = self.tasks.get_task(task_id)
            if not task or task.external_task_id != external_task_id:
                raise TaskNotFoundError(task_id)

        record = await self.kie.record_info(external_task_id)
        parsed = parse_record(record)
        state = parsed["state"]

        if state in GENERATING_STATES:
            return TaskStatusResult(
                status=ClientStatus.GENERATING.value,
                message="Image editing in progress, please check later",
            )

        if state in SUCCESS_STATES:
            result_url = parsed["result_url"]
            if not result_url:
                logger.warning(
                    f"Provider reported success for {external_task_id} "
                    f"without a result URL"
                )
            if task:
                self._reconcile(
                    task,
                    TaskStatus.Success,
                    task_output={"result_url": result_url},
                )
            return TaskStatusResult(
                status=ClientStatus.SUCCESS.value,
                result_url=result_url,
                message="Image editing completed successfully",
            )

        if state in FAILED_STATES:
            error = parsed["error"] or "Image editing failed"
            if task:
                self._reconcile(task, TaskStatus.Failed, error_message=error)
            return TaskStatusResult(
                status=ClientStatus.FAILED.value,
                error=error,
                message="Failed to edit image",
            )

        passthrough = (state or "unknown").upper()
        return TaskStatusResult(
            status=passthrough,
            message=f"Task status: {state or 'unknown'}",
        )

    def _reconcile(
        self,
        task: Task,
        status: TaskStatus,
        error_message: Optional[str] = None,
        task_output: Any = None,
    ) -> None:
        if task.task_status == status.value:
            return

        if task.is_terminal:
            logger.warning(
                f"Task {task.id} is already {task.task_status}; "
                f"provider now reports {status.value}, row left unchanged"
            )
            return

        self.tasks.update_task_status(
            task.id, status, error_message=error_message
        )
        self.credits.update_usage_record_status(
            task.id,
            status,
            task_output=task_output,
            error_message=error_message,
        )
