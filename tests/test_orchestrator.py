"""
tests/test_orchestrator.py

Task orchestrator: create and status reconciliation against a stubbed
provider
"""

import asyncio

import pytest
from sqlalchemy import func, select

from nanoedit.credits.service import CreditService
from nanoedit.generation.orchestrator import (
    CreditDeductionError,
    TaskOrchestrator,
)
from nanoedit.generation.providers import KieClient, ProviderError
from nanoedit.tasks.models import Task, TaskType
from nanoedit.tasks.service import TaskNotFoundError, TaskService


@pytest.fixture
def kie(providers):
    return KieClient(providers.client(), api_key="test-kie-key")


def _submit(kie, prompt="make it pop"):
    async def submit():
        return await kie.create_task(prompt, ["https://i.ibb.co/a.png"])

    return submit


def _create(db_session, kie, user_uuid, credits_required=2):
    orchestrator = TaskOrchestrator(db_session, kie)
    return asyncio.run(
        orchestrator.create(
            user_uuid,
            TaskType.AIImageEdit,
            credits_required,
            _submit(kie),
            task_description="AI image editing with Nano Banana",
        )
    )


def _task_count(db_session):
    return db_session.scalar(select(func.count()).select_from(Task))


def test_create_writes_one_task_and_debits_once(db_session, user, kie):
    created = _create(db_session, kie, user.uuid)

    assert _task_count(db_session) == 1
    assert CreditService(db_session).get_user_credits(user.uuid) == 8

    task = TaskService(db_session).get_task(created.task_id)
    assert task.task_status == "pending"
    assert task.external_task_id == created.external_task_id
    assert task.credits_consumed == 2
    assert task.credits_remaining == 8
    assert created.credits_remaining == 8

    record = CreditService(db_session).get_usage_record(created.task_id)
    assert record is not None
    assert record.task_description == "AI image editing with Nano Banana"


def test_snapshot_reflects_concurrent_debit(
    db_session, user, kie, monkeypatch
):
    """Another debit lands between the task insert and this task's debit"""
    create_task_record = TaskService.create_task_record

    def create_then_spend(self, *args, **kwargs):
        task = create_task_record(self, *args, **kwargs)
        CreditService(self.db).deduct_credits(user.uuid, 2, "other edit")
        return task

    monkeypatch.setattr(
        TaskService, "create_task_record", create_then_spend
    )

    created = _create(db_session, kie, user.uuid)

    ledger = CreditService(db_session).get_user_credits(user.uuid)
    assert ledger == 6
    assert created.credits_remaining == 6
    assert TaskService(db_session).get_task(
        created.task_id
    ).credits_remaining == 6
    record = CreditService(db_session).get_usage_record(created.task_id)
    assert record.credits_remaining == 6


def test_create_records_external_id(db_session, user, kie, providers):
    providers.next_task_id = "abc123"

    created = _create(db_session, kie, user.uuid)

    task = TaskService(db_session).get_task(created.task_id)
    assert created.external_task_id == "abc123"
    assert task.external_task_id == "abc123"
    assert task.task_status == "pending"


def test_failed_debit_fails_task_and_keeps_balance(
    db_session, user, kie, providers, set_balance
):
    """Balance drained between the pre-check and the debit"""
    set_balance(user.uuid, 1)

    with pytest.raises(CreditDeductionError) as exc_info:
        _create(db_session, kie, user.uuid)

    task = TaskService(db_session).get_task(exc_info.value.task_id)
    assert task.task_status == "failed"
    assert task.error_message == "Failed to deduct credits"
    assert CreditService(db_session).get_user_credits(user.uuid) == 1
    assert CreditService(db_session).get_usage_record(task.id) is None
    # the provider job was submitted exactly once and not cancelled
    assert len(providers.calls("/api/v1/jobs/createTask")) == 1


def test_provider_failure_writes_nothing(db_session, user, kie, providers):
    providers.create_status = 503

    with pytest.raises(ProviderError) as exc_info:
        _create(db_session, kie, user.uuid)

    assert exc_info.value.status_code == 503
    assert _task_count(db_session) == 0
    assert CreditService(db_session).get_user_credits(user.uuid) == 10


def test_provider_error_code_in_body_is_a_failure(
    db_session, user, kie, providers
):
    providers.create_body = {"code": 402, "msg": "insufficient balance"}

    with pytest.raises(ProviderError):
        _create(db_session, kie, user.uuid)

    assert _task_count(db_session) == 0


@pytest.mark.parametrize("state", ["running", "pending", "queuing", "waiting"])
def test_intermediate_states_never_write(
    db_session, user, kie, providers, state
):
    created = _create(db_session, kie, user.uuid)
    before = TaskService(db_session).get_task(created.task_id).updated_at
    providers.set_state(state)

    result = asyncio.run(
        TaskOrchestrator(db_session, kie).status(
            created.external_task_id, created.task_id
        )
    )

    assert result.status == "GENERATING"
    assert result.success is True
    task = TaskService(db_session).get_task(created.task_id)
    assert task.task_status == "pending"
    assert task.updated_at == before


def test_success_updates_task_and_returns_url(
    db_session, user, kie, providers
):
    providers.next_task_id = "abc123"
    created = _create(db_session, kie, user.uuid)
    providers.set_success("https://x/y.png")

    result = asyncio.run(
        TaskOrchestrator(db_session, kie).status("abc123", created.task_id)
    )

    assert result.status == "SUCCESS"
    assert result.result_url == "https://x/y.png"
    assert TaskService(db_session).get_task(created.task_id).task_status == (
        "success"
    )
    record = CreditService(db_session).get_usage_record(created.task_id)
    assert record.task_status == "success"
    assert record.completed_at is not None


def test_terminal_status_is_idempotent(db_session, user, kie, providers):
    created = _create(db_session, kie, user.uuid)
    providers.set_failed("Content policy violation")
    orchestrator = TaskOrchestrator(db_session, kie)

    first = asyncio.run(
        orchestrator.status(created.external_task_id, created.task_id)
    )
    task = TaskService(db_session).get_task(created.task_id)
    stamp = task.updated_at

    second = asyncio.run(
        orchestrator.status(created.external_task_id, created.task_id)
    )

    assert first == second
    assert first.status == "FAILED"
    assert first.error == "Content policy violation"
    task = TaskService(db_session).get_task(created.task_id)
    assert task.task_status == "failed"
    assert task.updated_at == stamp
    # no refund or second debit
    assert CreditService(db_session).get_user_credits(user.uuid) == 8


def test_terminal_row_is_not_overwritten(db_session, user, kie, providers):
    created = _create(db_session, kie, user.uuid)
    TaskService(db_session).mark_task_as_success(created.task_id)
    providers.set_failed("late failure")

    result = asyncio.run(
        TaskOrchestrator(db_session, kie).status(
            created.external_task_id, created.task_id
        )
    )

    assert result.status == "FAILED"
    assert TaskService(db_session).get_task(created.task_id).task_status == (
        "success"
    )


def test_success_without_url(db_session, user, kie, providers):
    created = _create(db_session, kie, user.uuid)
    providers.record = {"code": 200, "data": {"state": "success"}}

    result = asyncio.run(
        TaskOrchestrator(db_session, kie).status(
            created.external_task_id, created.task_id
        )
    )

    assert result.status == "SUCCESS"
    assert result.result_url is None


def test_unknown_state_passes_through(db_session, kie, providers):
    providers.set_state("paused")

    result = asyncio.run(TaskOrchestrator(db_session, kie).status("ext-x"))

    assert result.status == "PAUSED"


def test_legacy_top_level_record(db_session, kie, providers):
    providers.record = {
        "status": "SUCCEEDED",
        "result": {"urls": ["https://legacy/img.png"]},
    }

    result = asyncio.run(TaskOrchestrator(db_session, kie).status("ext-x"))

    assert result.status == "SUCCESS"
    assert result.result_url == "https://legacy/img.png"


def test_status_with_mismatched_record_raises(db_session, user, kie):
    created = _create(db_session, kie, user.uuid)

    with pytest.raises(TaskNotFoundError):
        asyncio.run(
            TaskOrchestrator(db_session, kie).status(
                "some-other-external-id", created.task_id
            )
        )
