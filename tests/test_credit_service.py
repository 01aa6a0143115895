"""
tests/test_credit_service.py

Credit ledger: balances, atomic debits, journal and usage records
"""

import pytest

from nanoedit.auth.service import UserService
from nanoedit.credits.models import CreditsTransType
from nanoedit.credits.service import CreditService
from nanoedit.schemas.history import HistoryQueryParams
from nanoedit.tasks.models import TaskStatus, TaskType
from nanoedit.tasks.service import TaskService


def test_new_user_receives_signup_bonus(db_session, user):
    service = CreditService(db_session)

    assert service.get_user_credits(user.uuid) == 10

    journal = service.get_transactions(user.uuid)
    assert len(journal) == 1
    assert journal[0].trans_type == "new_user"
    assert journal[0].credits == 10
    assert journal[0].balance_after == 10


def test_save_user_is_idempotent_per_email(db_session, user):
    again = UserService(db_session).save_user(email=user.email)

    assert again.uuid == user.uuid
    assert CreditService(db_session).get_user_credits(user.uuid) == 10


def test_unknown_user_has_no_credits(db_session):
    service = CreditService(db_session)

    assert service.get_user_credits("nobody") == 0
    assert service.has_enough_credits("nobody", 1) is False
    assert service.has_enough_credits("nobody", 0) is True


def test_deduct_credits_writes_journal(db_session, user):
    service = CreditService(db_session)

    balance_after = service.deduct_credits(
        user.uuid, 2, "AI image editing", task_id="ai_image_edit_1"
    )

    assert balance_after == 8
    assert service.get_user_credits(user.uuid) == 8
    debit = service.get_transactions(user.uuid)[-1]
    assert debit.credits == -2
    assert debit.balance_after == 8
    assert debit.trans_type == "ai_image_edit"
    assert debit.task_id == "ai_image_edit_1"


def test_deduct_more_than_balance_changes_nothing(db_session, user):
    service = CreditService(db_session)

    assert service.deduct_credits(user.uuid, 11, "too much") is None

    assert service.get_user_credits(user.uuid) == 10
    assert len(service.get_transactions(user.uuid)) == 1


def test_sequential_debits_never_overdraw(db_session, user, set_balance):
    """Two debits racing for the same 3 credits: only one wins"""
    set_balance(user.uuid, 3)
    service = CreditService(db_session)

    results = [service.deduct_credits(user.uuid, 2, "edit") for _ in range(2)]

    assert results == [1, None]
    assert service.get_user_credits(user.uuid) == 1


def test_deduct_rejects_negative_amount(db_session, user):
    with pytest.raises(ValueError):
        CreditService(db_session).deduct_credits(user.uuid, -1, "refund?")


def test_increase_after_deduct_uses_current_balance(db_session, user):
    service = CreditService(db_session)
    service.deduct_credits(user.uuid, 4, "edit")

    balance = service.increase_credits(
        user.uuid, CreditsTransType.SystemAdd, 5, description="goodwill"
    )

    assert balance == 11
    assert service.get_user_credits(user.uuid) == 11


def test_usage_record_follows_task(db_session, user):
    tasks = TaskService(db_session)
    credits = CreditService(db_session)
    task = tasks.create_task_record(
        user.uuid,
        TaskType.AIImageEdit,
        credits_consumed=2,
        credits_remaining=8,
        external_task_id="ext-usage",
    )

    record = credits.create_usage_record(
        task,
        task_description="AI image editing with Nano Banana",
        task_input={"prompt": "make it pop"},
    )
    assert record.record_no == task.id
    assert record.task_status == "pending"
    assert record.completed_at is None

    updated = credits.update_usage_record_status(
        task.id,
        TaskStatus.Success,
        task_output={"result_url": "https://x/y.png"},
    )
    assert updated.task_status == "success"
    assert updated.completed_at is not None
    assert "https://x/y.png" in updated.task_output

    records, total = credits.get_user_usage_records(
        user.uuid, HistoryQueryParams()
    )
    assert total == 1
    assert records[0].record_no == task.id


def test_update_usage_record_without_record_returns_none(db_session):
    result = CreditService(db_session).update_usage_record_status(
        "ai_image_edit_unbilled", TaskStatus.Failed, error_message="x"
    )
    assert result is None
