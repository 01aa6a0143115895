"""
nanoedit/credits/service.py - Credit ledger and usage records
"""

import json
import logging
from datetime import datetime
from typing import Any, List, Optional, Tuple
from uuid import uuid4

from sqlalchemy import select, update, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from nanoedit.schemas.history import HistoryQueryParams
from nanoedit.tasks.models import Task, TaskStatus
from .models import (
    CreditBalance,
    CreditTransaction,
    CreditUsageRecord,
    CreditsTransType,
)

logger = logging.getLogger(__name__)


def _trans_no() -> str:
    return uuid4().hex


class CreditService:
    """Balance reads, atomic debits and the usage history"""

    def __init__(self, db: Session):
        self.db = db

    # ==================== BALANCE ====================

    def get_user_credits(self, user_uuid: str) -> int:
        """Current left_credits; users without a balance row have 0"""
        balance = self.db.scalar(
            select(CreditBalance.balance).where(
                CreditBalance.user_uuid == user_uuid
            )
        )
        return balance or 0

    def has_enough_credits(self, user_uuid: str, credits: int) -> bool:
        """Read-only pre-check; the debit itself re-checks atomically"""
        try:
            return self.get_user_credits(user_uuid) >= credits
        except SQLAlchemyError as e:
            logger.error(f"Error checking credits for {user_uuid}: {e}")
            return False

    def deduct_credits(
        self,
        user_uuid: str,
        credits: int,
        description: str,
        task_id: Optional[str] = None,
        trans_type: CreditsTransType = CreditsTransType.AIImageEdit,
    ) -> Optional[int]:
        """
        Debit a user's balance.

        The balance check and the debit are one conditional UPDATE, so two
        concurrent debits can never take the balance below zero. The
        journal entry is written in the same transaction. Returns the balance
        after the debit, or None when the balance is too low or the
        database rejects the write.
        """
        if credits < 0:
            raise ValueError("credits must be >= 0")
        if credits == 0:
            return self.get_user_credits(user_uuid)

        try:
            result = self.db.execute(
                update(CreditBalance)
                .where(
                    CreditBalance.user_uuid == user_uuid,
                    CreditBalance.balance >= credits,
                )
                .values(
                    balance=CreditBalance.balance - credits,
                    updated_at=datetime.utcnow(),
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                self.db.rollback()
                logger.warning(
                    f"Insufficient credits to deduct {credits} "
                    f"from user {user_uuid}"
                )
                return None

            balance_after = self.get_user_credits(user_uuid)
            self.db.add(
                CreditTransaction(
                    trans_no=_trans_no(),
                    user_uuid=user_uuid,
                    trans_type=CreditsTransType(trans_type).value,
                    credits=-credits,
                    balance_after=balance_after,
                    description=description,
                    task_id=task_id,
                )
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(
                f"Failed to deduct {credits} credits from user "
                f"{user_uuid}: {e}"
            )
            return None

        logger.info(
            f"Deducted {credits} credits from user {user_uuid} "
            f"for: {description}"
        )
        return balance_after

    def increase_credits(
        self,
        user_uuid: str,
        trans_type: CreditsTransType,
        credits: int,
        description: Optional[str] = None,
    ) -> int:
        """Credit a user's balance and return the new balance"""
        if credits <= 0:
            raise ValueError("credits must be > 0")

        balance = self.db.scalars(
            select(CreditBalance)
            .where(CreditBalance.user_uuid == user_uuid)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).first()
        if balance is None:
            balance = CreditBalance(user_uuid=user_uuid, balance=0)
            self.db.add(balance)

        balance.balance = (balance.balance or 0) + credits
        balance.updated_at = datetime.utcnow()

        self.db.add(
            CreditTransaction(
                trans_no=_trans_no(),
                user_uuid=user_uuid,
                trans_type=CreditsTransType(trans_type).value,
                credits=credits,
                balance_after=balance.balance,
                description=description,
            )
        )
        self.db.commit()

        logger.info(
            f"Added {credits} credits to user {user_uuid} "
            f"({CreditsTransType(trans_type).value})"
        )
        return balance.balance

    def get_transactions(self, user_uuid: str) -> List[CreditTransaction]:
        return list(
            self.db.scalars(
                select(CreditTransaction)
                .where(CreditTransaction.user_uuid == user_uuid)
                .order_by(CreditTransaction.id)
            ).all()
        )

    # ==================== USAGE RECORDS ====================

    def create_usage_record(
        self,
        task: Task,
        task_description: Optional[str] = None,
        task_input: Any = None,
    ) -> CreditUsageRecord:
        """Record that a task's credits were consumed"""
        now = datetime.utcnow()
        record = CreditUsageRecord(
            record_no=task.id,
            user_uuid=task.user_uuid,
            task_type=task.task_type,
            task_description=task_description,
            credits_consumed=task.credits_consumed,
            credits_remaining=task.credits_remaining,
            task_status=task.task_status,
            external_task_id=task.external_task_id,
            external_provider=task.external_provider,
            task_input=json.dumps(task_input) if task_input else None,
            started_at=now,
            created_at=now,
            updated_at=now,
        )
        self.db.add(record)
        self.db.commit()
        self.db.refresh(record)
        return record

    def get_usage_record(self, record_no: str) -> Optional[CreditUsageRecord]:
        return self.db.scalars(
            select(CreditUsageRecord).where(
                CreditUsageRecord.record_no == record_no
            )
        ).first()

    def update_usage_record_status(
        self,
        record_no: str,
        status: TaskStatus,
        task_output: Any = None,
        error_message: Optional[str] = None,
    ) -> Optional[CreditUsageRecord]:
        """Mirror a task status change; tasks that were never billed have
        no record and return None"""
        record = self.get_usage_record(record_no)
        if not record:
            return None

        status = TaskStatus(status)
        record.task_status = status.value
        if task_output is not None:
            record.task_output = json.dumps(task_output)
        if error_message is not None:
            record.error_message = error_message
        if (
            status in (TaskStatus.Success, TaskStatus.Failed)
            and not record.completed_at
        ):
            record.completed_at = datetime.utcnow()
        record.updated_at = datetime.utcnow()

        self.db.commit()
        self.db.refresh(record)
        return record

    def get_user_usage_records(
        self, user_uuid: str, params: HistoryQueryParams
    ) -> Tuple[List[CreditUsageRecord], int]:
        """Paginated usage records for a user, newest first"""
        base_query = select(CreditUsageRecord).where(
            CreditUsageRecord.user_uuid == user_uuid
        )

        if params.task_type:
            base_query = base_query.where(
                CreditUsageRecord.task_type == params.task_type
            )

        if params.task_status:
            base_query = base_query.where(
                CreditUsageRecord.task_status == params.task_status
            )

        if params.date_from:
            base_query = base_query.where(
                CreditUsageRecord.created_at >= params.date_from
            )

        if params.date_to:
            base_query = base_query.where(
                CreditUsageRecord.created_at <= params.date_to
            )

        total = self.db.scalar(
            select(func.count()).select_from(base_query.subquery())
        )

        records = self.db.scalars(
            base_query.order_by(CreditUsageRecord.created_at.desc())
            .limit(params.limit)
            .offset(params.offset)
        ).all()

        return list(records), total or 0
