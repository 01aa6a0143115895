"""
nanoedit/credits/models.py - Credit ledger tables
"""

from enum import Enum
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import CheckConstraint, String, Integer, Text, DateTime, Index
from datetime import datetime
from typing import Optional

from nanoedit.database import Base


class CreditsTransType(str, Enum):
    NewUser = "new_user"
    OrderPay = "order_pay"
    SystemAdd = "system_add"
    AIImageEdit = "ai_image_edit"


class CreditBalance(Base):
    """Current balance per user; the only source of left_credits"""

    __tablename__ = "credit_balances"

    user_uuid: Mapped[str] = mapped_column(String(36), primary_key=True)
    balance: Mapped[int] = mapped_column(Integer, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow
    )

    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_balance_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<CreditBalance(user='{self.user_uuid}', {self.balance})>"


class CreditTransaction(Base):
    """Signed, append-only journal entry"""

    __tablename__ = "credit_transactions"

    id: Mapped[int] = mapped_column(primary_key=True)
    trans_no: Mapped[str] = mapped_column(String(64), unique=True)
    user_uuid: Mapped[str] = mapped_column(String(36), index=True)
    trans_type: Mapped[str] = mapped_column(String(50))
    credits: Mapped[int] = mapped_column(Integer)
    balance_after: Mapped[int] = mapped_column(Integer)
    description: Mapped[Optional[str]] = mapped_column(String(255))
    task_id: Mapped[Optional[str]] = mapped_column(String(255), index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow
    )


class CreditUsageRecord(Base):
    """What a user's credits were spent on"""

    __tablename__ = "credit_usage_records"

    id: Mapped[int] = mapped_column(primary_key=True)
    record_no: Mapped[str] = mapped_column(
        String(255), unique=True, index=True
    )
    user_uuid: Mapped[str] = mapped_column(String(36), index=True)
    task_type: Mapped[str] = mapped_column(String(50))
    task_description: Mapped[Optional[str]] = mapped_column(String(255))
    credits_consumed: Mapped[int] = mapped_column(Integer)
    credits_remaining: Mapped[int] = mapped_column(Integer)
    task_status: Mapped[str] = mapped_column(String(20))
    external_task_id: Mapped[Optional[str]] = mapped_column(String(255))
    external_provider: Mapped[Optional[str]] = mapped_column(String(50))
    task_input: Mapped[Optional[str]] = mapped_column(Text)
    task_output: Mapped[Optional[str]] = mapped_column(Text)
    error_message: Mapped[Optional[str]] = mapped_column(Text)

    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow
    )

    __table_args__ = (
        Index("idx_usage_user_created", "user_uuid", "created_at"),
    )
