"""
nanoedit/auth/models.py

Users signed in through the OAuth front end, and their API keys
"""

from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, DateTime
from datetime import datetime
from typing import Optional
from uuid import uuid4

from nanoedit.database import Base


class User(Base):
    __tablename__ = "users"

    uuid: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid4())
    )
    email: Mapped[str] = mapped_column(String(320), unique=True, index=True)
    nickname: Mapped[Optional[str]] = mapped_column(String(255))
    avatar_url: Mapped[Optional[str]] = mapped_column(String(1024))
    signin_provider: Mapped[Optional[str]] = mapped_column(
        String(50)
    )  # "google", "github", "google-one-tap"

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    def __repr__(self) -> str:
        return f"<User(uuid={self.uuid}, email='{self.email}')>"


class ApiKey(Base):
    __tablename__ = "apikeys"

    id: Mapped[int] = mapped_column(primary_key=True)
    api_key: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    user_uuid: Mapped[str] = mapped_column(String(36), index=True)
    title: Mapped[Optional[str]] = mapped_column(String(100))
    status: Mapped[str] = mapped_column(
        String(20), default="created"
    )  # created/deleted
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow
    )
