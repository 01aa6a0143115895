"""
nanoedit/auth/service.py - User lookup and first-login provisioning
"""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from nanoedit.auth.models import ApiKey, User
from nanoedit.config import settings
from nanoedit.credits.models import CreditsTransType
from nanoedit.credits.service import CreditService

logger = logging.getLogger(__name__)


class UserService:
    def __init__(self, db: Session):
        self.db = db

    def get_by_uuid(self, user_uuid: str) -> Optional[User]:
        return self.db.get(User, user_uuid)

    def get_by_email(self, email: str) -> Optional[User]:
        return self.db.scalars(select(User).where(User.email == email)).first()

    def get_uuid_by_api_key(self, api_key: str) -> Optional[str]:
        return self.db.scalar(
            select(ApiKey.user_uuid).where(
                ApiKey.api_key == api_key, ApiKey.status == "created"
            )
        )

    def save_user(
        self,
        email: str,
        user_uuid: Optional[str] = None,
        nickname: Optional[str] = None,
        avatar_url: Optional[str] = None,
        signin_provider: Optional[str] = None,
    ) -> User:
        """Return the user with this email, creating it on first sign-in.

        New users receive the signup bonus through the ledger.
        """
        if not email:
            raise ValueError("invalid user email")

        existing = self.get_by_email(email)
        if existing:
            return existing

        user = User(
            email=email,
            nickname=nickname,
            avatar_url=avatar_url,
            signin_provider=signin_provider,
        )
        if user_uuid:
            user.uuid = user_uuid
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        logger.info(f"Created user {user.uuid} ({email})")

        if settings.NEW_USER_CREDITS > 0:
            CreditService(self.db).increase_credits(
                user.uuid,
                CreditsTransType.NewUser,
                settings.NEW_USER_CREDITS,
                description="Signup bonus",
            )

        return user
