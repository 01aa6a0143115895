from typing import Optional
import logging

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from nanoedit.auth.models import User
from nanoedit.auth.service import UserService
from nanoedit.auth.utils import decode_session_token, is_api_key
from nanoedit.config import settings
from nanoedit.database import get_db_session
from nanoedit.schemas.errors import ErrorCode, ERROR_MESSAGES

logger = logging.getLogger(__name__)

optional_security = HTTPBearer(auto_error=False)


class LoginRequired(HTTPException):
    """401 carrying a machine-readable code for the sign-in modal"""

    def __init__(self):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=ERROR_MESSAGES[ErrorCode.LOGIN_REQUIRED],
            headers={"WWW-Authenticate": "Bearer"},
        )
        self.code = ErrorCode.LOGIN_REQUIRED


def _extract_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials],
) -> Optional[str]:
    """Extract the token from Bearer or the session cookie."""
    if credentials:
        return credentials.credentials
    return request.cookies.get(settings.SESSION_COOKIE_NAME)


def get_optional_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(
        optional_security
    ),
    session: Session = Depends(get_db_session),
) -> Optional[User]:
    """Resolve the caller from an API key or a session token, else None."""
    token = _extract_token(request, credentials)
    if not token:
        return None

    service = UserService(session)

    if is_api_key(token):
        user_uuid = service.get_uuid_by_api_key(token)
        if not user_uuid:
            logger.warning("Unknown API key presented")
            return None
        return service.get_by_uuid(user_uuid)

    claims = decode_session_token(token)
    if not claims:
        logger.warning("Invalid session token presented")
        return None

    user = service.get_by_uuid(claims["sub"])
    if user:
        return user

    email = claims.get("email")
    if not email:
        return None

    # First request with a fresh OAuth session
    return service.save_user(
        email=email,
        user_uuid=claims["sub"],
        nickname=claims.get("name"),
        avatar_url=claims.get("picture"),
        signin_provider=claims.get("provider"),
    )


def get_current_user(
    user: Optional[User] = Depends(get_optional_user),
) -> User:
    """Require a signed-in user."""
    if user is None:
        raise LoginRequired()
    return user
