"""
nanoedit/auth/utils.py

Session token helpers. Tokens are minted by the OAuth front end and
verified here with the shared secret.
"""

from datetime import datetime, timedelta
from typing import Dict, Optional

from jose import JWTError, jwt

from nanoedit.config import settings

API_KEY_PREFIX = "sk-"


def is_api_key(token: str) -> bool:
    return token.startswith(API_KEY_PREFIX)


def create_session_token(
    user_uuid: str,
    email: Optional[str] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Create a signed session token for a user"""
    expire = datetime.utcnow() + (expires_delta or timedelta(days=30))
    to_encode = {"sub": user_uuid, "exp": expire}
    if email:
        to_encode["email"] = email
    return jwt.encode(
        to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM
    )


def decode_session_token(token: str) -> Optional[Dict]:
    """Return the token claims, or None when the token does not verify"""
    try:
        payload = jwt.decode(
            token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM]
        )
    except JWTError:
        return None

    if not payload.get("sub"):
        return None
    return payload
