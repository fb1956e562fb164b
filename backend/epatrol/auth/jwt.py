"""
Identity token utilities.

The identity provider hands out a signed access token on sign-in and
answers "who is signed in" by decoding it.
"""

from datetime import timedelta
from typing import Optional
from uuid import UUID

from jose import JWTError, jwt

from epatrol.config import Settings, get_settings
from epatrol.utils.timezone import utc_now


def create_access_token(
    principal_id: UUID,
    expires_delta: Optional[timedelta] = None,
    settings: Optional[Settings] = None,
) -> str:
    """
    Create a JWT access token for a principal.

    Args:
        principal_id: The principal's UUID
        expires_delta: Optional custom expiration time
        settings: Settings to sign with (defaults to the cached settings)

    Returns:
        Encoded JWT token string
    """
    settings = settings or get_settings()
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.jwt_access_token_expire_minutes)

    to_encode = {
        "sub": str(principal_id),
        "exp": utc_now() + expires_delta,
        "type": "access",
    }

    return jwt.encode(
        to_encode,
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
    )


def decode_access_token(token: str, settings: Optional[Settings] = None) -> Optional[UUID]:
    """
    Decode and validate a JWT access token.

    Returns:
        Principal UUID if valid, None otherwise
    """
    settings = settings or get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
        principal_id_str: str = payload.get("sub")
        token_type: str = payload.get("type")

        if principal_id_str is None or token_type != "access":
            return None

        return UUID(principal_id_str)
    except (JWTError, ValueError):
        return None
