"""
Bearer-token authentication. Sessions are issued by the external auth provider
as HS256 JWTs whose `sub` claim is the user id; we only verify them.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

import config
from errors import AuthError

security = HTTPBearer(auto_error=False)


def create_access_token(user_id: str, expires_in: timedelta = timedelta(days=7)) -> str:
    """Issue a token the way the auth provider does; used by local tooling and tests."""
    now = datetime.now(timezone.utc)
    payload = {"sub": user_id, "iat": now, "exp": now + expires_in}
    return jwt.encode(payload, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def decode_access_token(token: str) -> str:
    """Return the user id carried by a valid token."""
    try:
        payload = jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise AuthError("세션이 만료되었습니다. 다시 로그인해주세요.")
    except jwt.InvalidTokenError:
        raise AuthError()

    user_id = payload.get("sub")
    if not isinstance(user_id, str) or not user_id:
        raise AuthError()
    return user_id


async def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> str:
    if not credentials:
        raise AuthError()
    return decode_access_token(credentials.credentials)
