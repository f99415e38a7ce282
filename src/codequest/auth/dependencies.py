"""FastAPI authentication dependencies."""

from __future__ import annotations

import jwt
from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from codequest.auth.jwt import verify_token
from codequest.auth.service import get_user_by_id
from codequest.database import get_session
from codequest.db.models import User
from codequest.errors import Unauthorized

_bearer = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer),
    db: AsyncSession = Depends(get_session),
) -> User:
    """
    Extract and verify the bearer token, return the User model.

    Raises 401 on a missing/invalid token or unknown user, 403 if banned.
    """
    if credentials is None:
        raise Unauthorized
    try:
        payload = verify_token(credentials.credentials, expected_type="access")
    except jwt.InvalidTokenError as e:
        raise Unauthorized("Invalid or expired session", detail=str(e)) from e

    user = await get_user_by_id(db, int(payload["sub"]))
    if user is None:
        raise Unauthorized("User not found")
    if user.is_banned:
        raise HTTPException(status_code=403, detail="Account is banned")
    return user
