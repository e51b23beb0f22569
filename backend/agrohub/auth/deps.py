"""FastAPI dependencies for authentication.

Dependencies:
  get_current_user_id  → user id from the bearer token, or None
  require_user_id      → same, but 401 when there is no identity
  get_current_user     → load the User row for the identity
"""

import logging

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from agrohub.auth.jwt import decode_token
from agrohub.config import settings
from agrohub.database import get_db
from agrohub.middleware.exceptions import AuthenticationMissing
from agrohub.models.user import User

logger = logging.getLogger(__name__)

# auto_error=False: a missing token is an identity-less request, which the
# isolation guards answer with their own 401 body.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)

DEV_USER_ID = "dev-user"


# ── Identity ────────────────────────────────────────────────

async def get_current_user_id(
    token: str | None = Depends(oauth2_scheme),
) -> str | None:
    """Return the authenticated user id, or None when there is none."""
    if settings.skip_auth_dev and settings.environment == "development":
        return DEV_USER_ID

    if not token:
        return None

    payload = decode_token(token)
    user_id: str | None = payload.get("sub")
    if not user_id or payload.get("type") != "access":
        logger.info("Rejected bearer token without a valid access claim")
        return None
    return user_id


async def require_user_id(
    user_id: str | None = Depends(get_current_user_id),
) -> str:
    if not user_id:
        raise AuthenticationMissing()
    return user_id


async def get_current_user(
    user_id: str = Depends(require_user_id),
    db: AsyncSession = Depends(get_db),
) -> User:
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user

