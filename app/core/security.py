"""
Password hashing and cookie sessions.

A session is an opaque random token stored in Redis as
``session:<token> -> user id`` with a TTL; the browser carries it in an
HttpOnly cookie. get_current_user resolves the cookie to the acting user.
"""

import logging
import secrets
from typing import Optional

import bcrypt
from fastapi import Depends, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import get_db
from app.core.errors import UnauthenticatedError
from app.core.redis_client import get_redis
from app.models.user import User

logger = logging.getLogger(__name__)

SESSION_KEY_PREFIX = "session:"


def get_password_hash(password: str) -> str:
    # bcrypt only looks at the first 72 bytes
    password_bytes = password.encode("utf-8")[:72]
    return bcrypt.hashpw(password_bytes, bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8")[:72], hashed_password.encode("utf-8"))
    except ValueError:
        # malformed hash in storage
        return False


def session_ttl_seconds() -> int:
    return settings.SESSION_EXPIRE_DAYS * 24 * 60 * 60


async def create_session(user_id: int) -> str:
    """Store a new session token for the user and return it"""
    token = secrets.token_urlsafe(32)
    redis_client = await get_redis()
    await redis_client.setex(f"{SESSION_KEY_PREFIX}{token}", session_ttl_seconds(), str(user_id))
    return token


async def resolve_session(token: Optional[str]) -> Optional[int]:
    """Principal resolver: session token -> user id, or None when unknown or expired"""
    if not token:
        return None
    redis_client = await get_redis()
    value = await redis_client.get(f"{SESSION_KEY_PREFIX}{token}")
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        logger.warning("Discarding malformed session entry")
        await redis_client.delete(f"{SESSION_KEY_PREFIX}{token}")
        return None


async def delete_session(token: Optional[str]) -> None:
    if not token:
        return
    redis_client = await get_redis()
    await redis_client.delete(f"{SESSION_KEY_PREFIX}{token}")


async def get_current_user(request: Request, db: AsyncSession = Depends(get_db)) -> User:
    """Resolve the session cookie to an active user"""
    user_id = await resolve_session(request.cookies.get(settings.SESSION_COOKIE_NAME))
    if user_id is None:
        raise UnauthenticatedError()

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None or not user.is_active:
        raise UnauthenticatedError()
    return user
