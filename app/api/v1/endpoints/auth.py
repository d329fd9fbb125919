import logging

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from app.core.config import settings
from app.core.database import get_db, commit_or_rollback
from app.core.errors import ConflictError, UnauthenticatedError
from app.core.security import (
    verify_password,
    get_password_hash,
    create_session,
    delete_session,
    session_ttl_seconds,
)
from app.models.user import User
from app.schemas.user import UserCreate, UserLogin, UserResponse
from app.services.sharing import normalize_email

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(user: UserCreate, db: AsyncSession = Depends(get_db)):
    """Register a new user"""
    email = normalize_email(user.email)
    result = await db.execute(select(User).where(User.email == email))
    if result.scalar_one_or_none():
        raise ConflictError("Email already registered")

    db_user = User(
        email=email,
        hashed_password=get_password_hash(user.password),
        display_name=user.display_name,
    )
    db.add(db_user)
    await commit_or_rollback(db, "Registering user")
    await db.refresh(db_user)
    logger.info("Registered user %s", db_user.id)

    return db_user


@router.post("/login")
async def login(credentials: UserLogin, response: Response, db: AsyncSession = Depends(get_db)):
    """Check credentials and set the session cookie"""
    result = await db.execute(select(User).where(User.email == normalize_email(credentials.email)))
    user = result.scalar_one_or_none()

    if not user or not verify_password(credentials.password, user.hashed_password):
        raise UnauthenticatedError("Invalid credentials")
    if not user.is_active:
        raise UnauthenticatedError("Inactive user")

    token = await create_session(user.id)
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        max_age=session_ttl_seconds(),
        httponly=True,
        samesite="lax",
        secure=settings.SESSION_COOKIE_SECURE,
        path="/",
    )
    logger.info("User %s logged in", user.id)

    return {"message": "Login success"}


@router.post("/logout")
async def logout(request: Request, response: Response):
    """Drop the session and clear the cookie"""
    await delete_session(request.cookies.get(settings.SESSION_COOKIE_NAME))
    response.delete_cookie(settings.SESSION_COOKIE_NAME, path="/")

    return {"message": "Successfully logged out"}
