from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.security import get_current_user
from app.models.user import User
from app.services import sharing

router = APIRouter()


@router.post("/{token}/accept")
async def accept_invite(
    token: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Accept an invite addressed to the current user's email; role is null when it grants nothing"""
    access = await sharing.accept_invite(db, current_user.id, token)
    return {"ok": True, "role": access.role if access is not None else None}
