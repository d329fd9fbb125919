from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.security import get_current_user
from app.models.user import User
from app.schemas.trash import TrashItem
from app.services.retention import list_trash

router = APIRouter()


@router.get("/", response_model=List[TrashItem])
async def get_trash(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """The user's trashed notes with their permanent deletion date"""
    items = await list_trash(db, current_user.id)
    return [
        TrashItem(
            id=item["note"].id,
            title=item["note"].title,
            content=item["note"].content,
            deleted_at=item["note"].deleted_at,
            updated_at=item["note"].updated_at,
            purge_at=item["purge_at"],
            days_left=item["days_left"],
            purge_eligible=item["purge_eligible"],
        )
        for item in items
    ]
