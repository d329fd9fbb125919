from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.security import get_current_user
from app.models.user import User
from app.schemas.tag import TagAttach, TagAttachResponse, TagCreate, TagRename, TagResponse
from app.services import tags as tags_service

router = APIRouter()


@router.get("/", response_model=List[TagResponse])
async def get_tags(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """The current user's tags with note counts"""
    return await tags_service.list_tags(db, current_user.id)


@router.post("/", response_model=TagResponse, status_code=status.HTTP_201_CREATED)
async def create_tag(
    tag: TagCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Create the tag (or reuse one with the same name) and attach it to the given notes"""
    db_tag = await tags_service.upsert_tag(db, current_user.id, tag.name, tag.note_ids)
    counts = {item["id"]: item["note_count"] for item in await tags_service.list_tags(db, current_user.id)}
    return TagResponse(id=db_tag.id, name=db_tag.name, note_count=counts.get(db_tag.id, 0))


@router.post("/{tag_id}/notes", response_model=TagAttachResponse)
async def attach_tag(
    tag_id: int,
    attach: TagAttach,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Attach a tag to notes; notes the user cannot access are skipped"""
    attached = await tags_service.attach_tag(db, current_user.id, tag_id, attach.note_ids)
    return TagAttachResponse(attached_ids=attached)


@router.patch("/{tag_id}", response_model=TagResponse)
async def rename_tag(
    tag_id: int,
    rename: TagRename,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Rename a tag"""
    tag = await tags_service.rename_tag(db, current_user.id, tag_id, rename.name)
    counts = {item["id"]: item["note_count"] for item in await tags_service.list_tags(db, current_user.id)}
    return TagResponse(id=tag.id, name=tag.name, note_count=counts.get(tag.id, 0))


@router.delete("/{tag_id}/notes/{note_id}")
async def detach_tag(
    tag_id: int,
    note_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Remove a tag from one note"""
    await tags_service.detach_tag(db, current_user.id, tag_id, note_id)
    return {"ok": True}


@router.delete("/{tag_id}")
async def delete_tag(
    tag_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Delete a tag and its links"""
    await tags_service.delete_tag(db, current_user.id, tag_id)
    return {"ok": True}
