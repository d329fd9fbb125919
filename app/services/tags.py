"""
Personal tags and which notes a user may put them on.

Tags belong to the user who created them. A user may attach their tag to any
note they own or collaborate on (viewer included): a tag is a personal
overlay and never widens access to the note for anybody.
"""

import logging
from typing import Iterable, List, Optional

from sqlalchemy import and_, delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import commit_or_rollback
from app.core.errors import ConflictError, NotFoundError
from app.models.note import Note
from app.models.note_access import NoteAccess
from app.models.note_tag import note_tags
from app.models.tag import Tag

logger = logging.getLogger(__name__)


def normalize_tag_name(name: str) -> str:
    return name.strip()


async def filter_attachable(db: AsyncSession, note_ids: Iterable[int], actor_id: int) -> List[int]:
    """Keep only the note ids actor_id owns or holds any access role on.

    Unknown and inaccessible ids are dropped silently; order follows the input.
    """
    requested = list(dict.fromkeys(note_ids))
    if not requested:
        return []

    result = await db.execute(
        select(Note.id)
        .outerjoin(NoteAccess, and_(NoteAccess.note_id == Note.id, NoteAccess.user_id == actor_id))
        .where(
            Note.id.in_(requested),
            or_(Note.owner_id == actor_id, NoteAccess.user_id == actor_id),
        )
    )
    allowed = set(result.scalars().all())
    return [note_id for note_id in requested if note_id in allowed]


async def get_owned_tag(db: AsyncSession, owner_id: int, tag_id: int) -> Tag:
    result = await db.execute(select(Tag).where(and_(Tag.id == tag_id, Tag.owner_id == owner_id)))
    tag = result.scalar_one_or_none()
    if tag is None:
        raise NotFoundError("Tag not found")
    return tag


async def link_tag_to_notes(db: AsyncSession, tag_id: int, note_ids: List[int]) -> None:
    # skip-on-duplicate: only insert pairs that are not there yet
    if not note_ids:
        return
    result = await db.execute(
        select(note_tags.c.note_id).where(note_tags.c.tag_id == tag_id, note_tags.c.note_id.in_(note_ids))
    )
    existing = set(result.scalars().all())
    rows = [{"note_id": note_id, "tag_id": tag_id} for note_id in note_ids if note_id not in existing]
    if rows:
        await db.execute(note_tags.insert(), rows)


async def replace_note_tags(db: AsyncSession, owner_id: int, note_id: int, tag_ids: Iterable[int]) -> List[int]:
    """Make owner_id's tags on the note exactly the owned subset of tag_ids.

    Does not commit. Tags of other users on the same note are not touched.
    """
    requested = list(dict.fromkeys(tag_ids))
    owned = []
    if requested:
        result = await db.execute(select(Tag.id).where(Tag.id.in_(requested), Tag.owner_id == owner_id))
        allowed = set(result.scalars().all())
        owned = [tag_id for tag_id in requested if tag_id in allowed]

    own_tags = select(Tag.id).where(Tag.owner_id == owner_id)
    await db.execute(
        delete(note_tags).where(note_tags.c.note_id == note_id, note_tags.c.tag_id.in_(own_tags))
    )
    if owned:
        await db.execute(note_tags.insert(), [{"note_id": note_id, "tag_id": tag_id} for tag_id in owned])
    return owned


async def attach_tag(db: AsyncSession, actor_id: int, tag_id: int, note_ids: Iterable[int]) -> List[int]:
    """Attach one of actor's tags to the attachable subset of note_ids.

    Returns the ids the tag is now attached to from that request.
    """
    tag = await get_owned_tag(db, actor_id, tag_id)
    allowed = await filter_attachable(db, note_ids, actor_id)
    await link_tag_to_notes(db, tag.id, allowed)
    await commit_or_rollback(db, f"Attaching tag {tag_id}")
    logger.debug("Tag %s attached to notes %s", tag_id, allowed)
    return allowed


async def upsert_tag(db: AsyncSession, owner_id: int, name: str, note_ids: Iterable[int] = ()) -> Tag:
    """Get or create the owner's tag called name, then attach it to note_ids"""
    name = normalize_tag_name(name)
    result = await db.execute(select(Tag).where(and_(Tag.owner_id == owner_id, Tag.name == name)))
    tag = result.scalar_one_or_none()
    if tag is None:
        tag = Tag(name=name, owner_id=owner_id)
        db.add(tag)
        await db.flush()
        logger.info("User %s created tag %r", owner_id, name)

    allowed = await filter_attachable(db, note_ids, owner_id)
    await link_tag_to_notes(db, tag.id, allowed)
    await commit_or_rollback(db, f"Saving tag {name!r}")
    await db.refresh(tag)
    return tag


async def rename_tag(db: AsyncSession, owner_id: int, tag_id: int, name: str) -> Tag:
    tag = await get_owned_tag(db, owner_id, tag_id)
    name = normalize_tag_name(name)
    if name == tag.name:
        return tag

    result = await db.execute(select(Tag.id).where(and_(Tag.owner_id == owner_id, Tag.name == name)))
    if result.scalar_one_or_none() is not None:
        raise ConflictError(f"You already have a tag named {name!r}")

    tag.name = name
    await commit_or_rollback(db, f"Renaming tag {tag_id}")
    await db.refresh(tag)
    return tag


async def detach_tag(db: AsyncSession, owner_id: int, tag_id: int, note_id: int) -> None:
    tag = await get_owned_tag(db, owner_id, tag_id)
    await db.execute(delete(note_tags).where(note_tags.c.tag_id == tag.id, note_tags.c.note_id == note_id))
    await commit_or_rollback(db, f"Detaching tag {tag_id}")


async def delete_tag(db: AsyncSession, owner_id: int, tag_id: int) -> None:
    tag = await get_owned_tag(db, owner_id, tag_id)
    await db.execute(delete(note_tags).where(note_tags.c.tag_id == tag.id))
    await db.execute(delete(Tag).where(Tag.id == tag.id))
    await commit_or_rollback(db, f"Deleting tag {tag_id}")
    logger.info("User %s deleted tag %s", owner_id, tag_id)


async def list_tags(db: AsyncSession, owner_id: int) -> List[dict]:
    """The owner's tags by name, with how many notes each is attached to"""
    result = await db.execute(
        select(Tag, func.count(note_tags.c.note_id))
        .outerjoin(note_tags, note_tags.c.tag_id == Tag.id)
        .where(Tag.owner_id == owner_id)
        .group_by(Tag.id)
        .order_by(Tag.name)
    )
    return [{"id": tag.id, "name": tag.name, "note_count": count} for tag, count in result.all()]


async def tags_for_notes(db: AsyncSession, note_ids: List[int], viewer_id: Optional[int] = None) -> dict:
    """Map note id -> list of {id, name} tags; restricted to viewer_id's tags when given"""
    if not note_ids:
        return {}
    query = (
        select(note_tags.c.note_id, Tag.id, Tag.name)
        .join(Tag, Tag.id == note_tags.c.tag_id)
        .where(note_tags.c.note_id.in_(note_ids))
        .order_by(Tag.name)
    )
    if viewer_id is not None:
        query = query.where(Tag.owner_id == viewer_id)
    result = await db.execute(query)
    mapping = {note_id: [] for note_id in note_ids}
    for note_id, tag_id, tag_name in result.all():
        mapping[note_id].append({"id": tag_id, "name": tag_name})
    return mapping
