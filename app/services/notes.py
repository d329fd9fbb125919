import logging
from typing import Iterable, Optional

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import commit_or_rollback
from app.core.errors import ConflictError
from app.models.note import Note
from app.models.note_access import NoteAccess
from app.models.note_tag import note_tags
from app.models.tag import Tag
from app.services.lifecycle import NoteState, state_of
from app.services.permissions import Action, authorize_note
from app.services.tags import get_owned_tag, link_tag_to_notes, replace_note_tags

logger = logging.getLogger(__name__)


async def create_note(
    db: AsyncSession,
    owner_id: int,
    title: str,
    content: str,
    tag_ids: Iterable[int] = (),
) -> Note:
    """Create an active note; tag ids not owned by the creator are ignored"""
    note = Note(title=title, content=content, owner_id=owner_id)
    db.add(note)
    await db.flush()

    requested = list(dict.fromkeys(tag_ids))
    if requested:
        result = await db.execute(select(Tag.id).where(Tag.id.in_(requested), Tag.owner_id == owner_id))
        owned = set(result.scalars().all())
        for tag_id in requested:
            if tag_id in owned:
                await link_tag_to_notes(db, tag_id, [note.id])

    await commit_or_rollback(db, "Creating note")
    await db.refresh(note)
    logger.info("User %s created note %s", owner_id, note.id)
    return note


async def list_notes(db: AsyncSession, user_id: int, tag_id: Optional[int] = None) -> dict:
    """Active notes the user owns and active notes shared with them, newest first"""
    owned_query = select(Note).where(Note.owner_id == user_id, Note.deleted_at.is_(None))
    shared_query = (
        select(Note)
        .join(NoteAccess, and_(NoteAccess.note_id == Note.id, NoteAccess.user_id == user_id))
        .where(Note.owner_id != user_id, Note.deleted_at.is_(None))
    )

    if tag_id is not None:
        tag = await get_owned_tag(db, user_id, tag_id)
        tagged = select(note_tags.c.note_id).where(note_tags.c.tag_id == tag.id)
        owned_query = owned_query.where(Note.id.in_(tagged))
        shared_query = shared_query.where(Note.id.in_(tagged))

    owned = (await db.execute(owned_query.order_by(Note.created_at.desc()))).scalars().all()
    shared = (await db.execute(shared_query.order_by(Note.created_at.desc()))).scalars().all()
    return {"owned": list(owned), "shared": list(shared)}


async def get_note(db: AsyncSession, actor_id: int, note_id: int) -> Note:
    """A note the actor may read (trashed notes included)"""
    note, _ = await authorize_note(db, note_id, actor_id, Action.READ)
    return note


async def update_note(
    db: AsyncSession,
    actor_id: int,
    note_id: int,
    title: Optional[str] = None,
    content: Optional[str] = None,
    tag_ids: Optional[Iterable[int]] = None,
) -> Note:
    """Edit title and/or content (owner or editor). Blank values are ignored.

    When tag_ids is given, the actor's own tags on the note are replaced by
    the ones in tag_ids that the actor owns; other users' tags stay put.
    """
    note, _ = await authorize_note(db, note_id, actor_id, Action.EDIT)
    if state_of(note) == NoteState.TRASHED:
        raise ConflictError("Restore the note from the trash before editing it")

    changes = {}
    if title is not None and title.strip():
        changes["title"] = title.strip()
    # content is HTML and is stored exactly as sent
    if content is not None and content.strip():
        changes["content"] = content
    if not changes and tag_ids is None:
        return note

    for field, value in changes.items():
        setattr(note, field, value)
    if tag_ids is not None:
        await replace_note_tags(db, actor_id, note_id, tag_ids)
    await commit_or_rollback(db, f"Updating note {note_id}")
    await db.refresh(note)
    logger.info("User %s updated note %s (%s)", actor_id, note_id, ", ".join(changes) or "tags")
    return note
