"""
Note lifecycle: Active -> Trashed -> Purged.

deleted_at is the only stored marker; NoteState gives the transitions an
explicit state to branch on. Purged is terminal and means the row is gone.
"""

import logging
from datetime import datetime
from enum import Enum
from typing import List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import TransientError
from app.models.base import utcnow
from app.models.note import Note
from app.models.note_access import NoteAccess
from app.models.note_invite import NoteInvite
from app.models.note_tag import note_tags
from app.services.permissions import Action, authorize_note
from app.services.retention import is_purge_eligible

logger = logging.getLogger(__name__)


class NoteState(str, Enum):
    ACTIVE = "active"
    TRASHED = "trashed"
    PURGED = "purged"


def state_of(note: Optional[Note]) -> NoteState:
    if note is None:
        return NoteState.PURGED
    if note.deleted_at is None:
        return NoteState.ACTIVE
    return NoteState.TRASHED


async def trash_note(db: AsyncSession, actor_id: int, note_id: int) -> Note:
    """Move a note to the trash (owner or editor).

    Trashing an already trashed note succeeds without touching deleted_at,
    so the retention window is never extended.
    """
    note, _ = await authorize_note(db, note_id, actor_id, Action.TRASH)

    state = state_of(note)
    if state == NoteState.TRASHED:
        return note
    if state == NoteState.ACTIVE:
        await _set_deleted_at(db, note_id, utcnow())
        await db.refresh(note)
        logger.info("Note %s moved to trash by user %s", note_id, actor_id)
    return note


async def restore_note(db: AsyncSession, actor_id: int, note_id: int) -> Note:
    """Take a note out of the trash (owner only); a no-op for active notes"""
    note, _ = await authorize_note(db, note_id, actor_id, Action.RESTORE)

    state = state_of(note)
    if state == NoteState.ACTIVE:
        return note
    if state == NoteState.TRASHED:
        await _set_deleted_at(db, note_id, None)
        await db.refresh(note)
        logger.info("Note %s restored by user %s", note_id, actor_id)
    return note


async def purge_note(db: AsyncSession, actor_id: int, note_id: int) -> None:
    """Permanently delete a note (owner only).

    From the trash this is a purge; from the active state a direct delete.
    Both need ownership and remove the same dependent rows.
    """
    result = await db.execute(select(Note.deleted_at).where(Note.id == note_id))
    row = result.first()
    action = Action.PURGE if row is not None and row[0] is not None else Action.DELETE
    await authorize_note(db, note_id, actor_id, action)

    await _delete_note_rows(db, [note_id])
    logger.info("Note %s permanently deleted by user %s", note_id, actor_id)


async def find_purge_eligible(db: AsyncSession, now: Optional[datetime] = None) -> List[int]:
    """Ids of trashed notes whose retention period has elapsed"""
    result = await db.execute(select(Note.id, Note.deleted_at).where(Note.deleted_at.is_not(None)))
    return [note_id for note_id, deleted_at in result.all() if is_purge_eligible(deleted_at, now=now)]


async def purge_expired_notes(db: AsyncSession, now: Optional[datetime] = None) -> List[int]:
    """System sweep: purge every trashed note past retention. Returns the purged ids"""
    note_ids = await find_purge_eligible(db, now)
    if note_ids:
        await _delete_note_rows(db, note_ids)
        logger.info("Purged %d expired notes from the trash", len(note_ids))
    return note_ids


async def _delete_note_rows(db: AsyncSession, note_ids: List[int]) -> None:
    # Tag links, access grants, invites and the note rows go in one transaction
    try:
        await db.execute(delete(note_tags).where(note_tags.c.note_id.in_(note_ids)))
        await db.execute(delete(NoteAccess).where(NoteAccess.note_id.in_(note_ids)))
        await db.execute(delete(NoteInvite).where(NoteInvite.note_id.in_(note_ids)))
        await db.execute(delete(Note).where(Note.id.in_(note_ids)))
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.error("Permanent delete of notes %s rolled back: %s", note_ids, exc)
        raise TransientError("Could not delete the note, please retry") from exc


async def _set_deleted_at(db: AsyncSession, note_id: int, value: Optional[datetime]) -> None:
    # updated_at is carried over so moving to and from the trash is not an edit
    try:
        await db.execute(
            update(Note)
            .where(Note.id == note_id)
            .values(deleted_at=value, updated_at=Note.updated_at)
            .execution_options(synchronize_session=False)
        )
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.error("Updating deleted_at of note %s rolled back: %s", note_id, exc)
        raise TransientError() from exc
