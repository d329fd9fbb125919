"""
Who may do what to a note.

can_perform() is a pure rule table over the note owner and the collaborator
roles. authorize_note() is the gate the services call before any mutation:
it loads the note plus the actor's access row and raises NotFoundError or
ForbiddenError when the rule table says no.

Masking policy: an actor with no relationship to the note (neither owner nor
collaborator) gets NotFoundError, so note ids cannot be probed. A collaborator
who lacks the specific right gets ForbiddenError.
"""

from enum import Enum
from typing import Mapping, Optional, Tuple

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ForbiddenError, NotFoundError
from app.models.note import Note
from app.models.note_access import NoteAccess, Role


class Action(str, Enum):
    READ = "read"
    EDIT = "edit"
    TRASH = "trash"
    RESTORE = "restore"
    PURGE = "purge"
    DELETE = "delete"
    SHARE = "share"
    CHANGE_ROLE = "change_role"
    REVOKE = "revoke"


ROLE_ACTIONS = {
    Role.VIEWER: frozenset({Action.READ}),
    Role.EDITOR: frozenset({Action.READ, Action.EDIT, Action.TRASH, Action.SHARE}),
}


def can_perform(
    action: Action,
    owner_id: int,
    principal_id: int,
    collaborators: Mapping[int, str],
) -> bool:
    """Return True if principal_id may perform action on a note owned by owner_id.

    collaborators maps user id to role ("viewer" or "editor"). The owner may do
    anything, and ownership wins over any access record held by the same user.
    """
    if principal_id == owner_id:
        return True
    role = collaborators.get(principal_id)
    if role is None:
        return False
    try:
        return Action(action) in ROLE_ACTIONS[Role(role)]
    except ValueError:
        # unknown role string in storage grants nothing
        return False


async def get_access(db: AsyncSession, note_id: int, user_id: int) -> Optional[NoteAccess]:
    result = await db.execute(
        select(NoteAccess).where(and_(NoteAccess.note_id == note_id, NoteAccess.user_id == user_id))
    )
    return result.scalar_one_or_none()


async def authorize_note(
    db: AsyncSession,
    note_id: int,
    actor_id: int,
    action: Action,
) -> Tuple[Note, Optional[NoteAccess]]:
    """Load a note for actor_id and check action against it.

    Returns the note and the actor's access row (None for the owner).
    """
    result = await db.execute(select(Note).where(Note.id == note_id))
    note = result.scalar_one_or_none()
    if note is None:
        raise NotFoundError("Note not found")

    access = None
    collaborators = {}
    if note.owner_id != actor_id:
        access = await get_access(db, note_id, actor_id)
        if access is None:
            raise NotFoundError("Note not found")
        collaborators[actor_id] = access.role

    if not can_perform(action, note.owner_id, actor_id, collaborators):
        raise ForbiddenError(f"You are not allowed to {action.value.replace('_', ' ')} this note")
    return note, access
