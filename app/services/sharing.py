"""
Collaborator access and email invitations.

Sharing with an email that belongs to a registered user grants access
immediately. Sharing with any other email creates a pending invite that the
recipient accepts after registering with that address.
"""

import logging
import secrets
from datetime import timedelta
from typing import List, Optional

from sqlalchemy import and_, delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import commit_or_rollback
from app.core.errors import ConflictError, ExpiredError, ForbiddenError, NotFoundError
from app.models.base import as_utc, utcnow
from app.models.note import Note
from app.models.note_access import NoteAccess, Role
from app.models.note_invite import NoteInvite
from app.models.user import User
from app.services.notifier import InviteEmail, InviteNotifier
from app.services.permissions import Action, authorize_note, get_access

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


async def get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    result = await db.execute(select(User).where(User.email == normalize_email(email)))
    return result.scalar_one_or_none()


async def list_access(db: AsyncSession, note_id: int) -> List[dict]:
    """Current collaborators of a note (the owner is not listed)"""
    result = await db.execute(
        select(NoteAccess, User)
        .join(User, User.id == NoteAccess.user_id)
        .where(NoteAccess.note_id == note_id)
        .order_by(NoteAccess.id)
    )
    return [
        {
            "id": access.id,
            "user_id": access.user_id,
            "role": access.role,
            "email": user.email,
            "display_name": user.display_name,
        }
        for access, user in result.all()
    ]


async def grant_or_update_access(
    db: AsyncSession,
    actor_id: int,
    note_id: int,
    target_user_id: int,
    role: Role,
) -> NoteAccess:
    """Give target_user_id a role on the note, creating or updating the access row.

    Owners and editors may grant. Only the owner may change the role of an
    existing collaborator; an editor re-granting the same role is a no-op.
    """
    note, actor_access = await authorize_note(db, note_id, actor_id, Action.SHARE)

    result = await db.execute(select(User.id).where(User.id == target_user_id))
    if result.scalar_one_or_none() is None:
        raise NotFoundError("User not found")
    if target_user_id == note.owner_id:
        raise ConflictError("The owner already has full access to this note")

    access = await get_access(db, note_id, target_user_id)
    if access is not None:
        if access.role == role.value:
            return access
        if actor_access is not None:
            raise ForbiddenError("Only the owner can change a collaborator's role")
        access.role = role.value
    else:
        access = NoteAccess(note_id=note_id, user_id=target_user_id, role=role.value)
        db.add(access)

    await commit_or_rollback(db, f"Granting access on note {note_id}")
    await db.refresh(access)
    logger.info("User %s granted %s access to note %s for user %s", actor_id, role.value, note_id, target_user_id)
    return access


async def change_role(
    db: AsyncSession,
    actor_id: int,
    note_id: int,
    target_user_id: int,
    role: Role,
) -> NoteAccess:
    """Change an existing collaborator's role (owner only).

    Invites to this note addressed to the collaborator are retired, so an old
    token cannot bring back the previous role.
    """
    await authorize_note(db, note_id, actor_id, Action.CHANGE_ROLE)

    access = await get_access(db, note_id, target_user_id)
    if access is None:
        raise NotFoundError("Access record not found")
    changed = access.role != role.value
    access.role = role.value
    await _retire_invites_for_user(db, note_id, target_user_id)
    await commit_or_rollback(db, f"Changing role on note {note_id}")
    await db.refresh(access)
    if changed:
        logger.info("Role of user %s on note %s changed to %s", target_user_id, note_id, role.value)
    return access


async def revoke_access(db: AsyncSession, actor_id: int, note_id: int, target_user_id: int) -> None:
    """Remove a collaborator (owner only); revoking a missing grant is a no-op.

    The collaborator's invites to this note are retired with the grant.
    """
    await authorize_note(db, note_id, actor_id, Action.REVOKE)

    result = await db.execute(
        delete(NoteAccess).where(and_(NoteAccess.note_id == note_id, NoteAccess.user_id == target_user_id))
    )
    await _retire_invites_for_user(db, note_id, target_user_id)
    await commit_or_rollback(db, f"Revoking access on note {note_id}")
    if result.rowcount:
        logger.info("Access of user %s to note %s revoked", target_user_id, note_id)


async def create_invite(
    db: AsyncSession,
    actor_id: int,
    note_id: int,
    email: str,
    role: Role,
    notifier: Optional[InviteNotifier] = None,
) -> NoteInvite:
    """Create (or refresh) a pending invitation and email the acceptance link.

    Re-inviting an address that still has a pending, unexpired invite reuses
    that invite with the new role and a fresh expiry. Email failures are
    logged; the invite is kept either way.
    """
    note, _ = await authorize_note(db, note_id, actor_id, Action.SHARE)
    invitee_email = normalize_email(email)

    now = utcnow()
    expires_at = now + timedelta(days=settings.INVITE_EXPIRE_DAYS)

    invite = await _find_pending_invite(db, note_id, invitee_email)
    if invite is not None:
        invite.role = role.value
        invite.expires_at = expires_at
        invite.inviter_id = actor_id
    else:
        invite = NoteInvite(
            id=secrets.token_urlsafe(32),
            note_id=note_id,
            inviter_id=actor_id,
            invitee_email=invitee_email,
            role=role.value,
            expires_at=expires_at,
        )
        db.add(invite)

    await commit_or_rollback(db, f"Creating invite on note {note_id}")
    await db.refresh(invite)
    logger.info("User %s invited %s to note %s as %s", actor_id, invitee_email, note_id, role.value)

    if notifier is not None:
        await _notify_invitee(db, notifier, note, invite, actor_id)
    return invite


async def accept_invite(db: AsyncSession, principal_id: int, token: str) -> Optional[NoteAccess]:
    """Turn an invite into an access grant for the accepting user.

    An invite grants once. Accepting it again applies nothing and returns the
    user's current access, which is None after a revoke. Also returns None
    when the accepting user owns the note, since ownership already covers
    every right.
    """
    result = await db.execute(select(NoteInvite).where(NoteInvite.id == token))
    invite = result.scalar_one_or_none()
    if invite is None:
        raise NotFoundError("Invite not found")
    if as_utc(invite.expires_at) < utcnow():
        raise ExpiredError()

    result = await db.execute(select(User).where(User.id == principal_id))
    user = result.scalar_one_or_none()
    if user is None or normalize_email(user.email) != normalize_email(invite.invitee_email):
        raise ForbiddenError("Invite email does not match your account")

    result = await db.execute(select(Note.owner_id).where(Note.id == invite.note_id))
    owner_id = result.scalar_one_or_none()
    if owner_id is None:
        raise NotFoundError("Note not found")

    if owner_id == principal_id:
        access = None
    elif invite.accepted:
        return await get_access(db, invite.note_id, principal_id)
    else:
        access = await get_access(db, invite.note_id, principal_id)
        if access is None:
            access = NoteAccess(note_id=invite.note_id, user_id=principal_id, role=invite.role)
            db.add(access)
        else:
            access.role = invite.role
    invite.accepted = True

    await commit_or_rollback(db, f"Accepting invite for note {invite.note_id}")
    if access is not None:
        await db.refresh(access)
    logger.info("User %s accepted invite to note %s", principal_id, invite.note_id)
    return access


async def list_invites(db: AsyncSession, actor_id: int, note_id: int) -> List[NoteInvite]:
    """Pending invites on a note (owner or editor)"""
    await authorize_note(db, note_id, actor_id, Action.SHARE)
    result = await db.execute(
        select(NoteInvite)
        .where(NoteInvite.note_id == note_id, NoteInvite.accepted.is_(False))
        .order_by(NoteInvite.created_at.desc())
    )
    return list(result.scalars().all())


async def share_note(
    db: AsyncSession,
    actor_id: int,
    note_id: int,
    email: str,
    role: Role,
    notifier: Optional[InviteNotifier] = None,
) -> dict:
    """Share by email: registered users get access now, anyone else an invite.

    Returns the note's access list and, when an invite was created, its id.
    """
    await authorize_note(db, note_id, actor_id, Action.SHARE)

    invite_id = None
    target = await get_user_by_email(db, email)
    if target is not None:
        await grant_or_update_access(db, actor_id, note_id, target.id, role)
    else:
        invite = await create_invite(db, actor_id, note_id, email, role, notifier)
        invite_id = invite.id

    return {"accesses": await list_access(db, note_id), "invite_id": invite_id}


async def _find_pending_invite(db: AsyncSession, note_id: int, email: str) -> Optional[NoteInvite]:
    result = await db.execute(
        select(NoteInvite).where(
            NoteInvite.note_id == note_id,
            NoteInvite.invitee_email == email,
            NoteInvite.accepted.is_(False),
        )
    )
    now = utcnow()
    for invite in result.scalars().all():
        if as_utc(invite.expires_at) >= now:
            return invite
    return None


async def _notify_invitee(
    db: AsyncSession,
    notifier: InviteNotifier,
    note: Note,
    invite: NoteInvite,
    inviter_id: int,
) -> None:
    try:
        result = await db.execute(select(User.email).where(User.id == inviter_id))
        await notifier.send_invite(
            InviteEmail(
                invitee_email=invite.invitee_email,
                inviter_email=result.scalar_one_or_none(),
                note_title=note.title,
                accept_url=f"{settings.APP_URL.rstrip('/')}/invite/{invite.id}",
                expires_at=as_utc(invite.expires_at),
            )
        )
    except Exception as exc:
        # the invite row is already committed; delivery problems must not undo it
        logger.warning("Invite email to %s failed: %s", invite.invitee_email, exc)


async def _retire_invites_for_user(db: AsyncSession, note_id: int, user_id: int) -> None:
    # mark the user's invites on this note used, so no token can re-grant access
    result = await db.execute(select(User.email).where(User.id == user_id))
    email = result.scalar_one_or_none()
    if email is None:
        return
    await db.execute(
        update(NoteInvite)
        .where(NoteInvite.note_id == note_id, NoteInvite.invitee_email == normalize_email(email))
        .values(accepted=True)
        .execution_options(synchronize_session="fetch")
    )
