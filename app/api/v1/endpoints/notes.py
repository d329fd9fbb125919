from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.security import get_current_user
from app.models.note import Note
from app.models.user import User
from app.schemas.access import AccessResponse, RoleUpdate, ShareRequest, ShareResponse
from app.schemas.invite import InviteCreate, InviteCreated, InviteResponse
from app.schemas.note import NoteCreate, NoteDetailResponse, NoteListResponse, NoteResponse, NoteUpdate
from app.services import lifecycle, notes as notes_service, sharing
from app.services.notifier import InviteNotifier, get_notifier
from app.services.permissions import Action, authorize_note
from app.services.tags import tags_for_notes

router = APIRouter()


def note_to_response(note: Note, tags: Optional[list] = None) -> NoteResponse:
    return NoteResponse(
        id=note.id,
        title=note.title,
        content=note.content,
        owner_id=note.owner_id,
        tags=tags or [],
        created_at=note.created_at,
        updated_at=note.updated_at,
        deleted_at=note.deleted_at,
    )


async def notes_to_responses(notes: List[Note], viewer_id: int, db: AsyncSession) -> List[NoteResponse]:
    """Convert notes to responses carrying the viewer's own tags"""
    tags = await tags_for_notes(db, [note.id for note in notes], viewer_id)
    return [note_to_response(note, tags.get(note.id)) for note in notes]


@router.post("/", response_model=NoteResponse, status_code=status.HTTP_201_CREATED)
async def create_note(
    note: NoteCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Create a new note"""
    db_note = await notes_service.create_note(db, current_user.id, note.title, note.content, note.tag_ids or [])
    responses = await notes_to_responses([db_note], current_user.id, db)
    return responses[0]


@router.get("/", response_model=NoteListResponse)
async def get_notes(
    tag_id: Optional[int] = Query(None, description="Only notes carrying this tag (one of yours)"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Get active notes the user owns and active notes shared with the user"""
    found = await notes_service.list_notes(db, current_user.id, tag_id)
    return NoteListResponse(
        owned=await notes_to_responses(found["owned"], current_user.id, db),
        shared=await notes_to_responses(found["shared"], current_user.id, db),
    )


@router.get("/{note_id}", response_model=NoteDetailResponse)
async def get_note(
    note_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Get a specific note with its collaborators"""
    note, access = await authorize_note(db, note_id, current_user.id, Action.READ)
    base = (await notes_to_responses([note], current_user.id, db))[0]
    accesses = await sharing.list_access(db, note_id)

    return NoteDetailResponse(
        **base.model_dump(),
        role="owner" if access is None else access.role,
        accesses=accesses,
    )


@router.put("/{note_id}", response_model=NoteResponse)
async def update_note(
    note_id: int,
    note_update: NoteUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Update a note (owner or editor)"""
    note = await notes_service.update_note(
        db, current_user.id, note_id,
        title=note_update.title, content=note_update.content, tag_ids=note_update.tag_ids,
    )
    return (await notes_to_responses([note], current_user.id, db))[0]


@router.post("/{note_id}/trash")
async def trash_note(
    note_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Move a note to the trash (owner or editor)"""
    note = await lifecycle.trash_note(db, current_user.id, note_id)
    return {"ok": True, "deleted_at": note.deleted_at}


@router.post("/{note_id}/restore")
async def restore_note(
    note_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Restore a note from the trash (owner only)"""
    await lifecycle.restore_note(db, current_user.id, note_id)
    return {"ok": True}


@router.delete("/{note_id}/permanent")
async def purge_note(
    note_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Permanently delete a note with its shares and tag links (owner only)"""
    await lifecycle.purge_note(db, current_user.id, note_id)
    return {"ok": True}


@router.post("/{note_id}/share", response_model=ShareResponse)
async def share_note(
    note_id: int,
    share: ShareRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    notifier: InviteNotifier = Depends(get_notifier),
):
    """Share with a registered user, or invite an email without an account (owner or editor)"""
    return await sharing.share_note(db, current_user.id, note_id, share.email, share.role, notifier)


@router.get("/{note_id}/accesses", response_model=List[AccessResponse])
async def get_accesses(
    note_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """List collaborators of a note"""
    await authorize_note(db, note_id, current_user.id, Action.READ)
    return await sharing.list_access(db, note_id)


@router.put("/{note_id}/accesses")
async def change_collaborator_role(
    note_id: int,
    update: RoleUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Change a collaborator's role (owner only)"""
    await sharing.change_role(db, current_user.id, note_id, update.user_id, update.role)
    return {"ok": True}


@router.delete("/{note_id}/accesses/{user_id}")
async def revoke_collaborator(
    note_id: int,
    user_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Remove a collaborator (owner only)"""
    await sharing.revoke_access(db, current_user.id, note_id, user_id)
    return {"ok": True}


@router.get("/{note_id}/invites", response_model=List[InviteResponse])
async def get_invites(
    note_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Pending invites of a note (owner or editor)"""
    return await sharing.list_invites(db, current_user.id, note_id)


@router.post("/{note_id}/invites", response_model=InviteCreated, status_code=status.HTTP_201_CREATED)
async def invite_to_note(
    note_id: int,
    invite: InviteCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    notifier: InviteNotifier = Depends(get_notifier),
):
    """Email an invitation link (owner or editor)"""
    created = await sharing.create_invite(db, current_user.id, note_id, invite.email, invite.role, notifier)
    return InviteCreated(invite_id=created.id)
