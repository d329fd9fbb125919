from .user import User
from .note import Note
from .note_access import NoteAccess, Role
from .note_invite import NoteInvite
from .tag import Tag
from .note_tag import note_tags

__all__ = ["User", "Note", "NoteAccess", "Role", "NoteInvite", "Tag", "note_tags"]
