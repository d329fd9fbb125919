from .user import UserCreate, UserResponse, UserLogin
from .note import NoteCreate, NoteUpdate, NoteResponse, NoteDetailResponse, NoteListResponse, TagRef
from .access import AccessResponse, ShareRequest, ShareResponse, RoleUpdate
from .invite import InviteCreate, InviteCreated, InviteResponse
from .tag import TagCreate, TagRename, TagResponse, TagAttach, TagAttachResponse
from .trash import TrashItem

__all__ = [
    "UserCreate", "UserResponse", "UserLogin",
    "NoteCreate", "NoteUpdate", "NoteResponse", "NoteDetailResponse", "NoteListResponse", "TagRef",
    "AccessResponse", "ShareRequest", "ShareResponse", "RoleUpdate",
    "InviteCreate", "InviteCreated", "InviteResponse",
    "TagCreate", "TagRename", "TagResponse", "TagAttach", "TagAttachResponse",
    "TrashItem",
]
